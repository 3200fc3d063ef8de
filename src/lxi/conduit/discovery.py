"""
Notifications about instruments appearing on and leaving the network.

A discovery keeps the instruments currently known, keyed by the name they are advertised
under, and tells its listeners about every change as a ResourceAvailableEvent or
ResourceUnavailableEvent.
"""

import logging

from lxi.support.mixins import CommonEqualityMixin
from lxi.support.events import EventSource

logger = logging.getLogger(__name__)


class ResourceEvent(CommonEqualityMixin):
    """
    :param source: the discovery that found the change
    :param key: the advertised name of the instrument
    :param resource: how to reach the instrument, usually a TCPServerEndpoint. None when it has gone.
    """
    def __init__(self, source, key, resource):
        self.source = source
        self.key = key
        self.resource = resource

    def __repr__(self):
        return '%s(%r, %r)' % (type(self).__name__, self.key, self.resource)


class ResourceAvailableEvent(ResourceEvent):
    """ An instrument was advertised, or its details changed. """


class ResourceUnavailableEvent(ResourceEvent):
    """ An instrument withdrew its advertisement. """


class ResourceDiscovery:
    """
    Base for discoveries. Subclasses collect events and pass them to _fire_events on the
    thread that should see them.
    """
    def __init__(self):
        self.listeners = EventSource()
        self.available = {}

    def _fire_events(self, events):
        for event in events:
            if isinstance(event, ResourceAvailableEvent):
                logger.info("instrument %s available at %s", event.key, event.resource)
                self.available[event.key] = event.resource
            elif isinstance(event, ResourceUnavailableEvent):
                logger.info("instrument %s gone", event.key)
                self.available.pop(event.key, None)
        self.listeners.fire_all(events)
