import logging
from queue import Queue

from zeroconf import ServiceBrowser, Zeroconf

from lxi.conduit.discovery import ResourceAvailableEvent, ResourceDiscovery, ResourceUnavailableEvent
from lxi.connector.socketconn import TCPServerEndpoint

logger = logging.getLogger(__name__)

# LXI instruments advertise their raw SCPI socket under this subtype
SCPI_RAW_SUBTYPE = 'scpi-raw'


class ZeroconfTCPServerEndpoint(TCPServerEndpoint):
    """
    Creates a tcp endpoint from the info provided by a zeroconf-registered service.
    The first advertised address is used as the host, falling back to the server name.
    """
    def __init__(self, info):
        addresses = info.parsed_addresses()
        super().__init__(addresses[0] if addresses else info.server, info.port)
        self.server = info.server


class InstrumentDiscovery(ResourceDiscovery):
    """
    Uses zeroconf to discover instruments.
    To keep all the events on the same thread, this captures events from the zeroconf browser thread and pushes
    them to a queue. These events are then posted next time update() is called.
    The resources discovered are ZeroconfTCPServerEndpoint.
    """
    def __init__(self, service_subtype=SCPI_RAW_SUBTYPE, use_zeroconf=True):
        """
         :param service_subtype  The subtype of the TCP services to detect.
            The type is qualified automatically with TCP and local supertypes.
            The subtype should not begin with an underscore, and does not need a separating "." at the end.
        """
        super().__init__()
        self.event_queue = Queue()
        self.service_type = InstrumentDiscovery.qualify_service_type(service_subtype)
        logger.info("listening for zeroconf services of type %s " % self.service_type)
        if use_zeroconf:
            self.zeroconf = Zeroconf()
            self.browser = ServiceBrowser(self.zeroconf, self.service_type, self)
        else:
            self.zeroconf = None
            self.browser = None

    @staticmethod
    def qualify_service_type(service_subtype):
        """
        >>> InstrumentDiscovery.qualify_service_type("abc")
        '_abc._tcp.local.'
        """
        return "_" + service_subtype + "._tcp.local."

    @staticmethod
    def resource_for_service(zeroconf, type, name):
        """
        constructs the ZeroconfTCPServerEndpoint from the zeroconf info
        """
        info = zeroconf.get_service_info(type, name)
        return None if not info else ZeroconfTCPServerEndpoint(info)

    def _publish(self, event, zeroconf, svc_type, svc_name, info_required=True):
        """
        queues an event corresponding to the given service. The event is queued
        only if zeroconf provides info for the service name and type, unless info is not required.
        """
        info = self.resource_for_service(zeroconf, svc_type, svc_name) if info_required else None
        if info or not info_required:
            self.event_queue.put(event(self, svc_name, info))
        else:
            logger.warning("no info for service %s type %s" % (svc_name, svc_type))

    def remove_service(self, zeroconf, type, name):
        """ notification from the service browser that a service has been removed """
        logger.debug("service removed: %s " % name)
        self._publish(ResourceUnavailableEvent, zeroconf, type, name, False)

    def add_service(self, zeroconf, type, name):
        """ notification from the service browser that a service has been added """
        logger.debug("service added: %s " % name)
        self._publish(ResourceAvailableEvent, zeroconf, type, name)

    def update_service(self, zeroconf, type, name):
        """ notification from the service browser that a service's details changed """
        self._publish(ResourceAvailableEvent, zeroconf, type, name)

    def update(self):
        """ fires the events queued since the last update on the calling thread. """
        queue = self.event_queue
        events = []
        while not queue.empty():
            events.append(queue.get())
        if events:
            self._fire_events(events)
        return events

    def close(self):
        if self.zeroconf is not None:
            self.browser.cancel()
            self.zeroconf.close()
            self.zeroconf = None
            self.browser = None
