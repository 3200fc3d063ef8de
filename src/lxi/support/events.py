import logging
import threading

logger = logging.getLogger(__name__)


class EventSource:
    """
    A list of handlers that are each called with every event fired.

    Handlers run on the thread that fires the event. Connectors fire from whichever thread
    calls connect() or disconnect(), so the list is guarded by a lock and each firing works
    on a snapshot: a handler added or removed while an event is being delivered takes effect
    from the next event. An exception raised by a handler propagates to the firing thread
    and the remaining handlers are not called.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._handlers = []

    def __iadd__(self, handler):
        return self.add(handler)

    def __isub__(self, handler):
        return self.remove(handler)

    def add(self, handler):
        with self._lock:
            self._handlers.append(handler)
        return self

    def remove(self, handler):
        """ removes the handler. Removing a handler that was never added does nothing. """
        with self._lock:
            if handler in self._handlers:
                self._handlers.remove(handler)
        return self

    def handlers(self):
        with self._lock:
            return tuple(self._handlers)

    def fire(self, *args, **kwargs):
        for handler in self.handlers():
            handler(*args, **kwargs)

    def fire_all(self, events):
        """ delivers each event in order to the handlers registered when delivery starts. """
        handlers = self.handlers()
        for event in events:
            logger.debug("firing %r to %d handlers", event, len(handlers))
            for handler in handlers:
                handler(event)
