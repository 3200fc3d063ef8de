import logging
from abc import abstractmethod

from lxi.conduit.base import Conduit, check_timeout
from lxi.support.events import EventSource
from lxi.support.mixins import CommonEqualityMixin

logger = logging.getLogger(__name__)

PHASE_CONNECT = 'connect'
PHASE_SEND = 'send'
PHASE_RECEIVE = 'receive'
PHASE_DECODE = 'decode'


class ConnectorError(Exception):
    """ Indicates an error condition with a connection.
        phase names the operation that failed (connect, send, receive or decode), when known.
        secondary holds a further error raised while cleaning up after this one, such as
        restoring a timeout.
    """
    def __init__(self, *args, phase=None):
        super().__init__(*args)
        self.phase = phase
        self.secondary = None


class AlreadyConnectedError(ConnectorError):
    """ Indicates connect() was called on a connector that is already connected. """


class ConnectionNotConnectedError(ConnectorError):
    """ Indicates a connection is in the disconnected state when a connection is required. """


class AddressResolutionError(ConnectorError):
    """ The endpoint's host name could not be resolved to an address. """


class ConnectFailedError(ConnectorError):
    """ The socket could not be connected to any of the endpoint's addresses. """


class ConnectorTimeoutError(ConnectorError, TimeoutError):
    """ A configured timeout elapsed while connecting, reading or writing. """


class ConnectionClosedError(ConnectorError):
    """ The stream ended, or was closed locally, before a complete frame was transferred. """


class TransportIOError(ConnectorError):
    """ Any other failure reading from or writing to the transport. """


class ConnectorEvent(CommonEqualityMixin):
    """ base class for connector events. """
    def __init__(self, connector):
        self.connector = connector


class ConnectorConnectedEvent(ConnectorEvent):
    """ The connector was connected. """


class ConnectorDisconnectedEvent(ConnectorEvent):
    """ The connector was disconnected. """


class Connector:
    """ A connector describes an endpoint to which a conduit can be established. """

    def __init__(self):
        self.events = EventSource()

    @property
    @abstractmethod
    def endpoint(self):
        """ the endpoint that this connector reaches out to """
        raise NotImplementedError

    @property
    @abstractmethod
    def connected(self) -> bool:
        """
        Determines if this connector holds a conduit.
        :return: True if this connector is connected to its underlying resource. False otherwise.
        :rtype: bool
        """
        raise NotImplementedError

    @property
    @abstractmethod
    def conduit(self) -> Conduit:
        """
        Retrieves the conduit for this connection.
        If the connection is not connected, raises ConnectionNotConnectedError
        """
        raise NotImplementedError

    @property
    @abstractmethod
    def timeout(self):
        """ the timeout in seconds applied to connecting, reading and writing, or None to block. """
        raise NotImplementedError

    @abstractmethod
    def set_timeout(self, timeout):
        raise NotImplementedError

    @abstractmethod
    def connect(self):
        """
        Connects this connector to the underlying resource.
        Raises AlreadyConnectedError if the connector is already connected, and another
        ConnectorError if the connection cannot be established.
        """
        raise NotImplementedError

    @abstractmethod
    def disconnect(self):
        """
        Releases the conduit. Raises ConnectionNotConnectedError if there is no conduit.
        """
        raise NotImplementedError

    def reconnect(self):
        """ disconnects and then connects. The first failure propagates. """
        self.disconnect()
        self.connect()


class AbstractConnector(Connector):
    """ Manages the connection cycle to an endpoint."""

    def __init__(self, timeout=None):
        super().__init__()
        self._conduit = None
        self._timeout = check_timeout(timeout)

    @property
    def connected(self):
        return self._conduit is not None

    @property
    def timeout(self):
        return self._timeout

    def set_timeout(self, timeout):
        """
        Stores the timeout, and applies it to both halves of the conduit when connected.
        The stored value survives reconnection.
        """
        timeout = check_timeout(timeout)
        self._timeout = timeout
        if self._conduit is not None:
            self._conduit.set_timeout(timeout)

    def connect(self):
        if self._conduit is not None:
            raise AlreadyConnectedError("already connected to %s" % (self.endpoint,), phase=PHASE_CONNECT)
        self._conduit = self._connect()
        self.events.fire(ConnectorConnectedEvent(self))

    def disconnect(self):
        conduit = self._conduit
        if conduit is None:
            raise ConnectionNotConnectedError("not connected to %s" % (self.endpoint,))
        self._conduit = None
        try:
            self._disconnect()
        finally:
            conduit.close()
        self.events.fire(ConnectorDisconnectedEvent(self))

    @abstractmethod
    def _connect(self) -> Conduit:
        """ Template method for subclasses to perform the connection.
            If connection is not possible, a ConnectorError should be raised.
        """
        raise NotImplementedError

    def _disconnect(self):
        """ perform any actions needed on disconnection.
        The base class takes care of closing the conduit, which happens
        after this method has been called.
        """

    @property
    def conduit(self) -> Conduit:
        """
        Retrieves the conduit for this connection.
        raises ConnectionNotConnectedError if not connected
        """
        self.check_connected()
        return self._conduit

    def check_connected(self):
        if not self.connected:
            raise ConnectionNotConnectedError("not connected to %s" % (self.endpoint,))
