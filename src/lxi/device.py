"""
The device handle: a connector to a fixed endpoint combined with a frame codec.

    with LxiDevice(('192.168.1.20', 5025), timeout=2.0) as device:
        device.send('*IDN?')
        identity = device.receive().text

A device is not safe for concurrent use. When several threads share one, each send and its matching
receive must be made under a lock held by the caller, since replies carry no correlation with requests.
disconnect() may be called from another thread to abort a blocked send or receive.
"""
import logging

from lxi.connector.base import Connector
from lxi.connector.socketconn import SocketConnector
from lxi.protocol.frames import Decoder, FrameCodec

logger = logging.getLogger(__name__)


class LxiDevice:
    """
    An instrument reached over one TCP connection.
    """

    def __init__(self, endpoint, timeout=None, decoder: Decoder=None, connector: Connector=None):
        """
        :param endpoint: a TCPServerEndpoint or (host, port) tuple
        :param timeout: seconds to wait when connecting, reading or writing. None blocks indefinitely.
        :param decoder: the reply decoder. The default classifies replies as TextResponse or BinaryResponse.
        :param connector: the connector to use, by default a SocketConnector for the endpoint.
        """
        self.connector = connector if connector is not None else SocketConnector(endpoint, timeout)
        self.codec = FrameCodec(decoder)

    @property
    def endpoint(self):
        return self.connector.endpoint

    @property
    def connected(self) -> bool:
        return self.connector.connected

    def is_connected(self) -> bool:
        return self.connector.connected

    @property
    def timeout(self):
        return self.connector.timeout

    def set_timeout(self, timeout):
        self.connector.set_timeout(timeout)

    @property
    def conduit(self):
        return self.connector.conduit

    def connect(self):
        self.connector.connect()

    def disconnect(self):
        self.connector.disconnect()

    def reconnect(self):
        self.connector.reconnect()

    def send(self, payload):
        """ writes the payload as one command frame. """
        self.codec.send(self.conduit, payload)

    def receive(self):
        """ reads exactly one reply frame. """
        return self.codec.receive(self.conduit)

    def send_timeout(self, payload, timeout):
        """ sends with a timeout that applies to this call only. """
        self.codec.send_timeout(self.conduit, payload, timeout)

    def receive_timeout(self, timeout):
        """ receives with a timeout that applies to this call only. """
        return self.codec.receive_timeout(self.conduit, timeout)

    def query(self, payload):
        self.send(payload)
        return self.receive()

    def query_timeout(self, payload, timeout):
        self.send_timeout(payload, timeout)
        return self.receive_timeout(timeout)

    def __enter__(self):
        self.connect()
        logger.debug("connected to %s" % self.endpoint)
        return self

    def __exit__(self, exc_type, exc, tb):
        if self.connected:
            self.disconnect()
        return False

    def __repr__(self):
        return 'LxiDevice(%r)' % (self.endpoint,)
