import logging
import socket

from lxi.conduit.base import Conduit
from lxi.conduit.socket_conduit import SocketConduit
from lxi.connector.base import AbstractConnector, AddressResolutionError, ConnectFailedError, \
    ConnectorTimeoutError, PHASE_CONNECT
from lxi.support.mixins import CommonEqualityMixin

logger = logging.getLogger(__name__)

DEFAULT_PORT = 5025


class TCPServerEndpoint(CommonEqualityMixin):
    """
    Describes a TCP server endpoint: the host name or IP address, and the port.
    """
    def __init__(self, host, port=DEFAULT_PORT):
        self.host = host
        self.port = int(port)

    def key(self):
        """
        >>> TCPServerEndpoint('ipaddr', 55).key()
        'ipaddr:55'
        """
        return str(self.host) + ':' + str(self.port)

    def address(self):
        return self.host, self.port

    def __str__(self):
        return self.key()

    def __repr__(self):
        return 'TCPServerEndpoint(%r, %r)' % (self.host, self.port)

    @staticmethod
    def of(endpoint):
        """ accepts either an endpoint or a (host, port) tuple """
        if isinstance(endpoint, TCPServerEndpoint):
            return endpoint
        host, port = endpoint
        return TCPServerEndpoint(host, port)


class SocketConnector(AbstractConnector):
    """
    A connector that communicates data via a TCP socket.
    """
    def __init__(self, endpoint, timeout=None, report_errors=True):
        """
        Creates a new socket connector. No connection is made until connect() is called.
        :param endpoint The TCPServerEndpoint, or (host, port) tuple, to connect to.
        :param timeout The timeout in seconds for connecting, reading and writing. None blocks indefinitely.
        :param report_errors When true, connection failures are logged as warnings, otherwise at debug level.
        """
        super().__init__(timeout)
        self._endpoint = TCPServerEndpoint.of(endpoint)
        self._report_errors = report_errors

    @property
    def endpoint(self):
        return self._endpoint

    def _resolve(self):
        try:
            addresses = socket.getaddrinfo(self._endpoint.host, self._endpoint.port, 0, socket.SOCK_STREAM)
        except socket.gaierror as e:
            self._report("unable to resolve %s: %s" % (self._endpoint, e))
            raise AddressResolutionError("unable to resolve %s" % self._endpoint, phase=PHASE_CONNECT) from e
        if not addresses:
            raise AddressResolutionError("no addresses for %s" % self._endpoint, phase=PHASE_CONNECT)
        return addresses

    def _connect(self) -> Conduit:
        error = None
        for family, type, proto, _, address in self._resolve():
            sock = None
            try:
                sock = socket.socket(family, type, proto)
                sock.settimeout(self._timeout)
                sock.connect(address)
            except OSError as e:
                if sock is not None:
                    sock.close()
                error = e
                continue
            logger.info("opened socket to %s (%s)" % (self._endpoint, address[0]))
            return SocketConduit(sock, self._timeout, self._timeout)

        self._report("error opening socket to %s: %s" % (self._endpoint, error))
        if isinstance(error, socket.timeout):
            raise ConnectorTimeoutError("timed out connecting to %s" % self._endpoint, phase=PHASE_CONNECT) \
                from error
        raise ConnectFailedError("unable to connect to %s" % self._endpoint, phase=PHASE_CONNECT) from error

    def _disconnect(self):
        logger.info("closing socket to %s" % self._endpoint)

    def _report(self, message):
        method = logger.warning if self._report_errors else logger.debug
        method(message)
