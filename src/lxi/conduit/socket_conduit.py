import io
import logging
import socket

from lxi.conduit import base
from lxi.conduit.base import TimedBufferedReader, TimedBufferedWriter, check_timeout

logger = logging.getLogger(__name__)


class SocketStream(io.RawIOBase):
    """
    An unbuffered stream over one direction of a socket.
    The timeout is applied to the socket before each read or write, so two streams over
    the same socket keep independent timeouts.
    """

    def __init__(self, sock: socket.socket, mode, timeout=None):
        super().__init__()
        if mode not in ('r', 'w'):
            raise ValueError("mode must be 'r' or 'w', not %r" % mode)
        self._sock = sock
        self._mode = mode
        self._timeout = check_timeout(timeout)

    @property
    def timeout(self):
        return self._timeout

    @timeout.setter
    def timeout(self, timeout):
        self._checkClosed()
        self._timeout = check_timeout(timeout)

    def readable(self):
        return self._mode == 'r'

    def writable(self):
        return self._mode == 'w'

    def readinto(self, b):
        self._checkClosed()
        self._sock.settimeout(self._timeout)
        return self._sock.recv_into(b)

    def write(self, b):
        self._checkClosed()
        self._sock.settimeout(self._timeout)
        return self._sock.send(b)


class SocketConduit(base.Conduit):
    """
    A conduit that provides communication via a socket.
    :param sock The open, connected socket
    """
    def __init__(self, sock: socket.socket, read_timeout=None, write_timeout=None):
        """
        :param sock: the client socket that represents the connection
        :type sock: socket
        :param read_timeout: the initial timeout of the input stream
        :param write_timeout: the initial timeout of the output stream
        """
        self.sock = sock
        self.read = TimedBufferedReader(SocketStream(sock, 'r', read_timeout))
        self.write = TimedBufferedWriter(SocketStream(sock, 'w', write_timeout))

    @property
    def open(self) -> bool:
        return self.sock.fileno() >= 0

    @property
    def target(self):
        return self.sock

    @property
    def output(self):
        return self.write

    @property
    def input(self):
        return self.read

    def close(self):
        # shutdown first so that a thread blocked reading or writing wakes up
        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError as e:
            # the peer may already have closed the socket
            logger.debug("socket shutdown failed: %s", e)
        try:
            self.write.close()
        except OSError as e:
            logger.debug("discarding unsent output: %s", e)
        finally:
            self.read.close()
            self.sock.close()
