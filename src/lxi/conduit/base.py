import logging
from abc import abstractmethod
from io import BufferedReader, BufferedWriter, IOBase

logger = logging.getLogger(__name__)


class Conduit:
    """
    A conduit allows two-way communication. It provides a file-like input endpoint and a file-like output endpoint.
    Each endpoint has its own timeout, so the read half and the write half can be bounded independently.
    """

    @property
    @abstractmethod
    def target(self):
        raise NotImplementedError

    @property
    @abstractmethod
    def input(self) -> IOBase:
        """ fetches the I/O stream that provides input.
            Callers can use the usual readXXX() methods. The stream has a timeout attribute. """
        raise NotImplementedError

    @property
    @abstractmethod
    def output(self) -> IOBase:
        """ fetches the I/O stream that provides output.
            Callers can use the usual writeXXX() methods. The stream has a timeout attribute. """
        raise NotImplementedError

    @property
    @abstractmethod
    def open(self) -> bool:
        """ determines if this conduit is open. When open, the streams provided by
            input and output can be read from/written to."""
        raise NotImplementedError

    @abstractmethod
    def close(self):
        """
        Closes both the input and output streams.
        """
        raise NotImplementedError

    def set_timeout(self, timeout):
        """ applies the same timeout to the input and the output. """
        self.input.timeout = timeout
        self.output.timeout = timeout


def check_timeout(timeout):
    """
    Validates a timeout value. None means no timeout (block indefinitely).
    Zero is rejected: a socket with a zero timeout does not wait at all.
    >>> check_timeout(None)
    >>> check_timeout(1.5)
    1.5
    """
    if timeout is not None:
        timeout = float(timeout)
        if timeout <= 0:
            raise ValueError("timeout must be positive or None, not %s" % timeout)
    return timeout


class scoped_timeout:
    """
    Applies a timeout to one half of a conduit for the duration of a with block, and restores the
    previous value on exit, whether or not the block raised.

    When the restore fails after the block succeeded, the restore error is raised.
    When the block failed, the block's exception propagates; the restore error is logged and
    attached to the exception as the attribute ``secondary`` when the exception supports it.
    """

    def __init__(self, stream, timeout):
        self.stream = stream
        self.timeout = check_timeout(timeout)
        self.previous = None

    def __enter__(self):
        self.previous = self.stream.timeout
        self.stream.timeout = self.timeout
        return self.stream

    def __exit__(self, exc_type, exc, tb):
        try:
            self.stream.timeout = self.previous
        except Exception as restore_error:
            if exc is None:
                raise
            logger.warning("unable to restore timeout %s after failed operation: %s", self.previous, restore_error)
            if hasattr(exc, 'secondary'):
                exc.secondary = restore_error
        return False


class TimedBufferedReader(BufferedReader):
    """ A buffered reader exposing the timeout of its raw stream. """

    @property
    def timeout(self):
        return self.raw.timeout

    @timeout.setter
    def timeout(self, timeout):
        self.raw.timeout = timeout


class TimedBufferedWriter(BufferedWriter):
    """ A buffered writer exposing the timeout of its raw stream. """

    @property
    def timeout(self):
        return self.raw.timeout

    @timeout.setter
    def timeout(self, timeout):
        self.raw.timeout = timeout
