"""
stream helpers for reading frames, and an in-memory stream pair for tests.
"""

import io
from collections import deque

from lxi.conduit.base import Conduit, TimedBufferedReader, TimedBufferedWriter
from lxi.connector.base import ConnectionClosedError, PHASE_RECEIVE

LF = b'\n'
CR = b'\r'


class DequeStream(io.RawIOBase):

    def __init__(self, q: deque):
        super().__init__()
        self.q = q
        self._timeout = None

    @property
    def timeout(self):
        return self._timeout

    @timeout.setter
    def timeout(self, timeout):
        self._checkClosed()
        self._timeout = timeout

    def close(self):
        self.q = None
        super().close()


class DequeReader(DequeStream):
    """
    A Readable stream that pulls content from a deque.
    """

    def readable(self):
        return True

    def readinto(self, b):
        self._checkClosed()
        count = min(len(b), len(self.q))
        for i in range(count):
            b[i] = self.q.popleft()
        return count


class DequeWriter(DequeStream):
    """
    A writable stream that pushes content to a deque.
    """
    def writable(self):
        return True

    def write(self, buf):
        self._checkClosed()
        self.q.extend(bytes(buf))
        return len(buf)


class RWCacheBuffer:
    """ simple implementation of a read and writable buffer. For single-threaded code in test.
        Use the reader and writer attributes to access a reader and writer - the reader reads what has been put
        by the writer. When everything written has been read, the reader is at end of stream.
    """

    def __init__(self, data=b''):
        self.q = deque(data)
        self.reader = TimedBufferedReader(DequeReader(self.q))
        self.writer = TimedBufferedWriter(DequeWriter(self.q))

    def close(self):
        self.reader.close()
        self.writer.close()


class BufferConduit(Conduit):
    """ A conduit over in-memory buffers, for tests. The input reads the incoming data given,
        and what is written to the output is available from written().
    """

    def __init__(self, incoming=b''):
        self.incoming = RWCacheBuffer(incoming)
        self.outgoing = RWCacheBuffer()

    @property
    def target(self):
        return None

    @property
    def input(self):
        return self.incoming.reader

    @property
    def output(self):
        return self.outgoing.writer

    @property
    def open(self):
        return not self.incoming.reader.closed

    def close(self):
        self.incoming.close()
        self.outgoing.close()

    def written(self):
        self.outgoing.writer.flush()
        return self.outgoing.reader.read()


def read_exactly(stream, count):
    """
    Reads count bytes from the stream. Raises ConnectionClosedError when the stream ends first.
    """
    if count == 0:
        return b''
    data = stream.read(count)
    if len(data) < count:
        raise ConnectionClosedError("stream closed after %d of %d bytes" % (len(data), count), phase=PHASE_RECEIVE)
    return data


def read_line(stream):
    """
    Reads up to and including the next LF. Raises ConnectionClosedError when the stream ends first.
    """
    line = stream.readline()
    if not line.endswith(LF):
        raise ConnectionClosedError("stream closed before end of line", phase=PHASE_RECEIVE)
    return line


def strip_line_terminator(line):
    """
    Removes one trailing LF, and one CR directly before it.
    >>> strip_line_terminator(b'abc\\r\\r\\n')
    b'abc\\r'
    >>> strip_line_terminator(b'abc\\n')
    b'abc'
    """
    if line.endswith(LF):
        line = line[:-1]
        if line.endswith(CR):
            line = line[:-1]
    return line
