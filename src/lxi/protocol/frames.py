import logging
import socket
from abc import abstractmethod
from contextlib import contextmanager

from lxi.conduit.base import Conduit, scoped_timeout
from lxi.connector.base import ConnectorError, ConnectorTimeoutError, ConnectionClosedError, TransportIOError, \
    PHASE_DECODE, PHASE_RECEIVE, PHASE_SEND
from lxi.protocol.io import read_exactly, read_line, strip_line_terminator
from lxi.support.mixins import CommonEqualityMixin

logger = logging.getLogger(__name__)

COMMAND_TERMINATOR = b'\r\n'
BLOCK_START = b'#'


class MalformedFrameError(ConnectorError, ValueError):
    """ The reply does not follow the framing rules, such as a bad block header or trailing bytes. """

    def __init__(self, *args, phase=PHASE_DECODE):
        super().__init__(*args, phase=phase)


class Response(CommonEqualityMixin):
    """ A decoded reply. The data is the reply content without framing. """

    def __init__(self, data: bytes):
        self.data = bytes(data)

    def __repr__(self):
        return '%s(%r)' % (type(self).__name__, self.data)


class TextResponse(Response):
    """ A reply sent as a line of text. """

    @property
    def text(self):
        return self.data.decode('ascii')


class BinaryResponse(Response):
    """ A reply sent as a definite length block. """


class Decoder:
    """
    Strategy that consumes exactly one reply from a buffered byte stream and returns the decoded value.
    """

    @abstractmethod
    def decode(self, stream):
        raise NotImplementedError


class LineDecoder(Decoder):
    """ Decodes ASCII lines only. Returns the line as bytes, with the line terminator removed. """

    def decode(self, stream):
        return strip_line_terminator(read_line(stream))


class ResponseDecoder(Decoder):
    """
    Decodes either a line of text or a definite length block, distinguished by the first byte.
    Returns a TextResponse or a BinaryResponse.
    """

    def decode(self, stream):
        first = read_exactly(stream, 1)
        if first == BLOCK_START:
            return BinaryResponse(self._decode_block(stream))
        line = first if first == b'\n' else first + read_line(stream)
        return TextResponse(strip_line_terminator(line))

    def _decode_block(self, stream):
        # '#' has been consumed
        digits = read_exactly(stream, 1)
        if not digits.isdigit():
            raise MalformedFrameError("expected length digit count after '#', got %r" % digits)
        length_field = read_exactly(stream, int(digits))
        if length_field and not length_field.isdigit():
            raise MalformedFrameError("expected %s length digits, got %r" % (digits.decode(), length_field))
        # a digit count of 0 means an empty length field, taken as length 0
        length = int(length_field) if length_field else 0
        payload = read_exactly(stream, length)
        trailing = strip_line_terminator(read_line(stream))
        if trailing:
            raise MalformedFrameError("unexpected trailing bytes after binary block: %r" % trailing[:32])
        return payload


def encode_command(payload):
    """
    Appends the command terminator to the payload.
    >>> encode_command(b'*IDN?')
    b'*IDN?\\r\\n'
    """
    if isinstance(payload, str):
        payload = payload.encode('ascii')
    return bytes(payload) + COMMAND_TERMINATOR


@contextmanager
def transport_errors(phase, stream):
    """
    Translates stream and socket exceptions raised in the block into ConnectorError subclasses.
    :param phase: the phase recorded on the error
    :param stream: the conduit half used in the block. A ValueError is taken as a closed
        connection only when this stream has been closed; otherwise, while receiving, it is
        the decoder rejecting the reply.
    """
    try:
        yield
    except ConnectorError as e:
        if e.phase is None:
            e.phase = phase
        raise
    except socket.timeout as e:
        raise ConnectorTimeoutError("timed out during %s" % phase, phase=phase) from e
    except (ConnectionResetError, ConnectionAbortedError, BrokenPipeError) as e:
        raise ConnectionClosedError("connection closed by peer during %s: %s" % (phase, e), phase=phase) from e
    except ValueError as e:
        if stream.closed:
            # e.g. disconnect() on another thread
            raise ConnectionClosedError("stream closed during %s: %s" % (phase, e), phase=phase) from e
        if phase == PHASE_RECEIVE:
            raise MalformedFrameError("invalid reply: %s" % e) from e
        raise
    except OSError as e:
        raise TransportIOError("%s failed: %s" % (phase, e), phase=phase) from e


class FrameCodec:
    """
    Writes command frames to a conduit and reads reply frames from it.
    The decoder determines how a reply is read; by default replies are classified as text or binary.
    """

    def __init__(self, decoder: Decoder=None):
        self.decoder = decoder if decoder is not None else ResponseDecoder()

    def send(self, conduit: Conduit, payload):
        frame = encode_command(payload)
        with transport_errors(PHASE_SEND, conduit.output):
            output = conduit.output
            output.write(frame)
            output.flush()
        logger.debug("sent %r", frame)

    def receive(self, conduit: Conduit):
        with transport_errors(PHASE_RECEIVE, conduit.input):
            reply = self.decoder.decode(conduit.input)
        logger.debug("received %r", reply)
        return reply

    def send_timeout(self, conduit: Conduit, payload, timeout):
        """ sends with the given timeout applied to the output for the duration of the call. """
        override = scoped_timeout(conduit.output, timeout)
        with transport_errors(PHASE_SEND, conduit.output), override:
            self.send(conduit, payload)

    def receive_timeout(self, conduit: Conduit, timeout):
        """ receives with the given timeout applied to the input for the duration of the call. """
        override = scoped_timeout(conduit.input, timeout)
        with transport_errors(PHASE_RECEIVE, conduit.input), override:
            return self.receive(conduit)
