import socket
import threading
import time
import unittest
from unittest.mock import Mock

import timeout_decorator
from hamcrest import assert_that, is_, calling, raises, instance_of, same_instance

from lxi.connector.base import AlreadyConnectedError, ConnectionClosedError, ConnectionNotConnectedError, \
    ConnectorTimeoutError, ConnectorError, PHASE_RECEIVE, PHASE_SEND
from lxi.connector.socketconn import SocketConnector, TCPServerEndpoint
from lxi.device import LxiDevice
from lxi.emulator import Emulator, Hangup
from lxi.protocol.frames import BinaryResponse, LineDecoder, MalformedFrameError, TextResponse


class LxiDeviceTest(unittest.TestCase):
    """ unit tests with the connector mocked out """

    def test_constructor(self):
        sut = LxiDevice(('scope', 5025), 2)
        assert_that(sut.connector, is_(instance_of(SocketConnector)))
        assert_that(sut.endpoint, is_(TCPServerEndpoint('scope', 5025)))
        assert_that(sut.timeout, is_(2.0))
        assert_that(sut.connected, is_(False))
        assert_that(sut.is_connected(), is_(False))

    def test_delegates_to_connector(self):
        connector = Mock()
        sut = LxiDevice(None, connector=connector)
        sut.connect()
        connector.connect.assert_called_once()
        sut.reconnect()
        connector.reconnect.assert_called_once()
        sut.set_timeout(4)
        connector.set_timeout.assert_called_once_with(4)
        sut.disconnect()
        connector.disconnect.assert_called_once()
        assert_that(sut.conduit, is_(same_instance(connector.conduit)))

    def test_send_not_connected(self):
        sut = LxiDevice(('scope', 5025))
        assert_that(calling(sut.send).with_args(b"*IDN?"), raises(ConnectionNotConnectedError))
        assert_that(calling(sut.receive), raises(ConnectionNotConnectedError))
        assert_that(calling(sut.receive_timeout).with_args(1), raises(ConnectionNotConnectedError))
        assert_that(calling(sut.send_timeout).with_args(b"x", 1), raises(ConnectionNotConnectedError))
        assert_that(sut.connected, is_(False))

    def test_disconnect_never_connected(self):
        sut = LxiDevice(('scope', 5025))
        assert_that(calling(sut.disconnect), raises(ConnectionNotConnectedError))
        assert_that(sut.connected, is_(False))

    def test_decoder(self):
        decoder = LineDecoder()
        sut = LxiDevice(('scope', 5025), decoder=decoder)
        assert_that(sut.codec.decoder, is_(same_instance(decoder)))


class EmulatorDeviceTest(unittest.TestCase):
    """ talks to an emulated instrument over a loopback connection """

    responses = None

    def setUp(self):
        self.emulator = Emulator(responses=self.responses).start()
        self.device = LxiDevice(self.emulator.address, timeout=5)

    def tearDown(self):
        if self.device.connected:
            self.device.disconnect()
        self.emulator.shutdown()


class EmulatorScenarioTest(EmulatorDeviceTest):

    @timeout_decorator.timeout(10)
    def test_identify(self):
        self.device.connect()
        self.device.send(b"*IDN?")
        assert_that(self.device.receive(), is_(TextResponse(b"Emulator")))

    @timeout_decorator.timeout(10)
    def test_binary_block(self):
        self.device.connect()
        self.device.send(b"DATA?")
        assert_that(self.device.receive(), is_(BinaryResponse(bytes([0x00, 0xFF, 0x0A, 0x80]))))

    @timeout_decorator.timeout(10)
    def test_unknown_command(self):
        self.device.connect()
        assert_that(self.device.query("FOO?"), is_(TextResponse(b"Error")))

    @timeout_decorator.timeout(10)
    def test_replies_in_order(self):
        self.device.connect()
        for command, reply in [(b"*IDN?", TextResponse(b"Emulator")),
                               (b"DATA?", BinaryResponse(b"\x00\xff\n\x80")),
                               (b"*IDN?", TextResponse(b"Emulator"))]:
            assert_that(self.device.query(command), is_(reply))

    @timeout_decorator.timeout(10)
    def test_context_manager(self):
        with LxiDevice(self.emulator.address, timeout=5) as device:
            assert_that(device.connected, is_(True))
            assert_that(device.query_timeout(b"*IDN?", 2).text, is_("Emulator"))
        assert_that(device.connected, is_(False))

    @timeout_decorator.timeout(10)
    def test_line_decoder(self):
        device = LxiDevice(self.emulator.address, timeout=5, decoder=LineDecoder())
        with device:
            assert_that(device.query(b"*IDN?"), is_(b"Emulator"))

    @timeout_decorator.timeout(10)
    def test_connect_twice(self):
        self.device.connect()
        conduit = self.device.conduit
        assert_that(calling(self.device.connect), raises(AlreadyConnectedError))
        assert_that(self.device.conduit, is_(same_instance(conduit)))
        assert_that(self.device.query(b"*IDN?"), is_(TextResponse(b"Emulator")))

    @timeout_decorator.timeout(10)
    def test_reconnect(self):
        self.device.connect()
        first = self.device.conduit
        self.device.reconnect()
        assert_that(self.device.conduit is first, is_(False))
        assert_that(first.open, is_(False))
        assert_that(self.device.query(b"*IDN?"), is_(TextResponse(b"Emulator")))

    @timeout_decorator.timeout(10)
    def test_send_after_disconnect(self):
        self.device.connect()
        self.device.disconnect()
        assert_that(calling(self.device.send).with_args(b"*IDN?"), raises(ConnectionNotConnectedError))


class SilentEmulatorTest(EmulatorDeviceTest):
    responses = {b"WAIT?": None, b"*IDN?": b"Emulator\r\n"}

    @timeout_decorator.timeout(10)
    def test_receive_timeout_override(self):
        self.device.connect()
        self.device.send(b"WAIT?")
        assert_that(calling(self.device.receive_timeout).with_args(0.2), raises(ConnectorTimeoutError))
        assert_that(self.device.timeout, is_(5.0))
        assert_that(self.device.conduit.input.timeout, is_(5.0))

    @timeout_decorator.timeout(10)
    def test_zero_timeout_override_rejected(self):
        self.device.connect()
        self.device.send(b"WAIT?")
        assert_that(calling(self.device.receive_timeout).with_args(0), raises(ValueError))
        assert_that(self.device.conduit.input.timeout, is_(5.0))
        assert_that(self.device.query(b"*IDN?"), is_(TextResponse(b"Emulator")))

    def test_zero_timeout_rejected(self):
        assert_that(calling(LxiDevice).with_args(self.emulator.address, timeout=0), raises(ValueError))
        assert_that(calling(self.device.set_timeout).with_args(0), raises(ValueError))
        assert_that(self.device.timeout, is_(5.0))

    @timeout_decorator.timeout(10)
    def test_timeout_is_a_receive_error(self):
        self.device.connect()
        self.device.set_timeout(0.2)
        self.device.send(b"WAIT?")
        try:
            self.device.receive()
            self.fail("expected ConnectorTimeoutError")
        except ConnectorTimeoutError as e:
            assert_that(e.phase, is_(PHASE_RECEIVE))
            assert_that(e, is_(instance_of(TimeoutError)))

    @timeout_decorator.timeout(10)
    def test_disconnect_unblocks_receive(self):
        self.device.set_timeout(None)
        self.device.connect()
        self.device.send(b"WAIT?")
        result = {}

        def receive():
            try:
                result['reply'] = self.device.receive()
            except ConnectorError as e:
                result['error'] = e

        receiver = threading.Thread(target=receive)
        receiver.start()
        time.sleep(0.2)
        assert_that(receiver.is_alive(), is_(True))

        self.device.disconnect()
        receiver.join(5)
        assert_that(receiver.is_alive(), is_(False))
        assert_that(result.get('error'), is_(instance_of(ConnectorError)))
        assert_that(self.device.connected, is_(False))


class StalledPeerTest(unittest.TestCase):
    """ a peer that accepts the connection and never reads from it """

    def setUp(self):
        self.listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.listener.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, 4096)
        self.listener.bind(('127.0.0.1', 0))
        self.listener.listen(1)
        self.device = LxiDevice(self.listener.getsockname(), timeout=None)
        self.device.connect()
        self.peer, _ = self.listener.accept()
        self.device.conduit.target.setsockopt(socket.SOL_SOCKET, socket.SO_SNDBUF, 4096)

    def tearDown(self):
        if self.device.connected:
            self.device.disconnect()
        self.peer.close()
        self.listener.close()

    @timeout_decorator.timeout(10)
    def test_disconnect_unblocks_send(self):
        result = {}

        def send():
            try:
                self.device.send(b"x" * (8 * 1024 * 1024))
                result['sent'] = True
            except ConnectorError as e:
                result['error'] = e

        sender = threading.Thread(target=send)
        sender.start()
        sender.join(0.5)
        assert_that(sender.is_alive(), is_(True))

        self.device.disconnect()
        sender.join(5)
        assert_that(sender.is_alive(), is_(False))
        assert_that(result.get('error'), is_(instance_of(ConnectorError)))
        assert_that(result.get('error').phase, is_(PHASE_SEND))
        assert_that(self.device.connected, is_(False))


class MalformedEmulatorTest(EmulatorDeviceTest):
    responses = {
        b"BAD?": b"#X123\r\n",
        b"TRAIL?": b"#12abXY\r\n",
        b"CUT?": Hangup(b"#15ab"),
        b"LINE?": Hangup(b"Emul"),
        b"*IDN?": b"Emulator\r\n",
    }

    @timeout_decorator.timeout(10)
    def test_malformed_block_then_reconnect(self):
        self.device.connect()
        self.device.send(b"BAD?")
        assert_that(calling(self.device.receive), raises(MalformedFrameError))
        assert_that(self.device.connected, is_(True))
        self.device.reconnect()
        assert_that(self.device.query(b"*IDN?"), is_(TextResponse(b"Emulator")))

    @timeout_decorator.timeout(10)
    def test_trailing_bytes(self):
        self.device.connect()
        assert_that(calling(self.device.query).with_args(b"TRAIL?"),
                    raises(MalformedFrameError, "unexpected trailing bytes after binary block"))

    @timeout_decorator.timeout(10)
    def test_peer_closes_mid_block(self):
        self.device.connect()
        assert_that(calling(self.device.query).with_args(b"CUT?"), raises(ConnectionClosedError))

    @timeout_decorator.timeout(10)
    def test_peer_closes_mid_line(self):
        self.device.connect()
        assert_that(calling(self.device.query).with_args(b"LINE?"), raises(ConnectionClosedError))
        self.device.reconnect()
        assert_that(self.device.query(b"*IDN?"), is_(TextResponse(b"Emulator")))


class EchoEmulatorTest(unittest.TestCase):

    @timeout_decorator.timeout(10)
    def test_text_echo(self):
        payloads = [b"a", b"*IDN?", b"MEAS:VOLT? (@1,2)", b"\x00\x01\xfe#", b" leading space"]
        responses = {p: p + b"\r\n" for p in payloads}
        with Emulator(responses=responses) as emulator:
            with LxiDevice(emulator.address, timeout=5) as device:
                for p in payloads:
                    device.send(p)
                    assert_that(device.receive(), is_(TextResponse(p)))

    @timeout_decorator.timeout(10)
    def test_blocks(self):
        payloads = [b"", b"x", bytes(range(256)), b"\r\n" * 600]
        responses = {}
        for i, payload in enumerate(payloads):
            length = str(len(payload)).encode()
            responses[b"BLOCK%d?" % i] = b"#" + str(len(length)).encode() + length + payload + b"\r\n"
        with Emulator(responses=responses) as emulator:
            with LxiDevice(emulator.address, timeout=5) as device:
                for i, payload in enumerate(payloads):
                    assert_that(device.query(b"BLOCK%d?" % i), is_(BinaryResponse(payload)))


if __name__ == '__main__':  # pragma: no cover
    unittest.main()
