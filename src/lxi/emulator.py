"""
A minimal instrument that answers each command line with a canned reply.
Used to exercise LxiDevice without hardware:

    with Emulator() as emulator:
        with LxiDevice(emulator.address) as device:
            assert device.query('*IDN?') == TextResponse(b'Emulator')
"""
import logging
import socket
import threading

logger = logging.getLogger(__name__)


class Hangup:
    """ A reply that writes data and then closes the client connection. """
    def __init__(self, data=b''):
        self.data = data


DEFAULT_RESPONSES = {
    b'*IDN?': b'Emulator\r\n',
    b'DATA?': b'#14\x00\xff\n\x80\r\n',
}

ERROR_RESPONSE = b'Error\r\n'


class Emulator:
    """
    Listens on a TCP port and serves each client on its own thread.
    Each line received, without its terminator, is looked up in the responses. The value is
    - bytes: written to the client
    - None: nothing is written
    - a Hangup: its data is written, then the connection is closed
    Lines not in the responses are answered with the default reply.
    """

    def __init__(self, host='127.0.0.1', port=0, responses=None, default=ERROR_RESPONSE):
        self.responses = dict(DEFAULT_RESPONSES if responses is None else responses)
        self.default = default
        self.listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self.listener.bind((host, port))
        self.listener.listen(5)
        self._clients = {}
        self._lock = threading.Lock()
        self._exit = threading.Event()
        self._thread = None
        self.connections = 0

    @property
    def address(self):
        """ the (host, port) the emulator is listening on """
        return self.listener.getsockname()[:2]

    def start(self):
        self._thread = threading.Thread(target=self._accept_clients, name='emulator', daemon=True)
        self._thread.start()
        logger.info("emulator listening on %s:%d" % self.address)
        return self

    def _accept_clients(self):
        while True:
            try:
                client, address = self.listener.accept()
            except OSError:
                break
            if self._exit.is_set():
                client.close()
                break
            self.connections += 1
            thread = threading.Thread(target=self._serve, args=(client, self.connections),
                                      name='emulator-client-%d' % self.connections, daemon=True)
            with self._lock:
                self._clients[self.connections] = (client, thread)
            thread.start()

    def _serve(self, client, id):
        logger.debug("client %d connected" % id)
        reader = client.makefile('rb')
        try:
            for line in reader:
                command = line.rstrip(b'\r\n')
                reply = self.responses.get(command, self.default)
                if isinstance(reply, Hangup):
                    client.sendall(reply.data)
                    client.shutdown(socket.SHUT_RDWR)
                    break
                if reply is not None:
                    client.sendall(reply)
        except OSError as e:
            logger.debug("client %d: %s" % (id, e))
        finally:
            reader.close()
            client.close()
            with self._lock:
                self._clients.pop(id, None)
            logger.debug("client %d disconnected" % id)

    def shutdown(self):
        """ stops accepting clients, closes the client connections and waits for all threads to finish. """
        if self._thread is None:
            return
        self._exit.set()
        try:
            # wake the accept loop
            socket.create_connection(self.address, timeout=1).close()
        except OSError as e:
            logger.debug("unable to wake emulator: %s" % e)
        self._thread.join()
        self._thread = None
        self.listener.close()

        with self._lock:
            clients = list(self._clients.values())
        for client, thread in clients:
            try:
                client.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass    # already closed by the peer
            thread.join()
        logger.info("emulator stopped")

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()
        return False
