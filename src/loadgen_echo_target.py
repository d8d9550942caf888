import socket
import threading
import time
import logging

# Configure Logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

ACK = b"ACK\n"
ACCEPT_TIMEOUT = 0.5  # check for shutdown
CLIENT_TIMEOUT = 5


class EchoTarget:
    """
    Minimal threaded TCP server to point the load generator at locally.

    Each connection gets one read, an optional delay, then a short reply.
    With silent=True the connection is closed without replying, which the
    workers see as a read error.

    Args:
        host (str): Bind address.
        port (int): Bind port, 0 picks a free one.
        delay (float): Seconds to wait before replying.
        silent (bool): Close without replying.
    """

    def __init__(self, host='127.0.0.1', port=0, delay=0.0, silent=False):
        self.host = host
        self.delay = delay
        self.silent = silent
        self.running = False
        self.connections = 0
        self._lock = threading.Lock()
        self._thread = None

        self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self.sock.bind((host, port))
        self.port = self.sock.getsockname()[1]

    def start(self):
        self.sock.listen(1024)
        self.sock.settimeout(ACCEPT_TIMEOUT)
        self.running = True
        self._thread = threading.Thread(target=self.serve_forever, name='echo-target', daemon=True)
        self._thread.start()
        logger.info(f"Echo target listening on {self.host}:{self.port}")
        return self

    def serve_forever(self):
        while self.running:
            try:
                client_sock, _ = self.sock.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self.running:
                    logger.error(f"Accept error: {e}")
                break

            t = threading.Thread(target=self.handle_connection, args=(client_sock,), daemon=True)
            t.start()

    def handle_connection(self, client_sock):
        with self._lock:
            self.connections += 1
        try:
            client_sock.settimeout(CLIENT_TIMEOUT)
            client_sock.recv(4096)
            if self.silent:
                return
            if self.delay:
                time.sleep(self.delay)
            client_sock.sendall(ACK)
        except OSError as e:
            logger.debug(f"Client error: {e}")
        finally:
            client_sock.close()

    def stop(self):
        self.running = False
        if self._thread:
            self._thread.join(timeout=2.0)
        self.sock.close()
        logger.info("Echo target stopped.")


if __name__ == "__main__":
    target = EchoTarget(host='0.0.0.0', port=8080).start()
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        target.stop()
