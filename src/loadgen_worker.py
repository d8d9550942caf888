import os
import sys
import socket
import threading
import time
import logging

# Ensure src/ siblings are importable regardless of CWD
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
from loadgen_config import READ_SIZE
from loadgen_errors import CycleError, ConnectError, WriteError, ReadError

# Configure Logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


class RequestWorker(threading.Thread):
    """
    Runs request cycles against the target forever and offers each
    round-trip time (seconds) to its own slot.

    A failed cycle is reported to the diagnostic sink and abandoned; the
    next cycle starts right away unless the retry policy asks for a delay.
    """

    def __init__(self, worker_id, config, slot, sink, clock=time.monotonic):
        super().__init__(name=f'worker-{worker_id}')
        self.daemon = True
        self.running = True
        self.worker_id = worker_id
        self.config = config
        self.slot = slot
        self.sink = sink
        self.clock = clock
        self.cycles_completed = 0
        self.failures = 0
        self.consecutive_failures = 0

    def run(self):
        while self.running:
            self.step()

    def step(self):
        """
        Performs one cycle attempt. Returns True if a sample was delivered.
        """
        try:
            elapsed = self.run_cycle()
        except CycleError as e:
            self.failures += 1
            self.consecutive_failures += 1
            self.sink.report_error(e)
            delay = self.config.retry.delay(self.consecutive_failures)
            if delay:
                time.sleep(delay)
            return False

        self.consecutive_failures = 0
        self.cycles_completed += 1
        self.slot.offer(elapsed)
        return True

    def run_cycle(self):
        start = self.clock()
        sock = self._connect(start)
        try:
            self._send(sock, start)
            self._receive(sock, start)
            return self.clock() - start
        finally:
            sock.close()

    def _remaining(self, start, error_cls):
        # One deadline covers connect, write and read
        if self.config.timeout is None:
            return None
        remaining = self.config.timeout - (self.clock() - start)
        if remaining <= 0:
            raise error_cls(self.worker_id, TimeoutError("cycle deadline exceeded"))
        return remaining

    def _connect(self, start):
        timeout = self._remaining(start, ConnectError)
        try:
            return socket.create_connection(self.config.target, timeout=timeout)
        except OSError as e:
            raise ConnectError(self.worker_id, e)

    def _send(self, sock, start):
        try:
            sock.settimeout(self._remaining(start, WriteError))
            sock.sendall(self.config.payload)
        except OSError as e:
            raise WriteError(self.worker_id, e)

    def _receive(self, sock, start):
        try:
            sock.settimeout(self._remaining(start, ReadError))
            data = sock.recv(READ_SIZE)
        except OSError as e:
            raise ReadError(self.worker_id, e)
        if not data:
            raise ReadError(self.worker_id, ConnectionError("connection closed before any response"))


def start_workers(config, slots, sink):
    """
    Creates and starts one worker per slot.
    """
    workers = []
    for slot in slots:
        worker = RequestWorker(slot.index, config, slot, sink)
        worker.start()
        workers.append(worker)
    logger.info(f"Started {len(workers)} workers against {config.target_label}")
    return workers
