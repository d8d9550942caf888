import json
import os
import queue
import threading
import logging
import requests
from logging.handlers import RotatingFileHandler
from datetime import datetime

# Configure Logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

DIAGNOSTIC_QUEUE_SIZE = 10000
DIAGNOSTICS_FILE_NAME = 'diagnostics.jsonl'
FORWARD_TIMEOUT = 3
DIAGNOSTICS_MAX_BYTES = 5 * 1024 * 1024
DIAGNOSTICS_BACKUP_COUNT = 3


class DiagnosticSink:
    """
    Bounded, non-blocking channel for per-cycle error events.

    Workers call report() from their hot loop, so it never waits: when the
    queue is full the event is dropped and counted instead.
    """

    def __init__(self, target_label, maxsize=DIAGNOSTIC_QUEUE_SIZE):
        self.target_label = target_label
        self.queue = queue.Queue(maxsize=maxsize)
        self.dropped = 0
        self._dropped_lock = threading.Lock()

    def report(self, event_type, worker_id, error):
        entry = {
            "timestamp": datetime.now().isoformat(),
            "event_type": event_type,
            "worker_id": worker_id,
            "target": self.target_label,
            "error": str(error),
        }
        try:
            self.queue.put_nowait(entry)
        except queue.Full:
            with self._dropped_lock:
                self.dropped += 1

    def report_error(self, cycle_error):
        self.report(cycle_error.event_type, cycle_error.worker_id, cycle_error.cause)


class DiagnosticWriter(threading.Thread):
    """
    Drains a DiagnosticSink. Entries are forwarded to a collector when one is
    configured, otherwise appended to a local JSON-lines file that rotates at
    max_bytes and keeps backup_count old files.
    """

    def __init__(self, sink, forward_url=None, api_key=None, logs_dir=None,
                 max_bytes=DIAGNOSTICS_MAX_BYTES, backup_count=DIAGNOSTICS_BACKUP_COUNT):
        super().__init__(name='diagnostic-writer')
        self.daemon = True
        self.running = True
        self.sink = sink
        self.forward_url = forward_url
        self.api_key = api_key
        self.log_file = os.path.join(logs_dir, DIAGNOSTICS_FILE_NAME) if logs_dir else None
        self._file_handler = None
        if self.log_file:
            # delay=True: no file until the first local entry
            self._file_handler = RotatingFileHandler(self.log_file, maxBytes=max_bytes,
                                                     backupCount=backup_count, delay=True)
            self._file_handler.setFormatter(logging.Formatter('%(message)s'))

    def run(self):
        while self.running or not self.sink.queue.empty():
            try:
                entry = self.sink.queue.get(timeout=1.0)
            except queue.Empty:
                continue
            try:
                self.write(entry)
            except Exception as e:
                logger.error(f"DiagnosticWriter error: {e}")
            finally:
                self.sink.queue.task_done()

    def stop(self, timeout=2.0):
        self.running = False
        if self.is_alive():
            self.join(timeout=timeout)
        self.close()

    def close(self):
        if self._file_handler:
            self._file_handler.close()

    def write(self, entry):
        logger.debug(f"{entry['event_type']} worker={entry['worker_id']} {entry['error']}")

        if self.forward_url:
            try:
                headers = {'X-API-KEY': self.api_key, 'Content-Type': 'application/json'}
                response = requests.post(self.forward_url, json=entry, headers=headers, timeout=FORWARD_TIMEOUT)
                if response.status_code == 200:
                    return
                logger.warning(f"Diagnostics collector returned {response.status_code}")
            except requests.RequestException as e:
                logger.error(f"Diagnostics forwarding failed: {e}")
        self._write_local(entry)

    def _write_local(self, entry):
        if not self._file_handler:
            return
        try:
            os.makedirs(os.path.dirname(self.log_file), exist_ok=True)
        except OSError as e:
            logger.error(f"Failed to create diagnostics directory: {e}")
            return
        record = logging.makeLogRecord({'msg': json.dumps(entry), 'levelno': logging.INFO,
                                        'levelname': 'INFO', 'name': __name__})
        self._file_handler.handle(record)
