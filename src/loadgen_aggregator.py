import os
import sys
import threading
import time
import logging
from datetime import datetime

# Ensure src/ siblings are importable regardless of CWD
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
from loadgen_telemetry import host_telemetry

# Configure Logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


class IntervalStats:
    """
    Samples folded during one poll. Values are in milliseconds.

    processing is the residual concurrency - finished: a slot with nothing
    pending at poll time, whether or not a request is actually in flight.
    """

    def __init__(self, concurrency):
        self.concurrency = concurrency
        self.finished = 0
        self.sum_ms = 0.0
        self.max_ms = 0.0
        self.min_ms = None  # unset until the first sample of this interval

    def add(self, sample_ms):
        self.finished += 1
        self.sum_ms += sample_ms
        if sample_ms > self.max_ms:
            self.max_ms = sample_ms
        if self.min_ms is None or sample_ms < self.min_ms:
            self.min_ms = sample_ms

    @property
    def processing(self):
        return self.concurrency - self.finished

    @property
    def average_ms(self):
        if self.finished == 0:
            return 0.0
        # Float summation can drift one ulp outside the observed range
        return min(max(self.sum_ms / self.finished, self.min_ms), self.max_ms)


class Aggregator:
    """
    Polls every slot once per interval without waiting on any of them and
    publishes a snapshot of the samples that happened to be there.

    Args:
        slots (list): SampleSlot per worker.
        interval (float): Seconds slept between polls.
        reporter: Object with emit(snapshot), or None.
        target_label (str): Shown in the report.
        sink (DiagnosticSink): Source of the dropped-diagnostics count, optional.
        telemetry (callable): Returns host usage for the snapshot, or None to skip.
    """

    def __init__(self, slots, interval, reporter=None, target_label='', sink=None,
                 telemetry=host_telemetry):
        self.slots = slots
        self.interval = interval
        self.reporter = reporter
        self.target_label = target_label
        self.sink = sink
        self.telemetry = telemetry
        self.running = True
        self.intervals = 0
        self._latest = None
        self._lock = threading.Lock()

    @property
    def concurrency(self):
        return len(self.slots)

    def poll(self):
        stats = IntervalStats(self.concurrency)
        for slot in self.slots:
            sample = slot.take()
            if sample is not None:
                stats.add(sample * 1000.0)
        return stats

    def snapshot(self, stats):
        snapshot = {
            "timestamp": datetime.now().isoformat(),
            "interval": self.interval,
            "target": self.target_label,
            "concurrency": stats.concurrency,
            "finished": stats.finished,
            "processing": stats.processing,
            "connections_per_sec": stats.finished / self.interval,
            "average_ms": stats.average_ms,
            "max_ms": stats.max_ms,
            "min_ms": stats.min_ms,
        }
        if self.telemetry:
            try:
                snapshot["host"] = self.telemetry()
            except Exception as e:
                logger.warning(f"Host telemetry unavailable: {e}")
        if self.sink is not None:
            snapshot["diagnostics_dropped"] = self.sink.dropped
        return snapshot

    def run_once(self):
        stats = self.poll()
        snapshot = self.snapshot(stats)
        with self._lock:
            self._latest = snapshot
        self.intervals += 1
        if self.reporter:
            self.reporter.emit(snapshot)
        return stats

    @property
    def latest(self):
        with self._lock:
            return self._latest

    def report_loop(self, max_intervals=None):
        """
        Poll, report, sleep. Runs until the process is stopped unless
        max_intervals is given.
        """
        while self.running:
            self.run_once()
            if max_intervals is not None and self.intervals >= max_intervals:
                break
            time.sleep(self.interval)
