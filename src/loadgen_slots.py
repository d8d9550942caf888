import queue


class SampleSlot:
    """
    Single-capacity channel between one worker and the aggregator.

    Exactly one worker offers into a slot and only the aggregator takes
    from it. Offering never blocks: if the previous sample has not been
    taken yet it is replaced, so the slot always holds the most recent
    completed cycle.
    """

    def __init__(self, index):
        self.index = index
        self._queue = queue.Queue(maxsize=1)
        self.overwritten = 0

    def offer(self, sample):
        try:
            self._queue.put_nowait(sample)
        except queue.Full:
            # Single writer: once the stale sample is gone the put cannot fail
            try:
                self._queue.get_nowait()
                self.overwritten += 1
            except queue.Empty:
                pass
            self._queue.put_nowait(sample)

    def take(self):
        """Returns the pending sample, or None without waiting if there is none."""
        try:
            return self._queue.get_nowait()
        except queue.Empty:
            return None


def create_slots(count):
    return [SampleSlot(i) for i in range(count)]
