import sys

CLEAR_SCREEN = "\x1b[2J\x1b[H"
YELLOW = "\x1b[33m"
RESET = "\x1b[0m"


def _ms(value):
    return "-" if value is None else f"{value:.3f}ms"


def render_report(snapshot, color=True):
    """
    Formats one interval snapshot as a clear-and-redraw console block.
    """
    lines = [
        f"Target: {snapshot['target']}",
        f"Concurrency: {snapshot['concurrency']}",
        f"Finished: {snapshot['finished']}",
        f"Processing: {snapshot['processing']}",
        f"Connections: {snapshot['connections_per_sec']:.1f}/sec",
        f"Average Roundtrip: {_ms(snapshot['average_ms'])}",
        f"Max Roundtrip: {_ms(snapshot['max_ms'])}",
        f"Min Roundtrip: {_ms(snapshot['min_ms'])}",
    ]
    host = snapshot.get('host')
    if host:
        lines.append(f"Host: CPU {host['cpu_percent']:.1f}% | RAM {host['ram_percent']:.1f}% | "
                     f"RSS {host['process_rss_mb']}MB | Threads {host['threads']}")
    if snapshot.get('diagnostics_dropped'):
        lines.append(f"Diagnostics dropped: {snapshot['diagnostics_dropped']}")

    block = "\n".join(lines) + "\n"
    if color:
        return CLEAR_SCREEN + YELLOW + block + RESET
    return CLEAR_SCREEN + block


class ConsoleReporter:
    def __init__(self, stream=None, color=True):
        self.stream = stream or sys.stdout
        self.color = color

    def emit(self, snapshot):
        self.stream.write(render_report(snapshot, color=self.color))
        self.stream.flush()
