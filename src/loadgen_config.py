import os
import sys
import math
import random

# Ensure src/ siblings are importable regardless of CWD
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
from loadgen_errors import ConfigError

_PROJECT_ROOT = os.environ.get('PROJECT_ROOT', os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Defaults
DEFAULT_CONCURRENCY = 1000
DEFAULT_HOST = 'localhost'
DEFAULT_PORT = 8080
DEFAULT_INTERVAL = 1.0
DEFAULT_TIMEOUT = 5.0  # Deadline for the whole exchange of one cycle
DEFAULT_BACKOFF_MAX = 1.0
READ_SIZE = 1024
DEFAULT_LOGS_DIR = os.path.join(_PROJECT_ROOT, 'logs')

_PAYLOAD_LINES = [
    "The quick brown fox jumps over the lazy dog near the riverbank.",
    "Pack my box with five dozen liquor jugs before the ship sails.",
    "How vexingly quick daft zebras jump over the sleeping hounds.",
    "Sphinx of black quartz, judge my vow and weigh every word.",
]
DEFAULT_PAYLOAD = ("\n".join(_PAYLOAD_LINES * 8) + "\n").encode('utf-8')

_DISABLED = ('', '0', 'none', 'off')


class RetryPolicy:
    """
    Delay applied between a failed cycle and the next attempt.

    With base == 0 (the default) failed cycles are retried immediately,
    which is the intended stress behaviour. A positive base enables
    jittered exponential backoff capped at max_delay.
    """

    def __init__(self, base=0.0, max_delay=DEFAULT_BACKOFF_MAX):
        if not math.isfinite(base) or base < 0:
            raise ConfigError('backoff base', base, "must be a finite non-negative number")
        if not math.isfinite(max_delay) or max_delay < 0:
            raise ConfigError('backoff max', max_delay, "must be a finite non-negative number")
        self.base = base
        self.max_delay = max_delay

    def delay(self, consecutive_failures):
        if self.base <= 0 or consecutive_failures <= 0:
            return 0.0
        ceiling = min(self.max_delay, self.base * (2 ** (consecutive_failures - 1)))
        return ceiling * random.uniform(0.5, 1.0)


class LoadConfig:
    """
    Run parameters passed to workers and the aggregator at construction.

    Args:
        concurrency (int): Number of workers / slots.
        host (str): Target host.
        port (int): Target port.
        interval (float): Seconds between aggregator polls.
        timeout (float|None): Per-cycle deadline in seconds, None for no deadline.
        payload (bytes): Bytes written on every cycle.
        retry (RetryPolicy): Delay policy after failed cycles.
        color (bool): Highlight the console report.
        stats_port (int|None): Port for the stats HTTP endpoint, None to disable.
        diagnostics_url (str|None): Collector URL for diagnostic events.
        api_key (str|None): Sent as X-API-KEY to the collector.
        logs_dir (str): Directory for the local diagnostics file.
    """

    def __init__(self, concurrency=DEFAULT_CONCURRENCY, host=DEFAULT_HOST, port=DEFAULT_PORT,
                 interval=DEFAULT_INTERVAL, timeout=DEFAULT_TIMEOUT, payload=DEFAULT_PAYLOAD,
                 retry=None, color=True, stats_port=None, diagnostics_url=None, api_key=None,
                 logs_dir=DEFAULT_LOGS_DIR):
        if not isinstance(concurrency, int) or concurrency < 1:
            raise ConfigError('concurrency', concurrency, "must be a positive integer")
        if not math.isfinite(interval) or interval <= 0:
            raise ConfigError('interval', interval, "must be greater than zero")
        if timeout is not None and (not math.isfinite(timeout) or timeout <= 0):
            raise ConfigError('timeout', timeout, "must be a finite positive number or None")
        if not 0 < port < 65536:
            raise ConfigError('port', port, "must be between 1 and 65535")
        self.concurrency = concurrency
        self.host = host
        self.port = port
        self.interval = interval
        self.timeout = timeout
        self.payload = payload
        self.retry = retry or RetryPolicy()
        self.color = color
        self.stats_port = stats_port
        self.diagnostics_url = diagnostics_url
        self.api_key = api_key
        self.logs_dir = logs_dir

    @property
    def target(self):
        return (self.host, self.port)

    @property
    def target_label(self):
        return f"{self.host}:{self.port}"

    @classmethod
    def from_env(cls, environ=None):
        """
        Builds a config from LOADGEN_* environment variables, falling back
        to the defaults for anything unset.
        """
        env = os.environ if environ is None else environ

        payload = DEFAULT_PAYLOAD
        payload_file = env.get('LOADGEN_PAYLOAD_FILE')
        if payload_file:
            try:
                with open(payload_file, 'rb') as f:
                    payload = f.read()
            except OSError as e:
                raise ConfigError('LOADGEN_PAYLOAD_FILE', payload_file, str(e))

        timeout_raw = env.get('LOADGEN_TIMEOUT')
        if timeout_raw is None:
            timeout = DEFAULT_TIMEOUT
        elif timeout_raw.strip().lower() in _DISABLED:
            timeout = None
        else:
            timeout = _parse(env, 'LOADGEN_TIMEOUT', float, DEFAULT_TIMEOUT)

        stats_port = env.get('LOADGEN_STATS_PORT')

        return cls(
            concurrency=_parse(env, 'LOADGEN_CONCURRENCY', int, DEFAULT_CONCURRENCY),
            host=env.get('LOADGEN_TARGET_HOST', DEFAULT_HOST),
            port=_parse(env, 'LOADGEN_TARGET_PORT', int, DEFAULT_PORT),
            interval=_parse(env, 'LOADGEN_INTERVAL', float, DEFAULT_INTERVAL),
            timeout=timeout,
            payload=payload,
            retry=RetryPolicy(
                base=_parse(env, 'LOADGEN_BACKOFF_BASE', float, 0.0),
                max_delay=_parse(env, 'LOADGEN_BACKOFF_MAX', float, DEFAULT_BACKOFF_MAX),
            ),
            color=env.get('LOADGEN_COLOR', 'True').lower() == 'true',
            stats_port=_parse(env, 'LOADGEN_STATS_PORT', int, None) if stats_port else None,
            diagnostics_url=env.get('DIAGNOSTICS_URL') or None,
            api_key=env.get('API_KEY'),
            logs_dir=env.get('LOGS_DIR', DEFAULT_LOGS_DIR),
        )


def _parse(env, name, kind, default):
    raw = env.get(name)
    if raw is None or raw == '':
        return default
    try:
        return kind(raw)
    except ValueError:
        raise ConfigError(name, raw, f"expected {kind.__name__}")
