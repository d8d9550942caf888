import os
import sys
import logging

# Ensure src/ siblings are importable regardless of CWD
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
from loadgen_aggregator import Aggregator
from loadgen_config import LoadConfig
from loadgen_diagnostics import DiagnosticSink, DiagnosticWriter
from loadgen_errors import ConfigError
from loadgen_report import ConsoleReporter
from loadgen_slots import create_slots
from loadgen_stats_server import serve_stats
from loadgen_worker import start_workers

# Configure Logging
LOG_LEVEL = os.environ.get('LOADGEN_LOG_LEVEL', 'INFO').upper()
logging.basicConfig(level=LOG_LEVEL, format='%(asctime)s - %(levelname)s - %(message)s')
# Sibling modules already configured the root logger on import
logging.getLogger().setLevel(LOG_LEVEL)
logger = logging.getLogger(__name__)


def build(config, reporter=None):
    """
    Wires slots, workers, diagnostics and the aggregator for one run.
    Workers are started; the report loop is left to the caller.
    """
    sink = DiagnosticSink(config.target_label)
    writer = DiagnosticWriter(sink, forward_url=config.diagnostics_url,
                              api_key=config.api_key, logs_dir=config.logs_dir)
    writer.start()

    slots = create_slots(config.concurrency)
    workers = start_workers(config, slots, sink)
    aggregator = Aggregator(slots, config.interval, reporter=reporter,
                            target_label=config.target_label, sink=sink)
    return aggregator, workers, writer


def main():
    try:
        config = LoadConfig.from_env()
    except ConfigError as e:
        logger.error(str(e))
        sys.exit(2)

    logger.info(f"Load test: {config.concurrency} workers -> {config.target_label}, "
                f"interval {config.interval}s, timeout {config.timeout}")

    aggregator, workers, writer = build(config, ConsoleReporter(color=config.color))
    if config.stats_port:
        serve_stats(aggregator, config.stats_port)

    try:
        aggregator.report_loop()
    except KeyboardInterrupt:
        logger.info("Shutdown signal received...")
    finally:
        aggregator.running = False
        for w in workers:
            w.running = False
        writer.stop()


if __name__ == "__main__":
    main()
