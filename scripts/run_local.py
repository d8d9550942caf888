import logging
import os
import sys

# Add src/ to path so we can import from there
_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, os.path.join(_ROOT, 'src'))

from loadgen_echo_target import EchoTarget
import loadgen

# Configure Logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

TARGET_DELAY = float(os.environ.get('TARGET_DELAY', '0.005'))


def main():
    """
    Starts a local echo target on a free port and points the load
    generator at it. Other LOADGEN_* settings still apply.
    """
    target = EchoTarget(delay=TARGET_DELAY).start()
    os.environ['LOADGEN_TARGET_HOST'] = '127.0.0.1'
    os.environ['LOADGEN_TARGET_PORT'] = str(target.port)
    logger.info(f"Local target on port {target.port}, reply delay {TARGET_DELAY}s")
    try:
        loadgen.main()
    finally:
        target.stop()


if __name__ == "__main__":
    main()
