import os
import sys
import threading
import logging

from flask import Flask, jsonify
from flask_cors import CORS

# Ensure src/ siblings are importable regardless of CWD
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
from loadgen_telemetry import host_telemetry

# Configure Logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

app = Flask(__name__)
# Dashboards on other hosts poll the live numbers directly
CORS(app)

# Global State
AGGREGATOR = None


def attach(aggregator):
    global AGGREGATOR
    AGGREGATOR = aggregator


@app.route('/stats', methods=['GET'])
def get_stats():
    """Latest interval snapshot. Only the most recent one is kept."""
    if AGGREGATOR is None or AGGREGATOR.latest is None:
        return jsonify({"error": "No interval completed yet"}), 503
    return jsonify(AGGREGATOR.latest), 200


@app.route('/telemetry', methods=['GET'])
def get_telemetry():
    try:
        return jsonify(host_telemetry()), 200
    except Exception as e:
        logger.error(f"Failed to read host telemetry: {e}")
        return jsonify({"error": "Telemetry unavailable"}), 500


def serve_stats(aggregator, port, host='0.0.0.0'):
    """
    Starts the stats endpoint on a daemon thread.
    """
    attach(aggregator)
    t = threading.Thread(
        target=app.run,
        kwargs={'host': host, 'port': port, 'use_reloader': False},
        name='stats-server',
        daemon=True,
    )
    t.start()
    logger.info(f"Stats endpoint listening on {host}:{port}")
    return t
