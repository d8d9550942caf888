import unittest
from unittest.mock import patch, MagicMock
import loadgen_stats_server as stats_server
from loadgen_aggregator import Aggregator
from loadgen_slots import create_slots


class TestStatsServer(unittest.TestCase):

    def setUp(self):
        self.app = stats_server.app.test_client()
        self.app.testing = True
        self.slots = create_slots(3)
        self.aggregator = Aggregator(self.slots, 1.0, target_label='localhost:8080', telemetry=None)
        stats_server.attach(self.aggregator)

    def tearDown(self):
        stats_server.attach(None)

    def test_stats_before_first_interval(self):
        response = self.app.get('/stats')
        self.assertEqual(response.status_code, 503)

    def test_stats_returns_latest_snapshot(self):
        self.slots[0].offer(0.004)
        self.aggregator.run_once()
        response = self.app.get('/stats')
        self.assertEqual(response.status_code, 200)
        data = response.get_json()
        self.assertEqual(data['concurrency'], 3)
        self.assertEqual(data['finished'], 1)
        self.assertEqual(data['processing'], 2)

        self.aggregator.run_once()
        data = self.app.get('/stats').get_json()
        self.assertEqual(data['finished'], 0)
        self.assertIsNone(data['min_ms'])

    @patch('loadgen_telemetry.psutil')
    def test_telemetry(self, mock_psutil):
        mock_psutil.cpu_percent.return_value = 12.5
        mock_psutil.virtual_memory.return_value = MagicMock(percent=43.0)
        mock_psutil.Process.return_value.memory_info.return_value = MagicMock(rss=50 * 1024 * 1024)
        response = self.app.get('/telemetry')
        self.assertEqual(response.status_code, 200)
        data = response.get_json()
        self.assertEqual(data['cpu_percent'], 12.5)
        self.assertEqual(data['ram_percent'], 43.0)
        self.assertEqual(data['process_rss_mb'], 50.0)

    @patch('loadgen_stats_server.host_telemetry', side_effect=RuntimeError("no sensors"))
    def test_telemetry_failure(self, _):
        response = self.app.get('/telemetry')
        self.assertEqual(response.status_code, 500)

    def test_cors_header(self):
        self.aggregator.run_once()
        response = self.app.get('/stats', headers={'Origin': 'http://dashboard.local'})
        self.assertEqual(response.headers.get('Access-Control-Allow-Origin'), '*')


if __name__ == '__main__':
    unittest.main()
