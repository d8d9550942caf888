import json
import os
import shutil
import tempfile
import unittest
from unittest.mock import patch, MagicMock
import requests
from loadgen_diagnostics import DiagnosticSink, DiagnosticWriter, DIAGNOSTICS_FILE_NAME
from loadgen_errors import ConnectError


class TestDiagnosticSink(unittest.TestCase):

    def test_report_enqueues_entry(self):
        sink = DiagnosticSink('localhost:8080')
        sink.report_error(ConnectError(3, ConnectionRefusedError("refused")))
        entry = sink.queue.get_nowait()
        self.assertEqual(entry['event_type'], 'CONNECT_ERROR')
        self.assertEqual(entry['worker_id'], 3)
        self.assertEqual(entry['target'], 'localhost:8080')
        self.assertIn('refused', entry['error'])

    def test_full_queue_drops_without_blocking(self):
        sink = DiagnosticSink('t', maxsize=2)
        for i in range(5):
            sink.report('READ_ERROR', i, 'eof')
        self.assertEqual(sink.queue.qsize(), 2)
        self.assertEqual(sink.dropped, 3)


class TestDiagnosticWriter(unittest.TestCase):

    def setUp(self):
        self.logs_dir = tempfile.mkdtemp()
        self.sink = DiagnosticSink('localhost:8080')
        self.entry = {"timestamp": "2026-10-19T10:00:00", "event_type": "WRITE_ERROR",
                      "worker_id": 1, "target": "localhost:8080", "error": "broken pipe"}
        self.writers = []

    def make_writer(self, **kwargs):
        writer = DiagnosticWriter(self.sink, logs_dir=self.logs_dir, **kwargs)
        self.writers.append(writer)
        return writer

    def tearDown(self):
        for writer in self.writers:
            writer.close()
        shutil.rmtree(self.logs_dir, ignore_errors=True)

    def read_local(self):
        with open(os.path.join(self.logs_dir, DIAGNOSTICS_FILE_NAME)) as f:
            return [json.loads(line) for line in f]

    def test_writes_local_file_without_collector(self):
        writer = self.make_writer()
        writer.write(self.entry)
        writer.write(self.entry)
        self.assertEqual(len(self.read_local()), 2)

    @patch('loadgen_diagnostics.requests.post')
    def test_forwards_to_collector(self, mock_post):
        mock_post.return_value = MagicMock(status_code=200)
        writer = self.make_writer(forward_url='http://collector/diagnostics', api_key='secret')
        writer.write(self.entry)
        args, kwargs = mock_post.call_args
        self.assertEqual(args[0], 'http://collector/diagnostics')
        self.assertEqual(kwargs['json'], self.entry)
        self.assertEqual(kwargs['headers']['X-API-KEY'], 'secret')
        self.assertFalse(os.path.exists(os.path.join(self.logs_dir, DIAGNOSTICS_FILE_NAME)))

    @patch('loadgen_diagnostics.requests.post')
    def test_falls_back_to_local_on_failure(self, mock_post):
        mock_post.side_effect = requests.exceptions.ConnectionError("collector down")
        writer = self.make_writer(forward_url='http://collector/diagnostics')
        writer.write(self.entry)

        mock_post.side_effect = None
        mock_post.return_value = MagicMock(status_code=500)
        writer.write(self.entry)
        self.assertEqual(len(self.read_local()), 2)

    def test_thread_drains_queue(self):
        writer = self.make_writer()
        writer.start()
        for i in range(3):
            self.sink.report('CONNECT_ERROR', i, 'refused')
        self.sink.queue.join()
        writer.stop()
        self.assertEqual([e['worker_id'] for e in self.read_local()], [0, 1, 2])

    def test_local_file_size_is_bounded(self):
        writer = self.make_writer(max_bytes=4096, backup_count=2)
        for i in range(2000):
            writer.write(dict(self.entry, worker_id=i))
        writer.close()

        files = [f for f in os.listdir(self.logs_dir) if f.startswith(DIAGNOSTICS_FILE_NAME)]
        self.assertEqual(len(files), 3)
        entry_size = len(json.dumps(dict(self.entry, worker_id=1999))) + 1
        for name in files:
            size = os.path.getsize(os.path.join(self.logs_dir, name))
            self.assertLessEqual(size, 4096 + entry_size)
        # The live file holds the newest entries
        self.assertEqual(self.read_local()[-1]['worker_id'], 1999)


if __name__ == '__main__':
    unittest.main()
