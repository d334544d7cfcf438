"""Tests for utils/logs.py."""

from __future__ import annotations

import logging
import sys
import tempfile
import unittest
from logging.handlers import RotatingFileHandler
from pathlib import Path

_repo = Path(__file__).resolve().parent.parent
if str(_repo) not in sys.path:
    sys.path.insert(0, str(_repo))

from utils.logs import configure_logging


class TestConfigureLogging(unittest.TestCase):

    def setUp(self):
        root = logging.getLogger()
        self._saved = (root.level, list(root.handlers))

    def tearDown(self):
        root = logging.getLogger()
        for h in list(root.handlers):
            root.removeHandler(h)
            h.close()
        level, handlers = self._saved
        root.setLevel(level)
        for h in handlers:
            root.addHandler(h)

    def test_stream_only(self):
        root = configure_logging("debug")
        self.assertEqual(root.level, logging.DEBUG)
        self.assertEqual(len(root.handlers), 1)

    def test_rotating_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "logs" / "pulse.log"
            root = configure_logging("INFO", str(path))
            self.assertTrue(any(isinstance(h, RotatingFileHandler) for h in root.handlers))
            logging.getLogger("pulse_monitor").info("hello file")
            for h in root.handlers:
                h.flush()
            self.assertIn("hello file", path.read_text(encoding="utf-8"))
            for h in list(root.handlers):
                root.removeHandler(h)
                h.close()

    def test_unknown_level_falls_back_to_info(self):
        self.assertEqual(configure_logging("chatty").level, logging.INFO)


if __name__ == "__main__":
    unittest.main()
