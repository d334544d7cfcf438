"""Tests for the app.py entrypoint (exit codes and error hooks)."""

from __future__ import annotations

import asyncio
import logging
import sys
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

_repo = Path(__file__).resolve().parent.parent
if str(_repo) not in sys.path:
    sys.path.insert(0, str(_repo))

import app
from _fakes import make_settings


@patch("app.configure_logging")
@patch("app.signal.signal")
class TestMain(unittest.TestCase):

    @patch.dict("os.environ", {}, clear=True)
    @patch("utils.config.load_dotenv")
    def test_config_error_exits_1(self, _dotenv, _signal, _logging):
        self.assertEqual(app.main(), 1)

    @patch("app.Settings.from_env")
    @patch("app.time.sleep")
    def test_fatal_error_exits_1_after_grace(self, sleep, from_env, signal_mock, _logging):
        from_env.return_value = make_settings()

        def explode(coro):
            coro.close()
            raise RuntimeError("boom")

        with patch("app.asyncio.run", side_effect=explode):
            self.assertEqual(app.main(), 1)
        sleep.assert_called_once_with(app.FATAL_GRACE_SECONDS)
        installed = {call.args[0] for call in signal_mock.call_args_list}
        self.assertEqual(installed, {app.signal.SIGINT, app.signal.SIGTERM})

    @patch("app.Settings.from_env")
    def test_clean_return_exits_0(self, from_env, _signal, _logging):
        from_env.return_value = make_settings()

        def finish(coro):
            coro.close()
            return 1

        with patch("app.asyncio.run", side_effect=finish):
            self.assertEqual(app.main(), 0)


class TestRun(unittest.IsolatedAsyncioTestCase):

    async def test_run_installs_loop_exception_handler(self):
        seen = {}

        class _Scheduler:
            def __init__(self, settings, storage):
                seen["storage"] = storage

            async def run(self):
                seen["handler"] = asyncio.get_running_loop().get_exception_handler()
                return 2

        loop = asyncio.get_running_loop()
        previous = loop.get_exception_handler()
        self.addCleanup(loop.set_exception_handler, previous)

        with patch("app.ContinuousScheduler", _Scheduler):
            cycles = await app.run(make_settings())

        self.assertEqual(cycles, 2)
        self.assertIs(seen["handler"], app._on_loop_exception)
        self.assertEqual(seen["storage"].base_url, "https://test.supabase.co")


class TestHooks(unittest.TestCase):

    def test_loop_exception_is_logged_not_raised(self):
        with self.assertLogs("pulse_monitor", level=logging.ERROR) as logs:
            app._on_loop_exception(MagicMock(), {"message": "Task exception was never retrieved",
                                                 "exception": ValueError("x")})
        self.assertIn("Task exception was never retrieved", logs.output[0])

    @patch("app.logging.shutdown")
    @patch("app.os._exit")
    def test_signal_exits_0(self, exit_mock, _shutdown):
        app._on_signal(app.signal.SIGTERM, None)
        exit_mock.assert_called_once_with(0)


if __name__ == "__main__":
    unittest.main()
