"""
Unit tests for the polling ticker and logging setup.
"""

import asyncio
import logging

import pytest

from blindbid.core.scheduler import Ticker
from blindbid.utils.logger import BlindBidLogger, get_logger, setup_logging


class TestTicker:
    """Tests for Ticker start/stop."""

    @pytest.mark.asyncio
    async def test_ticks_until_stopped(self):
        calls = []

        async def callback():
            calls.append(len(calls))

        ticker = Ticker(0.01, callback)
        await ticker.start()
        await asyncio.sleep(0.05)
        await ticker.stop()
        seen = len(calls)
        await asyncio.sleep(0.03)

        assert seen >= 2
        assert len(calls) == seen
        assert not ticker.running

    @pytest.mark.asyncio
    async def test_failing_callback_keeps_ticking(self):
        calls = []

        async def callback():
            calls.append(1)
            raise RuntimeError("rpc down")

        ticker = Ticker(0.01, callback)
        await ticker.start()
        await asyncio.sleep(0.05)
        await ticker.stop()

        assert len(calls) >= 2
        assert ticker.ticks == len(calls)

    @pytest.mark.asyncio
    async def test_start_twice_is_noop(self):
        async def callback():
            pass

        ticker = Ticker(1.0, callback)
        await ticker.start()
        task = ticker._task
        await ticker.start()
        assert ticker._task is task
        await ticker.stop()

    def test_interval_must_be_positive(self):
        async def callback():
            pass

        with pytest.raises(ValueError):
            Ticker(0, callback)


class TestLogger:
    """Tests for logger naming and file output."""

    def test_namespaced(self):
        assert get_logger("aggregator").name == "blindbid.aggregator"

    def test_file_handler(self, tmp_path):
        setup_logging(level=logging.DEBUG, log_dir=str(tmp_path))
        get_logger("test").info("hello file")
        for handler in logging.getLogger("blindbid").handlers:
            handler.flush()

        assert "hello file" in (tmp_path / "blindbid.log").read_text()
        setup_logging(level=logging.INFO, log_to_file=False)
        assert BlindBidLogger._initialized
