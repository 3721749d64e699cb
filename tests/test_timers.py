"""Unit tests for LoopTimer."""

import asyncio
from unittest.mock import Mock

import pytest

from sage_window_manager.timers import LoopTimer


class TestLoopTimer:
    """Test one-shot loop timers."""

    @pytest.mark.asyncio
    async def test_fires_once(self):
        callback = Mock()
        timer = LoopTimer(asyncio.get_running_loop(), 10, callback)
        assert timer.active is True

        await asyncio.sleep(0.05)

        callback.assert_called_once()
        assert timer.active is False

    @pytest.mark.asyncio
    async def test_cancel_prevents_callback(self):
        callback = Mock()
        timer = LoopTimer(asyncio.get_running_loop(), 10, callback)

        timer.cancel()
        timer.cancel()
        await asyncio.sleep(0.05)

        callback.assert_not_called()
        assert timer.active is False

    @pytest.mark.asyncio
    async def test_cancel_after_fire_is_noop(self):
        timer = LoopTimer(asyncio.get_running_loop(), 0, Mock())
        await asyncio.sleep(0.01)

        timer.cancel()

        assert timer.active is False

    @pytest.mark.asyncio
    async def test_callback_error_is_logged(self, caplog):
        """Test an exception in the callback does not reach the loop."""
        timer = LoopTimer(asyncio.get_running_loop(), 0, Mock(side_effect=ValueError("bad")))

        await asyncio.sleep(0.01)

        assert timer.active is False
        assert "Timer callback failed: bad" in caplog.text
