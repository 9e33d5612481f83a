"""Tests for the cancellation handle and lifecycle context."""

import asyncio
from unittest.mock import MagicMock

import pytest

from qmi_firmware_update.context import (
    CancellationHandle,
    CancellationState,
    ExitStatus,
    LifecycleContext,
)
from qmi_firmware_update.exceptions import OperationCancelled


class TestCancellationHandle:
    """Test CancellationHandle class."""

    def test_initially_not_cancelled(self):
        """Test a new handle is not cancelled."""
        handle = CancellationHandle()

        assert handle.is_cancelled() is False
        handle.raise_if_cancelled()

    def test_cancel(self):
        """Test cancel flips the flag once."""
        handle = CancellationHandle()

        assert handle.cancel() is True
        assert handle.cancel() is False
        assert handle.is_cancelled() is True

    def test_raise_if_cancelled(self):
        """Test checkpoint raises after cancellation."""
        handle = CancellationHandle()
        handle.cancel()

        with pytest.raises(OperationCancelled):
            handle.raise_if_cancelled()

    def test_connect_callbacks_run_once(self):
        """Test connected callbacks run once on cancel."""
        handle = CancellationHandle()
        callback = MagicMock()
        handle.connect(callback)

        handle.cancel()
        handle.cancel()

        callback.assert_called_once_with()

    def test_connect_after_cancel_runs_immediately(self):
        """Test connecting to a cancelled handle runs the callback right away."""
        handle = CancellationHandle()
        handle.cancel()
        callback = MagicMock()

        handler_id = handle.connect(callback)

        assert handler_id == 0
        callback.assert_called_once_with()

    def test_disconnect(self):
        """Test disconnected callbacks are not run."""
        handle = CancellationHandle()
        callback = MagicMock()
        handler_id = handle.connect(callback)

        handle.disconnect(handler_id)
        handle.cancel()

        callback.assert_not_called()

    def test_callback_errors_do_not_stop_cancellation(self):
        """Test a failing callback does not prevent the others."""
        handle = CancellationHandle()
        executed = []

        def failing_callback():
            executed.append("before_error")
            raise RuntimeError("Test error")

        def successful_callback():
            executed.append("after_error")

        handle.connect(failing_callback)
        handle.connect(successful_callback)

        assert handle.cancel() is True
        assert executed == ["before_error", "after_error"]

    @pytest.mark.asyncio
    async def test_wait(self):
        """Test waiting until cancellation."""
        handle = CancellationHandle()

        async def cancel_later():
            await asyncio.sleep(0.05)
            handle.cancel()

        asyncio.create_task(cancel_later())
        await asyncio.wait_for(handle.wait(), timeout=1.0)

        assert handle.is_cancelled() is True

    @pytest.mark.asyncio
    async def test_wait_already_cancelled(self):
        """Test wait returns immediately on a cancelled handle."""
        handle = CancellationHandle()
        handle.cancel()

        await asyncio.wait_for(handle.wait(), timeout=0.1)


class TestLifecycleContext:
    """Test LifecycleContext defaults."""

    def test_defaults(self):
        """Test context starts idle and successful with its own handle."""
        context = LifecycleContext(loop=MagicMock())

        assert context.exit_status == ExitStatus.SUCCESS
        assert context.cancellation_state == CancellationState.IDLE
        assert isinstance(context.handle, CancellationHandle)

    def test_handles_not_shared(self):
        """Test each context gets a fresh handle."""
        first = LifecycleContext(loop=MagicMock())
        second = LifecycleContext(loop=MagicMock())

        assert first.handle is not second.handle

    def test_mark_failure(self):
        """Test failure marking."""
        context = LifecycleContext(loop=MagicMock())

        context.mark_failure()

        assert context.exit_status == ExitStatus.FAILURE
        assert int(context.exit_status) == 1
