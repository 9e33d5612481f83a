"""Shared run state.

The loop, the cancellation handle and the exit status live together in a
``LifecycleContext`` that is passed explicitly to the components that need
them. Everything in here is only touched from the event loop thread.
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Callable, Dict

from qmi_firmware_update.exceptions import OperationCancelled

logger = logging.getLogger(__name__)


class ExitStatus(IntEnum):
    """Process exit status."""

    SUCCESS = 0
    FAILURE = 1


class CancellationState(str, Enum):
    """Escalation state of the cancellation controller."""

    IDLE = "idle"
    CANCEL_REQUESTED = "cancel_requested"
    LOOP_TERMINATING = "loop_terminating"


class CancellationHandle:
    """Token telling the device operation that it should stop.

    The cancellation controller is the only writer. Device operations either
    poll ``is_cancelled()``, call ``raise_if_cancelled()`` at their
    checkpoints, ``await wait()``, or register a callback with ``connect()``.
    """

    def __init__(self):
        self._cancelled = False
        self._event = asyncio.Event()
        self._callbacks: Dict[int, Callable[[], None]] = {}
        self._ids = itertools.count(1)

    def is_cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> bool:
        """Move the handle to the cancelled state.

        Returns:
            True if this call cancelled the handle, False if it already was
        """
        if self._cancelled:
            return False

        self._cancelled = True
        self._event.set()

        callbacks = list(self._callbacks.values())
        self._callbacks.clear()
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.error(f"Error in cancellation callback: {e}")
                logger.debug("Cancellation callback traceback", exc_info=True)

        return True

    def raise_if_cancelled(self) -> None:
        """Raise OperationCancelled if cancellation was requested."""
        if self._cancelled:
            raise OperationCancelled()

    async def wait(self) -> None:
        """Wait until the handle is cancelled."""
        await self._event.wait()

    def connect(self, callback: Callable[[], None]) -> int:
        """Register a callback run once when the handle is cancelled.

        If the handle is already cancelled the callback runs immediately and
        0 is returned.

        Args:
            callback: Callable taking no arguments

        Returns:
            Handler id for ``disconnect()``, or 0 if already cancelled
        """
        if self._cancelled:
            callback()
            return 0

        handler_id = next(self._ids)
        self._callbacks[handler_id] = callback
        return handler_id

    def disconnect(self, handler_id: int) -> None:
        self._callbacks.pop(handler_id, None)


@dataclass
class LifecycleContext:
    """Everything a run owns: loop, cancellation handle, exit status."""

    loop: asyncio.AbstractEventLoop
    handle: CancellationHandle = field(default_factory=CancellationHandle)
    exit_status: ExitStatus = ExitStatus.SUCCESS
    cancellation_state: CancellationState = CancellationState.IDLE

    def mark_failure(self) -> None:
        self.exit_status = ExitStatus.FAILURE
