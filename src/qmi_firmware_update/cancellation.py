"""Signal-driven cancellation with two-stage escalation.

The first SIGINT/SIGHUP/SIGTERM asks the device operation to stop through the
cancellation handle and flags the run as failed. A second signal stops the
event loop right away, whatever state the operation is in. Any further
signal is ignored.

The escalation rules live in ``transition()``, a pure function over
``(state, signal, loop_running)``, so they can be exercised without sending
real signals. ``CancellationController`` applies the resulting effects to a
``LifecycleContext``.
"""

import logging
import signal
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Optional, TextIO, Tuple

from qmi_firmware_update.context import CancellationState, LifecycleContext

logger = logging.getLogger(__name__)

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGHUP, signal.SIGTERM)

CANCEL_OPERATION_NOTICE = "cancelling the operation..."
CANCEL_LOOP_NOTICE = "cancelling the main loop..."


class Effect(str, Enum):
    """Side effect requested by a state transition."""

    MARK_FAILURE = "mark_failure"
    CANCEL_OPERATION = "cancel_operation"
    NOTIFY_CANCEL_OPERATION = "notify_cancel_operation"
    NOTIFY_CANCEL_LOOP = "notify_cancel_loop"
    STOP_LOOP = "stop_loop"


@dataclass(frozen=True)
class Transition:
    """Result of feeding one signal to the state machine."""

    next_state: CancellationState
    effects: Tuple[Effect, ...] = ()


def transition(state: CancellationState, signum: int, loop_running: bool) -> Transition:
    """Compute the next cancellation state for a delivered signal.

    Args:
        state: Current cancellation state
        signum: Delivered signal; must be one of HANDLED_SIGNALS
        loop_running: Whether the event loop is currently running

    Returns:
        Next state and the ordered effects to apply

    Raises:
        ValueError: If signum is not a handled signal
    """
    if signum not in HANDLED_SIGNALS:
        raise ValueError(f"Unhandled signal: {signum}")

    if state == CancellationState.IDLE:
        return Transition(
            CancellationState.CANCEL_REQUESTED,
            (Effect.MARK_FAILURE, Effect.CANCEL_OPERATION, Effect.NOTIFY_CANCEL_OPERATION),
        )

    if state == CancellationState.CANCEL_REQUESTED:
        if loop_running:
            return Transition(
                CancellationState.LOOP_TERMINATING,
                (Effect.NOTIFY_CANCEL_LOOP, Effect.STOP_LOOP),
            )
        return Transition(CancellationState.LOOP_TERMINATING)

    return Transition(CancellationState.LOOP_TERMINATING)


class CancellationController:
    """Applies the escalation state machine to a lifecycle context.

    Notices are written straight to stderr and never go through the logging
    policy: they are printed even when running with --silent.
    """

    def __init__(self, context: LifecycleContext, stderr: Optional[TextIO] = None):
        """Initialize cancellation controller.

        Args:
            context: Lifecycle context the effects are applied to
            stderr: Stream for operator notices (sys.stderr at write time if None)
        """
        self.context = context
        self._stderr = stderr
        self._installed = False

    @property
    def state(self) -> CancellationState:
        return self.context.cancellation_state

    def install(self) -> None:
        """Register the controller for all handled signals on the context loop."""
        for signum in HANDLED_SIGNALS:
            self.context.loop.add_signal_handler(signum, self.handle_signal, signum)
        self._installed = True
        logger.debug("Signal handlers configured")

    def uninstall(self) -> None:
        """Restore default handling for all handled signals."""
        if not self._installed:
            return
        for signum in HANDLED_SIGNALS:
            self.context.loop.remove_signal_handler(signum)
        self._installed = False

    def handle_signal(self, signum: int) -> Transition:
        """Feed a delivered signal to the state machine and apply its effects.

        Args:
            signum: Delivered signal number

        Returns:
            The applied transition
        """
        result = transition(self.state, signum, self.context.loop.is_running())

        if result.effects:
            logger.debug(f"Received signal {signal.Signals(signum).name} in state {self.state.value}")

        for effect in result.effects:
            self._apply(effect)

        self.context.cancellation_state = result.next_state
        return result

    def _apply(self, effect: Effect) -> None:
        if effect == Effect.MARK_FAILURE:
            self.context.mark_failure()
        elif effect == Effect.CANCEL_OPERATION:
            self.context.handle.cancel()
        elif effect == Effect.NOTIFY_CANCEL_OPERATION:
            self._notify(CANCEL_OPERATION_NOTICE)
        elif effect == Effect.NOTIFY_CANCEL_LOOP:
            self._notify(CANCEL_LOOP_NOTICE)
        elif effect == Effect.STOP_LOOP:
            self.context.loop.stop()

    def _notify(self, message: str) -> None:
        stream = self._stderr if self._stderr is not None else sys.stderr
        stream.write(message + "\n")
        stream.flush()
