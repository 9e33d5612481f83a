"""Lifecycle driver.

Owns the event loop for a run: starts the device operation, binds the
cancellation controller to SIGINT/SIGHUP/SIGTERM and blocks until either the
operation finishes or a second signal forces the loop to stop.
"""

import asyncio
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional, TextIO

from qmi_firmware_update.cancellation import CancellationController
from qmi_firmware_update.config import RunConfiguration
from qmi_firmware_update.context import CancellationState, ExitStatus, LifecycleContext
from qmi_firmware_update.exceptions import OperationCancelled
from qmi_firmware_update.operation import DeviceOperation

logger = logging.getLogger(__name__)

# Upper bound on cleanup once the loop was forced to stop
FORCED_STOP_GRACE_SECONDS = 0.25


def _log_abandoned_task(loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
    logger.debug(f"Abandoned after forced stop: {context.get('message')}")


def _drain_pending_tasks(context: LifecycleContext) -> None:
    """Cancel tasks still pending on the context loop and let them unwind.

    Unwinding is unbounded while the run has not been forced to stop. Once the
    state is LOOP_TERMINATING, tasks get FORCED_STOP_GRACE_SECONDS to finish
    their cleanup and are abandoned afterwards.
    """
    loop = context.loop
    tasks = [task for task in asyncio.all_tasks(loop) if not task.done()]
    if not tasks:
        return

    logger.debug(f"Cancelling {len(tasks)} pending task(s)")
    for task in tasks:
        task.cancel()

    if context.cancellation_state != CancellationState.LOOP_TERMINATING:
        waiter = loop.create_task(asyncio.wait(tasks))
        waiter.add_done_callback(lambda _: loop.stop())
        loop.run_forever()
        if not waiter.done():
            # A second signal forced the loop to stop during the drain
            waiter.cancel()
            tasks.append(waiter)

    if context.cancellation_state == CancellationState.LOOP_TERMINATING:
        pending = [task for task in tasks if not task.done()]
        if pending:
            loop.run_until_complete(asyncio.wait(pending, timeout=FORCED_STOP_GRACE_SECONDS))

    abandoned = 0
    for task in tasks:
        if not task.done():
            abandoned += 1
        elif not task.cancelled() and task.exception() is not None:
            logger.debug(f"Task raised during cancellation: {task.exception()}")

    if abandoned:
        logger.debug(f"Abandoning {abandoned} task(s) with unfinished cleanup")
        loop.set_exception_handler(_log_abandoned_task)


def _shutdown_asyncgens(context: LifecycleContext) -> None:
    loop = context.loop
    if context.cancellation_state != CancellationState.LOOP_TERMINATING:
        loop.run_until_complete(loop.shutdown_asyncgens())
        return

    shutdown = loop.create_task(loop.shutdown_asyncgens())
    loop.run_until_complete(asyncio.wait([shutdown], timeout=FORCED_STOP_GRACE_SECONDS))


@contextmanager
def lifecycle_context() -> Iterator[LifecycleContext]:
    """Create a loop and cancellation handle, releasing them on every exit path.

    On exit, tasks still pending on the loop are cancelled and drained,
    async generators are finalized and the loop is closed. After a forced
    stop both steps are bounded by FORCED_STOP_GRACE_SECONDS.
    """
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    context = LifecycleContext(loop=loop)
    try:
        yield context
    finally:
        try:
            _drain_pending_tasks(context)
            _shutdown_asyncgens(context)
        finally:
            asyncio.set_event_loop(None)
            loop.close()


class LifecycleDriver:
    """Runs one device operation under signal-driven cancellation."""

    def __init__(
        self,
        config: RunConfiguration,
        operation: DeviceOperation,
        stderr: Optional[TextIO] = None,
    ):
        """Initialize lifecycle driver.

        Args:
            config: Parsed run configuration
            operation: Coroutine function performing the device work
            stderr: Stream for cancellation notices (sys.stderr if None)
        """
        self.config = config
        self.operation = operation
        self._stderr = stderr
        self.context: Optional[LifecycleContext] = None
        self._loop_stopped = False

    def run(self) -> ExitStatus:
        """Run the operation until it completes or the loop is forced to stop.

        Returns:
            Final exit status of the run
        """
        with lifecycle_context() as context:
            self.context = context
            self._loop_stopped = False
            controller = CancellationController(context, stderr=self._stderr)
            controller.install()

            task = context.loop.create_task(self.operation(self.config, context.handle))
            task.add_done_callback(self._on_operation_done)
            try:
                logger.debug("Running main loop")
                context.loop.run_forever()
            finally:
                # Completion is not reported once the loop has been stopped
                self._loop_stopped = True
                task.remove_done_callback(self._on_operation_done)
                logger.debug(f"Main loop stopped in state {context.cancellation_state.value}")
                try:
                    # Signals stay routed to the controller while tasks unwind
                    _drain_pending_tasks(context)
                finally:
                    controller.uninstall()

        return context.exit_status

    def _on_operation_done(self, task: asyncio.Task) -> None:
        if self._loop_stopped:
            return

        context = self.context

        if task.cancelled():
            logger.debug("Operation task cancelled")
        else:
            error = task.exception()
            if isinstance(error, OperationCancelled):
                logger.debug("Operation stopped at cancellation checkpoint")
            elif error is not None:
                logger.error(f"Operation failed: {error}")
                logger.debug("Operation failure traceback", exc_info=error)
                context.mark_failure()
            else:
                logger.debug("Operation completed")

        context.loop.stop()
