"""Device operation interface.

The firmware transfer itself is not implemented here. A device operation is
any coroutine function taking the run configuration and the cancellation
handle; the lifecycle driver runs it as a task on its loop and stops the
loop once it returns or raises.
"""

import asyncio
import logging
from typing import Awaitable, Callable

from qmi_firmware_update.config import RunConfiguration
from qmi_firmware_update.context import CancellationHandle

logger = logging.getLogger(__name__)

DeviceOperation = Callable[[RunConfiguration, CancellationHandle], Awaitable[None]]


def describe_transport(config: RunConfiguration) -> str:
    """Human readable description of how the device will be opened."""
    flags = []
    if config.device_open_proxy:
        flags.append("proxy")
    if config.device_open_mbim:
        flags.append("mbim")
    return ", ".join(flags) if flags else "direct"


async def idle_operation(config: RunConfiguration, handle: CancellationHandle) -> None:
    """Placeholder operation: holds the device slot until the loop is stopped.

    The first signal only marks the operation as cancelled; the loop keeps
    running until a second signal forces it to stop.
    """
    logger.debug(f"Using device {config.device_path} ({describe_transport(config)})")
    if config.traces_enabled:
        logger.debug("Protocol traces enabled")

    await handle.wait()
    logger.debug("Cancellation requested, waiting for the main loop to stop")

    await asyncio.Event().wait()
