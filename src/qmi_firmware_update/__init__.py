"""Command line tool to update firmware in QMI devices.

Provides the process lifecycle around a device operation:
- Command-line parsing into a frozen run configuration
- Console logging policy (verbose/silent)
- Two-stage signal-driven cancellation of the running operation
"""

from qmi_firmware_update.config import PROGRAM_VERSION, RunConfiguration
from qmi_firmware_update.context import (
    CancellationHandle,
    CancellationState,
    ExitStatus,
    LifecycleContext,
)
from qmi_firmware_update.exceptions import (
    ConfigurationError,
    OperationCancelled,
    QmiFirmwareUpdateError,
)
from qmi_firmware_update.cancellation import CancellationController, transition
from qmi_firmware_update.lifecycle import LifecycleDriver
from qmi_firmware_update.cli import main

__version__ = PROGRAM_VERSION

__all__ = [
    "RunConfiguration",
    "CancellationHandle",
    "CancellationState",
    "ExitStatus",
    "LifecycleContext",
    "ConfigurationError",
    "OperationCancelled",
    "QmiFirmwareUpdateError",
    "CancellationController",
    "transition",
    "LifecycleDriver",
    "main",
]
