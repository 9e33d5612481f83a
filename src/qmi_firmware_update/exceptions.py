"""Exceptions raised by the firmware update lifecycle."""


class QmiFirmwareUpdateError(Exception):
    """Base class for all qmi-firmware-update errors."""


class ConfigurationError(QmiFirmwareUpdateError):
    """Command-line arguments could not be turned into a runnable configuration."""


class OperationCancelled(QmiFirmwareUpdateError):
    """The device operation was asked to stop at a cancellation checkpoint."""

    def __init__(self, message: str = "operation cancelled"):
        super().__init__(message)
