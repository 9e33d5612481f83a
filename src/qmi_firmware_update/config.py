"""Run configuration model.

The configuration is built once from the command line and never mutated
afterwards; every component receives the same frozen instance.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

PROGRAM_NAME = "qmi-firmware-update"
PROGRAM_VERSION = "1.0.0"

DEVICE_ENV_VAR = "QMI_FIRMWARE_UPDATE_DEVICE"


class RunConfiguration(BaseModel):
    """Options controlling a single firmware update run."""

    model_config = ConfigDict(frozen=True)

    device_path: Optional[str] = Field(None, description="Target device path")
    device_open_proxy: bool = Field(False, description="Reach the device through qmi-proxy")
    device_open_mbim: bool = Field(False, description="Open an MBIM device with QMI-over-MBIM support")
    verbose: bool = Field(False, description="Deliver debug and info logs")
    silent: bool = Field(False, description="Suppress all log delivery")
    version_requested: bool = Field(False, description="Print version banner and exit")

    @property
    def traces_enabled(self) -> bool:
        """Whether the device operation should log raw protocol traces."""
        return self.verbose

    @property
    def has_device(self) -> bool:
        """Check if a device path was supplied, even an empty one."""
        return self.device_path is not None
