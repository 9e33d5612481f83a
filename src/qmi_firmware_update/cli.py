"""CLI for qmi-firmware-update.

Parses the command line, sets up console logging and hands over to the
lifecycle driver. ``main()`` returns the process exit code instead of
exiting so it can be driven from tests.
"""

import logging
import sys
from typing import Optional, Sequence

import click

from qmi_firmware_update.config import (
    DEVICE_ENV_VAR,
    PROGRAM_NAME,
    PROGRAM_VERSION,
    RunConfiguration,
)
from qmi_firmware_update.context import ExitStatus
from qmi_firmware_update.exceptions import ConfigurationError
from qmi_firmware_update.lifecycle import LifecycleDriver
from qmi_firmware_update.log_policy import install_log_policy, uninstall_log_policy
from qmi_firmware_update.operation import DeviceOperation, describe_transport, idle_operation

logger = logging.getLogger(__name__)

VERSION_BANNER = (
    "\n"
    f"{PROGRAM_NAME} {PROGRAM_VERSION}\n"
    "Copyright (C) 2016 Bjørn Mork\n"
    "Copyright (C) 2016 Zodiac Inflight Innovations\n"
    "Copyright (C) 2016 Aleksander Morgado\n"
    "License GPLv2+: GNU GPL version 2 or later <http://gnu.org/licenses/gpl-2.0.html>\n"
    "This is free software: you are free to change and redistribute it.\n"
    "There is NO WARRANTY, to the extent permitted by law.\n"
    "\n"
)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "-d",
    "--device",
    "device_path",
    type=click.Path(),
    envvar=DEVICE_ENV_VAR,
    metavar="[PATH]",
    help="Specify device path."
)
@click.option(
    "-p",
    "--device-open-proxy",
    is_flag=True,
    help="Request to use the 'qmi-proxy' proxy."
)
@click.option(
    "--device-open-mbim",
    is_flag=True,
    help="Open an MBIM device with EXT_QMUX support."
)
@click.option(
    "-v",
    "--verbose",
    is_flag=True,
    help="Run action with verbose logs, including the debug ones."
)
@click.option(
    "--silent",
    is_flag=True,
    help="Run action with no logs; not even the error/warning ones."
)
@click.option(
    "-V",
    "--version",
    "version_requested",
    is_flag=True,
    help="Print version."
)
def cli(device_path, device_open_proxy, device_open_mbim, verbose, silent, version_requested):
    """Update firmware in QMI devices."""
    return RunConfiguration(
        device_path=device_path,
        device_open_proxy=device_open_proxy,
        device_open_mbim=device_open_mbim,
        verbose=verbose,
        silent=silent,
        version_requested=version_requested,
    )


def parse_configuration(argv: Sequence[str]) -> Optional[RunConfiguration]:
    """Parse command-line arguments.

    Args:
        argv: Arguments without the program name

    Returns:
        Run configuration, or None if help was printed

    Raises:
        ConfigurationError: If the arguments cannot be parsed
    """
    try:
        result = cli.main(args=list(argv), prog_name=PROGRAM_NAME, standalone_mode=False)
    except click.ClickException as e:
        raise ConfigurationError(e.format_message()) from e

    if isinstance(result, RunConfiguration):
        return result
    return None


def run(config: RunConfiguration, operation: DeviceOperation) -> ExitStatus:
    """Install console logging and drive the device operation.

    Raises:
        ConfigurationError: If no device path was given
    """
    handler = install_log_policy(verbose=config.verbose, silent=config.silent)
    try:
        if not config.has_device:
            raise ConfigurationError("no device path specified")

        logger.debug(f"Device {config.device_path} selected ({describe_transport(config)})")
        return LifecycleDriver(config, operation).run()
    finally:
        uninstall_log_policy(handler)


def main(argv: Optional[Sequence[str]] = None, operation: Optional[DeviceOperation] = None) -> int:
    """Program entry point.

    Args:
        argv: Arguments without the program name (sys.argv[1:] if None)
        operation: Device operation to run (idle placeholder if None)

    Returns:
        Process exit code
    """
    if argv is None:
        argv = sys.argv[1:]

    try:
        config = parse_configuration(argv)
        if config is None:
            return int(ExitStatus.SUCCESS)

        if config.version_requested:
            click.echo(VERSION_BANNER, nl=False)
            return int(ExitStatus.SUCCESS)

        return int(run(config, operation or idle_operation))

    except ConfigurationError as e:
        click.echo(f"error: {e}", err=True)
        return int(ExitStatus.FAILURE)


if __name__ == "__main__":
    sys.exit(main())
