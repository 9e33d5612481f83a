"""Logging policy for console output.

Every record emitted anywhere in the process ends up in a single
``PolicyHandler`` on the root logger. The handler decides, from the record
severity and the ``verbose``/``silent`` options, whether the record is
printed and on which stream:

- silent: nothing is printed, not even warnings or errors
- warnings and errors: always printed on stderr
- debug and everything else: printed on stdout only when verbose
"""

import logging
import sys
from enum import Enum
from typing import Optional, TextIO, Tuple

TIMESTAMP_FORMAT = "%d %b %Y, %H:%M:%S"

WARNING_TAG = "-Warning **"
ERROR_TAG = "-Error **"
DEBUG_TAG = "[Debug]"
DEFAULT_TAG = ""


class Destination(str, Enum):
    """Output stream a record is routed to."""

    STDOUT = "stdout"
    STDERR = "stderr"


def severity_tag(levelno: int) -> Tuple[str, bool]:
    """Map a logging level to its console tag.

    Args:
        levelno: Numeric logging level of the record

    Returns:
        Tuple of (tag, is_error). Levels other than the known ones fall back
        to the untagged default.
    """
    if levelno == logging.WARNING:
        return WARNING_TAG, True
    if levelno in (logging.ERROR, logging.CRITICAL):
        return ERROR_TAG, True
    if levelno == logging.DEBUG:
        return DEBUG_TAG, False
    return DEFAULT_TAG, False


def route(levelno: int, verbose: bool, silent: bool) -> Optional[Destination]:
    """Decide where a record of the given level goes.

    Args:
        levelno: Numeric logging level of the record
        verbose: Whether debug/info output was requested
        silent: Whether all output was suppressed

    Returns:
        Destination stream, or None if the record is dropped
    """
    if silent:
        return None

    _, is_error = severity_tag(levelno)
    if is_error:
        return Destination.STDERR
    if verbose:
        return Destination.STDOUT
    return None


class PolicyFormatter(logging.Formatter):
    """Formats records as ``[<timestamp>] <tag> <message>``."""

    def __init__(self):
        super().__init__(fmt="[%(asctime)s] %(severity_tag)s %(message)s", datefmt=TIMESTAMP_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        record.severity_tag = severity_tag(record.levelno)[0]
        # One line per record: exc_info and stack_info are not rendered
        record.message = record.getMessage()
        record.asctime = self.formatTime(record, self.datefmt)
        return self.formatMessage(record)


class PolicyHandler(logging.Handler):
    """Logging handler applying the console output policy."""

    def __init__(
        self,
        verbose: bool = False,
        silent: bool = False,
        stdout: Optional[TextIO] = None,
        stderr: Optional[TextIO] = None,
    ):
        """Initialize policy handler.

        Args:
            verbose: Deliver debug and default-level records
            silent: Drop every record
            stdout: Stream for debug/info output (sys.stdout at emit time if None)
            stderr: Stream for warnings/errors (sys.stderr at emit time if None)
        """
        super().__init__(level=logging.NOTSET)
        self.verbose = verbose
        self.silent = silent
        self._stdout = stdout
        self._stderr = stderr
        self.setFormatter(PolicyFormatter())

    def stream_for(self, destination: Destination) -> TextIO:
        if destination == Destination.STDERR:
            return self._stderr if self._stderr is not None else sys.stderr
        return self._stdout if self._stdout is not None else sys.stdout

    def emit(self, record: logging.LogRecord) -> None:
        destination = route(record.levelno, self.verbose, self.silent)
        if destination is None:
            return

        try:
            line = self.format(record)
            stream = self.stream_for(destination)
            stream.write(line + "\n")
            stream.flush()
        except Exception:
            self.handleError(record)


def install_log_policy(
    verbose: bool = False,
    silent: bool = False,
    stdout: Optional[TextIO] = None,
    stderr: Optional[TextIO] = None,
) -> PolicyHandler:
    """Install the console policy on the root logger.

    Any previously installed ``PolicyHandler`` is replaced. The root logger is
    opened up to DEBUG so that the policy, not logger levels, decides what
    gets printed.

    Returns:
        The installed handler, to be passed to ``uninstall_log_policy``
    """
    root = logging.getLogger()
    for existing in list(root.handlers):
        if isinstance(existing, PolicyHandler):
            root.removeHandler(existing)

    handler = PolicyHandler(verbose=verbose, silent=silent, stdout=stdout, stderr=stderr)
    root.addHandler(handler)
    root.setLevel(logging.DEBUG)
    return handler


def uninstall_log_policy(handler: PolicyHandler) -> None:
    """Remove a handler installed by ``install_log_policy``."""
    logging.getLogger().removeHandler(handler)
    handler.close()
