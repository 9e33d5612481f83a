"""Pytest configuration and shared fixtures."""

import io
import logging
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add package sources to Python path
repo_root = Path(__file__).parent.parent
package_src = repo_root / "src"

sys.path.insert(0, str(package_src))


@pytest.fixture
def stdout_buffer():
    """Provide an in-memory stream standing in for stdout."""
    return io.StringIO()


@pytest.fixture
def stderr_buffer():
    """Provide an in-memory stream standing in for stderr."""
    return io.StringIO()


@pytest.fixture
def run_config():
    """Provide a run configuration with a device path."""
    from qmi_firmware_update.config import RunConfiguration

    return RunConfiguration(device_path="/dev/cdc-wdm0")


@pytest.fixture
def mock_context():
    """Provide a lifecycle context whose loop is a running mock."""
    from qmi_firmware_update.context import LifecycleContext

    loop = MagicMock()
    loop.is_running.return_value = True
    return LifecycleContext(loop=loop)


@pytest.fixture
def real_context():
    """Provide a lifecycle context backed by a real, not running, event loop."""
    from qmi_firmware_update.lifecycle import lifecycle_context

    with lifecycle_context() as context:
        yield context


@pytest.fixture(autouse=True)
def no_device_env(monkeypatch):
    """Make sure the device path never leaks in from the environment."""
    from qmi_firmware_update.config import DEVICE_ENV_VAR

    monkeypatch.delenv(DEVICE_ENV_VAR, raising=False)


@pytest.fixture(autouse=True)
def reset_log_policy():
    """Remove policy handlers installed by a test and restore the root level."""
    root = logging.getLogger()
    level = root.level
    yield

    from qmi_firmware_update.log_policy import PolicyHandler

    for handler in list(root.handlers):
        if isinstance(handler, PolicyHandler):
            root.removeHandler(handler)
    root.setLevel(level)


# Markers for test categories
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "requires_signals: Tests delivering real POSIX signals")
