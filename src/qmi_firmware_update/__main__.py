"""Allow running as ``python -m qmi_firmware_update``."""

import sys

from qmi_firmware_update.cli import main

sys.exit(main())
