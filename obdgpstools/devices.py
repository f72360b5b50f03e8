"""Guess the names of likely serial devices."""

from __future__ import annotations

import glob

SERIAL_PATTERNS = (
    "/dev/cu.*",      # macOS
    "/dev/rfcomm*",   # Linux bluetooth
    "/dev/ttyUSB*",   # Linux USB serial
    "/dev/ttyS*",     # plain serial ports
)


def guess_serial_devices(default: str | None = None) -> list[str]:
    """Return candidate serial devices, with ``default`` first if given."""
    found = [default] if default else []
    for pattern in SERIAL_PATTERNS:
        found.extend(sorted(glob.glob(pattern)))
    return found