"""Tool-wide configuration read from a series of ``key=value`` files."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Iterable, TextIO

VERSION = "0.16"

DEFAULT_OBD_DEVICE = "/dev/ttyUSB0"
DEFAULT_GPS_DEVICE = "localhost"
DEFAULT_LOG_COLUMNS = "temp,rpm,vss,maf,throttlepos"
DEFAULT_DATABASE = "./obdgpslogger.db"

CONFIG_FILENAME = ".obdgpslogger"
SYSTEM_CONFIG_PATH = "/etc/obdgpslogger"
FTDIPTY_CONFIG_PATH = "/tmp/obdftdipty"
CONFIG_ENV_VAR = "OBD_CONFIGFILE"

_STRING_RE = re.compile(r"\s*(\S{1,1023})")
_INT_RE = re.compile(r"\s*([+-]?)(0[xX][0-9a-fA-F]+|0[0-7]*|[1-9][0-9]*)")


@dataclass
class Config:
    """Settings shared by the logger and its tools."""

    obd_device: str = DEFAULT_OBD_DEVICE
    gps_device: str = DEFAULT_GPS_DEVICE
    samplerate: int = 1
    optimisations: int = 0
    log_columns: str = DEFAULT_LOG_COLUMNS
    baudrate: int = -1
    baudrate_upgrade: int = -1
    log_file: str = DEFAULT_DATABASE


# (key in file, attribute, parser, label used in verbose output)
_KEYS = (
    ("obddevice", "obd_device", "str", "OBD Device"),
    ("gpsdevice", "gps_device", "str", "GPS Device"),
    ("log_file", "log_file", "str", "log_file"),
    ("log_columns", "log_columns", "str", "log_columns"),
    ("baudrate", "baudrate", "int", "baudrate"),
    ("baudrate_upgrade", "baudrate_upgrade", "int", "baudrate upgrade"),
    ("samplerate", "samplerate", "int", "samplerate"),
    ("optimisations", "optimisations", "int", "optimisations"),
)


def _scan_string(text: str) -> str | None:
    match = _STRING_RE.match(text)
    return match.group(1) if match else None


def _scan_int(text: str) -> int | None:
    """Read a leading integer the way C's ``%i`` does (decimal, 0x hex, 0 octal)."""
    match = _INT_RE.match(text)
    if not match:
        return None
    sign, digits = match.groups()
    if digits[:2] in ("0x", "0X"):
        value = int(digits[2:], 16)
    elif digits.startswith("0"):
        value = int(digits, 8)
    else:
        value = int(digits)
    return -value if sign == "-" else value


def platform_home_dir() -> str:
    """Return a directory in which to keep the user's dotfile."""
    home = os.environ.get("HOME")
    if home:
        return f"{home}/"
    appdata = os.environ.get("APPDATA")
    if appdata:
        return appdata
    return "."


def parse_config(stream: Iterable[str], config: Config, verbose: bool = False) -> Config:
    """Apply every recognised ``key=value`` line of ``stream`` to ``config``."""
    for line in stream:
        if line.lstrip(" \t").startswith("#"):
            if verbose:
                print(f"Conf found comment: {line}")
            continue

        for key, attr, kind, label in _KEYS:
            prefix = f"{key}="
            if not line.startswith(prefix):
                continue
            rest = line[len(prefix):]
            value = _scan_string(rest) if kind == "str" else _scan_int(rest)
            if value is None:
                continue
            setattr(config, attr, value)
            if verbose:
                print(f"Conf Found {label}: {value}")
    return config


def _parse_file(path: str, config: Config, verbose: bool) -> None:
    if verbose:
        print(f"Attempting to read {path} .. ", end="")
    try:
        with open(path, encoding="utf-8", errors="replace") as stream:
            if verbose:
                print("Opened. Parsing")
            parse_config(stream, config, verbose)
    except OSError:
        if verbose:
            print("Couldn't open")


def _user_config_path() -> str:
    return os.path.join(platform_home_dir(), CONFIG_FILENAME)


def load_config(verbose: bool = False) -> Config:
    """Build a config from defaults, then each config file in turn.

    Later files override earlier ones: the system file, the user's dotfile,
    the file left by the ftdi pty helper, and the file named by
    ``OBD_CONFIGFILE``.
    """
    config = Config()

    _parse_file(SYSTEM_CONFIG_PATH, config, verbose)
    _parse_file(_user_config_path(), config, verbose)
    _parse_file(FTDIPTY_CONFIG_PATH, config, verbose)

    env_file = os.environ.get(CONFIG_ENV_VAR)
    if verbose:
        state = "found" if env_file is not None else "not found"
        print(f"{CONFIG_ENV_VAR} env var {state}: {env_file or ''}")
    if env_file is not None:
        _parse_file(env_file, config, verbose)

    if verbose:
        print(
            "Full Config:\n"
            f"\tobddevice:{config.obd_device}\n"
            f"\tgpsdevice:{config.gps_device}\n"
            f"\tlog_columns:{config.log_columns}\n"
            f"\toptimisations:{config.optimisations}\n"
            f"\tsamplerate:{config.samplerate}\n"
            f"\tbaudrate:{config.baudrate}\n"
            f"\tbaudrate_upgrade:{config.baudrate_upgrade}\n"
            f"\tlog_file:{config.log_file}"
        )
    return config


def _write_lines(config: Config, out: TextIO) -> None:
    out.write(f"obddevice={config.obd_device}\n")
    out.write(f"gpsdevice={config.gps_device}\n")
    out.write(f"log_columns={config.log_columns}\n")
    out.write(f"log_file={config.log_file}\n")
    out.write(f"optimisations={config.optimisations}\n")
    out.write(f"samplerate={config.samplerate}\n")
    out.write(f"baudrate={config.baudrate}\n")
    out.write(f"baudrate_upgrade={config.baudrate_upgrade}\n")


def write_config(config: Config, path: str | os.PathLike | None = None) -> str:
    """Write ``config`` to ``path`` (the user's dotfile by default); return the path."""
    target = os.fspath(path) if path is not None else _user_config_path()
    with open(target, "w", encoding="utf-8") as out:
        _write_lines(config, out)
    return target