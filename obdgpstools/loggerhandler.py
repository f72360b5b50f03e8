"""Launch the logger as a child process and feed its live readings to a listener."""

from __future__ import annotations

import codecs
import os
import re
import select
import signal
import subprocess
import sys
from typing import IO, Protocol, Sequence

LOGGER_PROGRAM = "obdgpslogger"
READ_SIZE = 4096

_FLOAT = r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|[+-]?(?i:inf(?:inity)?|nan))"
_SINGLE_RE = re.compile(r"(vss|rpm|maf|throttlepos|temp)=" + _FLOAT)
_GPS_RE = re.compile(r"(gpspos)=" + _FLOAT + "," + _FLOAT + "," + _FLOAT)
_LINE_END_RE = re.compile(r"[\r\n]")

_SETTERS = {
    "vss": "set_vss",
    "rpm": "set_rpm",
    "maf": "set_maf",
    "throttlepos": "set_throttle_pos",
    "temp": "set_temp",
    "gpspos": "set_gps",
}


class LoggerListener(Protocol):
    """Receives the readings and raw output of a running logger."""

    def set_vss(self, value: float) -> None: ...

    def set_rpm(self, value: float) -> None: ...

    def set_maf(self, value: float) -> None: ...

    def set_throttle_pos(self, value: float) -> None: ...

    def set_temp(self, value: float) -> None: ...

    def set_gps(self, first: float, second: float, third: float) -> None: ...

    def append_stdout_log(self, text: str) -> None: ...

    def append_stderr_log(self, text: str) -> None: ...


def parse_logger_line(line: str) -> tuple[str, tuple[float, ...]] | None:
    """Parse one line of logger output into a key and its values, if it holds one."""
    match = _GPS_RE.match(line) or _SINGLE_RE.match(line)
    if match is None:
        return None
    key, *values = match.groups()
    return key, tuple(float(v) for v in values)


class LoggerHandler:
    """Runs the logger, line-buffers its output and passes readings on."""

    def __init__(
        self,
        listener: LoggerListener,
        serial_device: str,
        log_file: str,
        command: Sequence[str] = (LOGGER_PROGRAM,),
    ) -> None:
        self._listener = listener
        self._usable = False
        self._started = False
        self._buffer = ""
        self._stdout_decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._stderr_decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._process: subprocess.Popen | None = None

        args = [
            *command,
            "--spam-stdout",
            "--db",
            log_file,
            "--serial",
            serial_device,
            "--samplerate",
            "10",
        ]
        try:
            self._process = subprocess.Popen(
                args, stdout=subprocess.PIPE, stderr=subprocess.PIPE
            )
        except OSError as exc:
            print(f"Couldn't start {args[0]}: {exc}", file=sys.stderr)
            return
        self._usable = True

    @property
    def usable(self) -> bool:
        """Whether the child is running and its output is being read."""
        return self._usable

    @property
    def started(self) -> bool:
        """Whether the logger has reported at least one reading."""
        return self._started

    def __enter__(self) -> LoggerHandler:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _close_pipes(self) -> None:
        if self._process is None:
            return
        for stream in (self._process.stdout, self._process.stderr):
            if stream is not None and not stream.closed:
                stream.close()

    def check_running(self, block: bool = False) -> bool:
        """Reap the child if it has exited (waiting for it if ``block``); return usability."""
        if self._process is None:
            return False
        code = self._process.wait() if block else self._process.poll()
        if code is not None:
            self._close_pipes()
            self._usable = False
        return self._usable

    @staticmethod
    def _read_available(stream: IO[bytes] | None) -> bytes:
        if stream is None or stream.closed:
            return b""
        ready, _, _ = select.select([stream], [], [], 0)
        if not ready:
            return b""
        return os.read(stream.fileno(), READ_SIZE)

    def _update(self, line: str) -> None:
        parsed = parse_logger_line(line)
        if parsed is None:
            return
        key, values = parsed
        getattr(self._listener, _SETTERS[key])(*values)
        self._started = True

    def pulse(self) -> None:
        """Read whatever output is waiting and act on every complete line."""
        if not self._usable or self._process is None:
            return

        err = self._read_available(self._process.stderr)
        if err:
            self._listener.append_stderr_log(self._stderr_decoder.decode(err))

        data = self._read_available(self._process.stdout)
        if data:
            text = self._stdout_decoder.decode(data)
            self._listener.append_stdout_log(text)
            self._buffer += text

        while True:
            match = _LINE_END_RE.search(self._buffer)
            if match is None:
                return
            line = self._buffer[: match.start()]
            self._buffer = self._buffer[match.end():]
            if not line:
                continue
            if not self.check_running(False):
                return
            self._update(line)

    def _signal(self, sig: signal.Signals, name: str) -> None:
        if not self._usable or self._process is None:
            return
        try:
            self._process.send_signal(sig)
        except OSError as exc:
            print(f"Couldn't send signal {name} to child: {exc}", file=sys.stderr)

    def start_trip(self) -> None:
        """Ask the logger to start a trip."""
        self._signal(signal.SIGUSR1, "USR1")

    def end_trip(self) -> None:
        """Ask the logger to end a trip."""
        self._signal(signal.SIGUSR2, "USR2")

    def close(self) -> int | None:
        """Interrupt the logger, wait for it and return its exit code."""
        if self._process is None:
            return None
        if self._usable:
            self._close_pipes()
            try:
                self._process.send_signal(signal.SIGINT)
            except OSError as exc:
                print(f"Couldn't KILL -INT child: {exc}", file=sys.stderr)
            self._process.wait()
            self._usable = False
        self._close_pipes()
        return self._process.returncode