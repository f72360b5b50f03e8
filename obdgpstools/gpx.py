"""Export logged gps positions to a GPX track file."""

from __future__ import annotations

import argparse
import os
import sqlite3
import sys
import time
from pathlib import Path
from typing import TextIO

from .config import DEFAULT_DATABASE, VERSION

DEFAULT_OUTFILENAME = "./obdgpslogger.gpx"
PROGRAM_NAME = "obd2gpx"

_SELECT_SQL = (
    "SELECT lat,lon,alt,time,trip FROM gps WHERE trip IS NOT NULL ORDER BY trip,time"
)


def write_header(out: TextIO, filename: str) -> None:
    """Write the GPX prologue and metadata."""
    out.write(
        '<?xml version="1.0" encoding="utf-8"?>\n'
        '<gpx version="1.1" creator="obdgpslogger"\n'
        '\t\txmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"\n'
        '\t\txmlns="http://www.topografix.com/GPX/1/1"\n'
        '\t\txsi:schemaLocation="http://www.topografix.com/GPX/1/1\n'
        '\t\thttp://www.topografix.com/GPX/1/1/gpx.xsd">\n'
        "\t<metadata>\n"
        f"\t\t<name>obd2gpx {filename}</name>\n"
        f"\t\t<desc>OBDGPSLogger obd2gpx convert from {filename}</desc>\n"
        "\t\t<keywords>obdgpslogger,obd2gpx</keywords>\n"
        "\t</metadata>\n"
    )


def write_tail(out: TextIO) -> None:
    """Close the GPX document."""
    out.write("</gpx>\n")


def start_trip(out: TextIO, trip: int) -> None:
    """Open a track for one trip."""
    out.write(f"\t<trk>\n\t\t<name>Trip {trip}</name>\n\t\t<trkseg>\n")


def end_trip(out: TextIO) -> None:
    """Close the current track."""
    out.write("\t\t</trkseg>\n\t</trk>\n")


def _num(value) -> float:
    return 0.0 if value is None else float(value)


def export_gpx(db: sqlite3.Connection, out: TextIO, filename: str) -> int:
    """Write every gps point that belongs to a trip; return the number of points."""
    rows = db.execute(_SELECT_SQL)

    write_header(out, filename)
    current_trip: int | None = None
    points = 0
    for lat, lon, alt, when, trip in rows:
        lat, lon, alt = _num(lat), _num(lon), _num(alt)
        trip = int(trip)
        if trip != current_trip:
            if current_trip is not None:
                end_trip(out)
            print(f"Writing trip {trip}")
            start_trip(out, trip)
            current_trip = trip

        out.write(f'\t\t\t<trkpt lat="{lat:f}" lon="{lon:f}">\n')
        # An altitude of -1000 marks a fix without height.
        if alt > -900:
            out.write(f"\t\t\t\t<ele>{alt:f}</ele>\n")
            out.write("\t\t\t\t<fix>3d</fix>\n")
        else:
            out.write("\t\t\t\t<fix>2d</fix>\n")

        stamp = time.strftime("%Y-%m-%dT%H:%M:%S", time.localtime(int(_num(when))))
        out.write(f"\t\t\t\t<time>{stamp}</time>\n")
        out.write("\t\t\t</trkpt>\n")
        points += 1

    if current_trip is not None:
        end_trip(out)
    write_tail(out)
    return points


def _help_text(program: str = PROGRAM_NAME) -> str:
    """Build the usage text shown for --help."""
    return "\n".join(
        [
            f"Usage: {program} [params]",
            f"   [-o|--out=<{DEFAULT_OUTFILENAME}>]",
            f"   [-d|--db=<{DEFAULT_DATABASE}>]",
            "   [-v|--version] [-h|--help]",
        ]
    )


def _version_text() -> str:
    """Build the version line shown for --version."""
    return f"Version: {VERSION}"


def main(argv: list[str] | None = None) -> int:
    """Convert a logger database into a GPX file."""
    args = sys.argv[1:] if argv is None else list(argv)

    parser = argparse.ArgumentParser(prog=PROGRAM_NAME, add_help=False)
    parser.add_argument("-h", "--help", action="store_true")
    parser.add_argument("-v", "--version", action="store_true")
    parser.add_argument("-d", "--db", default=DEFAULT_DATABASE)
    parser.add_argument("-o", "--out", default=DEFAULT_OUTFILENAME)
    options, unknown = parser.parse_known_args(args)

    must_exit = False
    if options.help or unknown:
        print(_help_text())
        must_exit = True
    if options.version:
        print(_version_text())
        must_exit = True
    if must_exit:
        return 0

    try:
        db = sqlite3.connect(Path(options.db).resolve().as_uri() + "?mode=ro", uri=True)
    except sqlite3.Error as exc:
        print(f"Can't open database {options.db}: {exc}", file=sys.stderr)
        return 1

    try:
        try:
            db.execute(_SELECT_SQL).fetchone()
        except sqlite3.Error as exc:
            print(f"Error attempting to prepare select: {exc}")
            return 1

        try:
            out = open(options.out, "w", encoding="utf-8")
        except OSError as exc:
            print(f"{options.out}: {exc.strerror}", file=sys.stderr)
            return 1

        with out:
            export_gpx(db, out, os.path.basename(options.out))
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())