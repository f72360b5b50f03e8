"""Export logged trips to a KML file of charts, one folder per measurement."""

from __future__ import annotations

import argparse
import re
import sqlite3
import sys
from pathlib import Path
from typing import Callable, Sequence, TextIO

from .config import DEFAULT_DATABASE, VERSION
from .heightandcolor import kml_value_height_color
from .justgps import gps_pos_vel
from .singleheight import kml_value_height

DEFAULT_OUTFILENAME = "./obdlogger.kml"
DEFAULT_KMLFOLDERNAME = "Output from OBD GPS Logger"
DEFAULT_MAXALTITUDE = 1000
PROGRAM_NAME = "obdgpskml"

KML_NAMESPACE = "http://www.opengis.net/kml/2.2"

_TRIP_SQL = (
    "SELECT trip.tripid AS tripid,trip.start AS start,trip.end AS end "
    ",COUNT(trip.tripid) AS gpscount "
    "FROM trip LEFT JOIN gps ON trip.tripid=gps.trip "
    "GROUP BY trip.tripid "
    "ORDER BY trip.tripid"
)

_LEADING_INT_RE = re.compile(r"\s*([+-]?\d+)")

TripRow = tuple[int, float, float, int]
Draw = Callable[[str, int, float, float], None]


def _table_columns(db: sqlite3.Connection, table: str) -> list[str]:
    return [row[1] for row in db.execute(f"PRAGMA table_info({table})")]


def has_gps_speed(db: sqlite3.Connection) -> bool:
    """Whether the gps table has a ``speed`` column."""
    return "speed" in _table_columns(db, "gps")


def check_trip_columns(db: sqlite3.Connection) -> list[str]:
    """Return the tables among obd and gps that lack a ``trip`` column."""
    missing = []
    for table in ("obd", "gps"):
        try:
            columns = _table_columns(db, table)
        except sqlite3.Error as exc:
            print(f'Error preparing stmt "PRAGMA table_info({table})": {exc}', file=sys.stderr)
            columns = []
        if "trip" not in columns:
            print(
                f"trip column missing from {table} table:\n"
                "  Please run obdlogrepair on this database",
                file=sys.stderr,
            )
            missing.append(table)
    return missing


def _progress(show: bool, value: str) -> None:
    if show:
        print(value, flush=True)


def _num(value) -> float:
    return 0.0 if value is None else float(value)


def _folder(
    out: TextIO,
    title: str,
    description: str,
    trips: Sequence[TripRow],
    label: str,
    draw: Draw,
) -> int:
    """Write one folder holding a chart per trip; return the number of charts."""
    out.write(f"<Folder>\n<name>{title}</name>\n<description>{description}</description>\n")
    written = 0
    for trip, start, end, gps_count in trips:
        if gps_count < 2:
            print(f"Warning: Trip {trip} doesn't have gps")
            continue
        graph_name = f"Trip #{trip}"
        print(f"Writing {label} {graph_name}", file=sys.stderr)
        try:
            draw(graph_name, trip, start, end)
        except sqlite3.Error as exc:
            print(f"SQL Error in {label}: {exc}")
            continue
        written += 1
    out.write("</Folder>\n")
    return written


def write_kml_graphs(
    db: sqlite3.Connection,
    out: TextIO,
    max_altitude: int = DEFAULT_MAXALTITUDE,
    show_progress: bool = False,
) -> int:
    """Write every chart folder for every trip; return the number of charts.

    The caller writes the surrounding KML prologue and epilogue.
    """
    _progress(show_progress, "5.0")

    try:
        trips: list[TripRow] = [
            (int(tripid), _num(start), _num(end), int(count or 0))
            for tripid, start, end, count in db.execute(_TRIP_SQL).fetchall()
        ]
    except sqlite3.Error as exc:
        print(f"SQL Error in trip select: {exc}", file=sys.stderr)
        return 0

    written = 0

    if has_gps_speed(db):
        written += _folder(
            out,
            "Speed and Position [Just GPS]",
            "Height == speed",
            trips,
            "justgps",
            lambda name, trip, start, end: gps_pos_vel(
                db, out, max_altitude, 0, start, end, trip
            ),
        )
    else:
        print(
            "Couldn't find speed column in gps table. Not rendering justgps data",
            file=sys.stderr,
        )

    written += _folder(
        out,
        "RPM and Position",
        "Height indicates engine revs",
        trips,
        "RPM",
        lambda name, trip, start, end: kml_value_height(
            db, out, name, "", "rpm", max_altitude, 0, start, end, trip
        ),
    )
    _progress(show_progress, "33.0")

    written += _folder(
        out,
        "MPG, Speed and Position",
        "Height indicates speed, color indicates mpg [green == better]",
        trips,
        "MPG,Speed",
        lambda name, trip, start, end: kml_value_height_color(
            db, out, name, "", "vss", max_altitude, "(710.7*vss/maf)", 5, 1, start, end, trip
        ),
    )
    _progress(show_progress, "66.0")

    written += _folder(
        out,
        "Gear and Position",
        "Height indicates ratio between rpm and speed. "
        "While you're in gear, a line should be flat",
        trips,
        "Gear Ratio",
        lambda name, trip, start, end: kml_value_height(
            db, out, name, "", "(vss/rpm)", max_altitude, 0, start, end, trip
        ),
    )
    _progress(show_progress, "100.0")
    return written


def _atoi(text: str) -> int:
    match = _LEADING_INT_RE.match(text)
    return int(match.group(1)) if match else 0


def _help_text(program: str = PROGRAM_NAME) -> str:
    """Build the usage text shown for --help."""
    return "\n".join(
        [
            f"Usage: {program} [params]",
            f"   [-o|--out[={DEFAULT_OUTFILENAME}]",
            f"   [-d|--db[={DEFAULT_DATABASE}]]",
            f"   [-n|--name[={DEFAULT_KMLFOLDERNAME}]]",
            f"   [-a|--altitude[={DEFAULT_MAXALTITUDE}]]",
            "   [-p|--progress]",
            "   [-v|--version] [-h|--help]",
        ]
    )


def _version_text() -> str:
    """Build the version line shown for --version."""
    return f"Version: {VERSION}"


def main(argv: list[str] | None = None) -> int:
    """Convert a logger database into a KML file."""
    args = sys.argv[1:] if argv is None else list(argv)

    parser = argparse.ArgumentParser(prog=PROGRAM_NAME, add_help=False)
    parser.add_argument("-h", "--help", action="store_true")
    parser.add_argument("-v", "--version", action="store_true")
    parser.add_argument("-p", "--progress", action="store_true")
    parser.add_argument("-d", "--db", default=DEFAULT_DATABASE)
    parser.add_argument("-o", "--out", default=DEFAULT_OUTFILENAME)
    parser.add_argument("-n", "--name", default=DEFAULT_KMLFOLDERNAME)
    parser.add_argument("-a", "--altitude", type=_atoi, default=DEFAULT_MAXALTITUDE)
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
        if check_trip_columns(db):
            print("Error with trip columns. Exiting", file=sys.stderr)
            return 1

        try:
            out = open(options.out, "w", encoding="utf-8")
        except OSError as exc:
            print(f"{options.out}: {exc.strerror or exc}", file=sys.stderr)
            return 1

        with out:
            out.write(
                '<?xml version="1.0" encoding="UTF-8"?>\n'
                f'<kml xmlns="{KML_NAMESPACE}">\n'
                "<Folder>\n"
                f"<name>{options.name}</name>\n"
                "<description>OBD GPS Logger was used to log a car journey "
                "and export this kml file</description>\n"
            )
            write_kml_graphs(db, out, options.altitude, options.progress)
            out.write("</Folder>\n</kml>\n\n")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())