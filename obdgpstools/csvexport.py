"""Export the logged obd table, joined with gps and trip data, to CSV."""

from __future__ import annotations

import argparse
import gzip
import re
import sqlite3
import sys
from pathlib import Path
from typing import Sequence, TextIO

from .config import DEFAULT_DATABASE, VERSION

DEFAULT_OUTFILENAME = "./obdlogger.csv"
PROGRAM_NAME = "obdgpscsv"

MPG_COLUMN = "(7.107*obd.vss/obd.maf) as mpg"
TRAILING_COLUMNS = ("gps.lon", "gps.lat", "gps.alt", "trip.tripid")

# A full outer join would be better, but sqlite does not offer one.
_FROM_SQL = (
    " FROM obd LEFT JOIN gps ON obd.time=gps.time "
    "LEFT JOIN trip ON obd.time>trip.start AND obd.time<trip.end "
)

_LEADING_FLOAT_RE = re.compile(r"\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")


def _as_double(value) -> float:
    """Convert a column value to float the way sqlite's double accessor does."""
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    text = str(value)
    try:
        return float(text)
    except ValueError:
        match = _LEADING_FLOAT_RE.match(text)
        return float(match.group(0)) if match else 0.0


def export_columns(db: sqlite3.Connection) -> list[str]:
    """Return the select expressions to export, in output order.

    Every column of the obd table comes first, then a computed ``mpg`` column
    when both ``vss`` and ``maf`` exist, then the gps position and trip id.
    """
    columns: list[str] = []
    have_vss = have_maf = False
    for row in db.execute("PRAGMA table_info(obd)"):
        name = row[1]
        if name is None:
            continue
        columns.append(f"obd.{name}")
        have_vss = have_vss or name == "vss"
        have_maf = have_maf or name == "maf"
    if have_vss and have_maf:
        columns.append(MPG_COLUMN)
    columns.extend(TRAILING_COLUMNS)
    return columns


def _is_set(bound: float | None) -> bool:
    return bound is not None and bound > 0


def build_select(
    columns: Sequence[str], start: float | None = None, end: float | None = None
) -> str:
    """Build the export query; bounds that are unset or not positive are ignored."""
    sql = "SELECT " + ", ".join(columns) + _FROM_SQL
    if _is_set(start) and _is_set(end):
        sql += f" WHERE obd.time>{start:f} AND obd.time<{end:f} "
    elif _is_set(end):
        sql += f" WHERE obd.time<{end:f} "
    elif _is_set(start):
        sql += f" WHERE obd.time>{start:f} "
    return sql


def _expected_rows(db: sqlite3.Connection) -> int:
    try:
        row = db.execute("SELECT count(*) AS c FROM obd").fetchone()
    except sqlite3.Error as exc:
        print(f"Couldn't get progress info in database: {exc}", file=sys.stderr)
        return 0
    return int(_as_double(row[0])) if row else 0


def export_csv(
    db: sqlite3.Connection,
    out: TextIO,
    start: float | None = None,
    end: float | None = None,
    progress: bool = False,
) -> int:
    """Write the export as CSV to ``out``; return the number of data rows.

    Every field, header included, is followed by a comma. With ``progress``
    a percentage is printed to stdout every 50 rows.
    """
    columns = export_columns(db)
    expected = _expected_rows(db) if progress else 0
    cursor = db.execute(build_select(columns, start, end))

    out.write("".join(f"{name}," for name in columns) + "\n")

    written = 0
    for row in cursor:
        out.write("".join(f"{_as_double(v):f}," for v in row) + "\n")
        written += 1
        if progress and written % 50 == 0:
            percent = 100.0 * written / expected if expected else 100.0
            print(f"{percent:f}", flush=True)
    return written


def _help_text(program: str = PROGRAM_NAME) -> str:
    options = (
        f"[-o|--out<={DEFAULT_OUTFILENAME}>]",
        "[-p|--progress]",
        f"[-d|--db<={DEFAULT_DATABASE}>]",
        "[-s|--start=<time>]",
        "[-e|--end=<time>]",
        "[-z|--gzip]",
        "[-v|--version] [-h|--help]",
    )
    return f"Usage: {program} [params]\n" + "\n".join(f"   {o}" for o in options)


def _version_text() -> str:
    return f"Version: {VERSION}"


def main(argv: list[str] | None = None) -> int:
    """Dump a logger database to a CSV file."""
    args = sys.argv[1:] if argv is None else list(argv)

    parser = argparse.ArgumentParser(prog=PROGRAM_NAME, add_help=False)
    parser.add_argument("-h", "--help", action="store_true")
    parser.add_argument("-v", "--version", action="store_true")
    parser.add_argument("-p", "--progress", action="store_true")
    parser.add_argument("-z", "--gzip", action="store_true")
    parser.add_argument("-s", "--start", type=_as_double, default=-1.0)
    parser.add_argument("-e", "--end", type=_as_double, default=-1.0)
    parser.add_argument("-d", "--db", default=DEFAULT_DATABASE)
    parser.add_argument("-o", "--out", default=None)
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

    out_name = options.out
    if out_name is None:
        out_name = DEFAULT_OUTFILENAME + (".gz" if options.gzip else "")

    try:
        db = sqlite3.connect(Path(options.db).resolve().as_uri() + "?mode=ro", uri=True)
    except sqlite3.Error as exc:
        print(f"Can't open database {options.db}: {exc}", file=sys.stderr)
        return 1

    try:
        select_sql = build_select(export_columns(db), options.start, options.end)
        try:
            db.execute(select_sql)
        except sqlite3.Error as exc:
            print(f"Error attempting to select:\n{select_sql}\n{exc}")
            return 1

        try:
            if options.gzip:
                out = gzip.open(out_name, "wt", encoding="utf-8")
            else:
                out = open(out_name, "w", encoding="utf-8")
        except OSError as exc:
            print(f"{out_name}: {exc.strerror or exc}", file=sys.stderr)
            return 1

        with out:
            export_csv(db, out, options.start, options.end, options.progress)
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())