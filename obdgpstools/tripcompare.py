"""Command that analyses every trip in a database and prints a CSV summary."""

from __future__ import annotations

import sqlite3
import sys
from pathlib import Path

from .analysis import (
    create_analysis_tables,
    export_gps_csv,
    fill_analysis_tables,
    mean_median_distances,
)
from .trips import TripAnalysisError

PROGRAM_NAME = "tripcompare"


def _help_text(program: str = PROGRAM_NAME) -> str:
    return f"Usage: {program} <database>\nGuess which trips are the same for comparing"


def main(argv: list[str] | None = None) -> int:
    """Run the trip comparison over the database named in ``argv``."""
    args = sys.argv[1:] if argv is None else list(argv)

    if not args or args[0] in ("--help", "-h"):
        print(_help_text())
        return 0

    path = args[0]
    try:
        db = sqlite3.connect(Path(path).resolve().as_uri() + "?mode=rw", uri=True)
    except sqlite3.Error as exc:
        print(f"Can't open database {path}: {exc}", file=sys.stderr)
        return 1

    try:
        steps = (
            (create_analysis_tables, "Couldn't create analysis tables, exiting"),
            (fill_analysis_tables, "Couldn't populate analysis tables, exiting"),
            (mean_median_distances, "Couldn't populate cluster tables, exiting"),
        )
        for step, message in steps:
            try:
                step(db)
            except (sqlite3.Error, TripAnalysisError) as exc:
                print(f"{message}: {exc}", file=sys.stderr)
                return 1

        try:
            export_gps_csv(db, sys.stdout)
        except TripAnalysisError as exc:
            print(exc, file=sys.stderr)
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())