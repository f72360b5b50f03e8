"""In-memory analysis tables attached to a logger database."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import TextIO

from .trips import TripAnalysisError, haversine_dist, trip_distance, trip_mean_median

_CREATE_SQL = (
    "CREATE TABLE IF NOT EXISTS analysis.gpsanalysis "
    "(trip INTEGER UNIQUE, length REAL, "
    "meanlat REAL, meanlon REAL, "
    "medianlat REAL, medianlon REAL)",
    "CREATE TABLE IF NOT EXISTS analysis.obdanalysis "
    "(trip INTEGER UNIQUE, petrolusage REAL)",
    "CREATE TABLE IF NOT EXISTS analysis.clusterdistance "
    "(tripA INTEGER, tripB INTEGER, meandist REAL, mediandist REAL)",
)

_RESET_SQL = (
    "DELETE FROM analysis.gpsanalysis WHERE 1",
    "DELETE FROM analysis.obdanalysis WHERE 1",
    "DELETE FROM analysis.clusterdistance WHERE 1",
)


@dataclass(frozen=True)
class TripAnalysis:
    """Length and centre of a single trip."""

    length: float
    mean_lat: float
    mean_lon: float
    median_lat: float
    median_lon: float


def create_analysis_tables(db: sqlite3.Connection) -> None:
    """Attach an in-memory ``analysis`` database and create its tables."""
    db.execute('ATTACH DATABASE ":memory:" AS analysis')
    for sql in _CREATE_SQL:
        db.execute(sql)


def reset_trip_analysis_tables(db: sqlite3.Connection) -> None:
    """Remove all rows from the analysis tables."""
    for sql in _RESET_SQL:
        db.execute(sql)
    db.commit()


def insert_trip_analysis(db: sqlite3.Connection, trip: int, analysis: TripAnalysis) -> None:
    """Insert or replace the analysis row for a trip."""
    db.execute(
        "INSERT OR REPLACE INTO analysis.gpsanalysis "
        "(trip, length, meanlat, meanlon, medianlat, medianlon) "
        "VALUES (?,?,?,?,?,?)",
        (
            trip,
            analysis.length,
            analysis.mean_lat,
            analysis.mean_lon,
            analysis.median_lat,
            analysis.median_lon,
        ),
    )
    db.commit()


def get_trip_analysis(db: sqlite3.Connection, trip: int) -> TripAnalysis:
    """Return the stored analysis for a trip; raise KeyError if there is none."""
    row = db.execute(
        "SELECT length, meanlat, meanlon, medianlat, medianlon "
        "FROM analysis.gpsanalysis WHERE trip=?",
        (trip,),
    ).fetchone()
    if row is None:
        raise KeyError(trip)
    return TripAnalysis(*(0.0 if v is None else float(v) for v in row))


def mean_median_distances(db: sqlite3.Connection) -> int:
    """Fill the pairwise trip cluster table; return the number of pairs written."""
    select_sql = (
        "SELECT trip,meanlat,meanlon,medianlat,medianlon FROM "
        "analysis.gpsanalysis WHERE trip>? ORDER BY trip"
    )
    rows = db.execute(select_sql, (-1,)).fetchall()
    pairs = 0
    for trip_a, mean_lat_a, mean_lon_a, median_lat_a, median_lon_a in rows:
        for trip_b, mean_lat_b, mean_lon_b, median_lat_b, median_lon_b in db.execute(
            select_sql, (trip_a,)
        ).fetchall():
            mean_dist = haversine_dist(mean_lat_a, mean_lon_a, mean_lat_b, mean_lon_b)
            median_dist = haversine_dist(
                median_lat_a, median_lon_a, median_lat_b, median_lon_b
            )
            db.execute(
                "INSERT INTO analysis.clusterdistance "
                "(tripA, tripB, meandist, mediandist) VALUES (?,?,?,?)",
                (trip_a, trip_b, mean_dist, median_dist),
            )
            pairs += 1
    db.commit()
    return pairs


def fill_analysis_tables(db: sqlite3.Connection) -> int:
    """Analyse every trip in the ``trip`` table; return how many were stored."""
    trips = [
        row[0]
        for row in db.execute("SELECT DISTINCT tripid FROM trip ORDER BY tripid").fetchall()
    ]
    stored = 0
    for trip in trips:
        length = trip_distance(db, trip)
        try:
            centre = trip_mean_median(db, trip)
        except TripAnalysisError:
            continue
        insert_trip_analysis(
            db,
            trip,
            TripAnalysis(
                length=length,
                mean_lat=centre.mean_lat,
                mean_lon=centre.mean_lon,
                median_lat=centre.median_lat,
                median_lon=centre.median_lon,
            ),
        )
        stored += 1
    return stored


def export_gps_csv(db: sqlite3.Connection, out: TextIO) -> None:
    """Write the gps analysis table as CSV, every field followed by a comma."""
    cursor = db.execute("SELECT * FROM analysis.gpsanalysis ORDER BY trip")
    rows = cursor.fetchall()
    if not rows:
        raise TripAnalysisError("No rows returned from gps analysis table")

    out.write("".join(f"{col[0]}," for col in cursor.description) + "\n")
    for row in rows:
        out.write(
            "".join(f"{0.0 if v is None else float(v):f}," for v in row) + "\n"
        )