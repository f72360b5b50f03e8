"""Per-trip measurements computed from the logged gps and obd tables."""

from __future__ import annotations

import math
import sqlite3
from dataclasses import dataclass

EARTH_RADIUS_KM = 6371.0

# Empirical constant relating speed and mass air flow to miles per gallon.
MPG_MAGIC_NUMBER = 710.7

_SEGMENT_SQL = (
    "SELECT a.lat,a.lon,b.lat,b.lon "
    "FROM gps a LEFT JOIN gps b "
    "ON b.rowid=a.rowid+1 "
    "WHERE a.trip=? AND b.trip=a.trip "
    "ORDER BY a.rowid"
)

_MAF_SQL = (
    "SELECT SUM(a.maf*(a.time-b.time)), count(a.maf), max(a.time) - min(a.time) "
    "FROM obd a LEFT JOIN obd b "
    "ON a.rowid=b.rowid+1 "
    "WHERE a.trip=? AND b.trip=a.trip"
)


class TripAnalysisError(Exception):
    """Raised when a trip cannot be analysed."""


@dataclass(frozen=True)
class TripCentre:
    """Distance-weighted mean and median position of a trip."""

    mean_lat: float
    mean_lon: float
    median_lat: float
    median_lon: float


def haversine_dist(lat_a: float, lon_a: float, lat_b: float, lon_b: float) -> float:
    """Great-circle distance in km between two points given in degrees."""
    rad = math.pi / 180
    sin_lat = math.sin((lat_b - lat_a) / 2 * rad)
    sin_lon = math.sin((lon_b - lon_a) / 2 * rad)
    a = sin_lat * sin_lat + sin_lon * sin_lon * math.cos(lat_a * rad) * math.cos(lat_b * rad)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def _as_float(value) -> float:
    return 0.0 if value is None else float(value)


def _segments(db: sqlite3.Connection, trip: int) -> list[tuple[float, float, float, float]]:
    try:
        rows = db.execute(_SEGMENT_SQL, (trip,)).fetchall()
    except sqlite3.Error as exc:
        raise TripAnalysisError(f"Cannot select gps segments: {exc}") from exc
    return [tuple(_as_float(v) for v in row) for row in rows]


def trip_distance(db: sqlite3.Connection, trip: int) -> float:
    """Total length of a trip in km."""
    return sum(haversine_dist(*segment) for segment in _segments(db, trip))


def trip_mean_median(db: sqlite3.Connection, trip: int) -> TripCentre:
    """Distance-weighted mean and median position of a trip."""
    segments = _segments(db, trip)
    deltas = [haversine_dist(*segment) for segment in segments]
    total_len = sum(deltas)

    if not segments or total_len == 0:
        raise TripAnalysisError(
            f"Trip {trip} had no points; can't calculate weighted mean"
        )

    total_lat = sum(d * seg[0] for seg, d in zip(segments, deltas))
    total_lon = sum(d * seg[1] for seg, d in zip(segments, deltas))

    median_lat = median_lon = 0.0
    half_len = total_len / 2
    for (lat_a, lon_a, _, _), delta in zip(segments, deltas):
        half_len -= delta
        if half_len < 0:
            median_lat, median_lon = lat_a, lon_a
            break

    return TripCentre(
        mean_lat=total_lat / total_len,
        mean_lon=total_lon / total_len,
        median_lat=median_lat,
        median_lon=median_lon,
    )


def petrol_usage(db: sqlite3.Connection, trip: int) -> float:
    """Print fuel statistics for a trip and return its integrated mass air flow."""
    try:
        row = db.execute(_MAF_SQL, (trip,)).fetchone()
    except sqlite3.Error as exc:
        raise TripAnalysisError(f"Cannot select maf: {exc}") from exc

    trip_dist = trip_distance(db, trip)
    total_maf, _maf_count, delta_time = (0.0, 0, 0.0) if row is None else row
    total_maf = _as_float(total_maf)
    delta_time = _as_float(delta_time)

    if delta_time <= 0:
        raise TripAnalysisError(f"Trip {trip} has no usable obd time span")

    hours = delta_time / 3600
    average_speed = trip_dist / hours
    average_maf = total_maf / hours
    if average_maf == 0:
        mpg = math.inf if average_speed else math.nan
    else:
        mpg = MPG_MAGIC_NUMBER * average_speed / (average_maf / 100)

    print(
        f"Trip {trip} {average_maf:.3f}maf, {average_speed:.3f}km/h, "
        f"{delta_time:.0f} sec, {trip_dist:.2f}km, {mpg:.1f}mpg"
    )
    return total_maf