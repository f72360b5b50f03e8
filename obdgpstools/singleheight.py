"""KML chart of a trip in which height shows one obd value, scaled to a maximum."""

from __future__ import annotations

import math
import sqlite3
import time
from typing import TextIO

# A distance greater than this is taken to mean the car has moved.
EPSILON_DIST = 0.000001


def _num(value) -> float:
    if value is None:
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _beacon(
    out: TextIO, label: str, trip: int, when: float, position: tuple[float, float, float]
) -> None:
    """Write a start or end placemark at ``position`` (lon, lat, altitude)."""
    # ctime's text ends in a newline, which lands inside the name.
    stamp = time.ctime(math.floor(when)) + "\n"
    lon, lat, alt = position
    out.write(
        "<Placemark>\n"
        f"<name>{label} {trip} ({stamp})</name>\n"
        "<Point>\n"
        "<coordinates>\n"
        f"{lon:f},{lat:f},{alt:f}"
        "</coordinates>\n"
        "</Point>\n"
        "</Placemark>\n"
    )


def kml_value_height(
    db: sqlite3.Connection,
    out: TextIO,
    name: str,
    desc: str,
    column: str,
    height: int,
    default_vis: int,
    start: float,
    end: float,
    trip: int,
) -> int:
    """Write a KML document charting ``column`` as height for one trip.

    Values are scaled so that the trip's maximum reaches ``height``. Points
    recorded while the car stands still are left out after the first one.
    Returns the number of points written to the chart. Query errors
    propagate as ``sqlite3.Error`` before anything is written.
    """
    trip = int(trip)
    normal_sql = (
        f"SELECT {int(height)}/(SELECT MAX({column}) FROM obd WHERE trip={trip})"
    )
    row = db.execute(normal_sql).fetchone()
    factor = _num(row[0]) if row else 0.0

    select_sql = (
        "SELECT T1.obdkmlthing AS height,gps.lat,gps.lon "
        f"FROM (SELECT {column} AS obdkmlthing,time FROM obd WHERE trip={trip}) AS T1 "
        "INNER JOIN gps "
        "ON T1.time=gps.time "
        f"WHERE gps.trip={trip} "
    )
    rows = db.execute(select_sql).fetchall()

    out.write(
        "<Document>\n"
        "<Style>\n"
        "<ListStyle><listItemType>checkHideChildren</listItemType></ListStyle>\n"
        "</Style>\n"
        f"<visibility>{default_vis}</visibility>\n"
        f"<name>{name}</name>\n"
        f"<description>{desc}</description>\n"
    )
    out.write(
        "<Placemark>\n"
        "<name>chart</name>\n"
        "<LineString>\n"
        "<extrude>1</extrude>\n"
        "<tessellate>1</tessellate>\n"
        "<altitudeMode>relativeToGround</altitudeMode>\n"
        "<coordinates>"
    )

    moving = True
    first: tuple[float, float, float] | None = None
    last = (0.0, 0.0, 0.0)
    output_count = 0

    for value, lat, lon in rows:
        current = (_num(lon), _num(lat), _num(value))
        if first is None:
            first = current

        delta = math.hypot(current[0] - last[0], current[1] - last[1])
        scaled = factor * current[2]
        if delta > EPSILON_DIST:
            moving = True
        if moving:
            output_count += 1
            out.write(f"{current[0]:f},{current[1]:f},{scaled:f}\n")
        if delta < EPSILON_DIST:
            moving = False

        last = current

    row_count = len(rows)
    ignored = row_count - output_count
    note = "\nOutput rows seems low" if output_count < ignored else ""
    print(
        f"Total db rows: {row_count}. KML rows: {output_count}. "
        f"Ignored rows: {ignored} {note}"
    )

    out.write("</coordinates>\n</LineString>\n</Placemark>\n")

    _beacon(out, "Start", trip, start, first or (0.0, 0.0, 0.0))
    _beacon(out, "End", trip, end, last)
    out.write("</Document>\n")
    return output_count