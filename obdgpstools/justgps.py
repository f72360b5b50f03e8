"""KML chart of a trip using only gps data: height shows speed."""

from __future__ import annotations

import math
import sqlite3
import time
from typing import TextIO

_QUERY = """
    SELECT lon, lat, gpstime, speed
      FROM gps
     WHERE time > ? AND time < ? AND trip = ? AND speed IS NOT NULL
     GROUP BY gpstime
     ORDER BY gpstime
"""

_SPEED_SCALE = 100


def _num(value) -> float:
    return 0.0 if value is None else float(value)


def _tag(name: str, text: object) -> str:
    return f"<{name}>{text}</{name}>"


def _lines(*parts: str) -> str:
    return "".join(part + "\n" for part in parts)


def _coord(*values: float) -> str:
    return ",".join(f"{v:f}" for v in values)


def _beacon(out: TextIO, label: str, trip: int, when: float, lon: float, lat: float) -> None:
    # ctime's text ends in a newline, which lands inside the name.
    stamp = time.ctime(math.floor(when)) + "\n"
    out.write(
        _lines(
            "<Placemark>",
            _tag("name", f"{label} {trip} ({stamp})"),
            "<Point>",
            "<coordinates>",
            _coord(lon, lat, 0.0) + "</coordinates>",
            "</Point>",
            "</Placemark>",
        )
    )


def gps_pos_vel(
    db: sqlite3.Connection,
    out: TextIO,
    height: int,
    default_vis: int,
    start: float,
    end: float,
    trip: int,
) -> int:
    """Write a KML document charting one trip's gps speed; return the point count.

    ``height`` is accepted for symmetry with the other charts but the speed
    is scaled by a fixed factor of 100. Query errors propagate as
    ``sqlite3.Error`` before anything is written.
    """
    rows = db.execute(_QUERY, (start, end, trip)).fetchall()

    out.write(
        _lines(
            "<Document>",
            "<Style>",
            _tag("ListStyle", _tag("listItemType", "checkHideChildren")),
            "</Style>",
            _tag("visibility", default_vis),
            _tag("name", f"Just GPS trip {trip}"),
            "<Placemark>",
            _tag("name", "chart"),
            "<LineString>",
            _tag("extrude", 1),
            _tag("tessellate", 1),
            _tag("altitudeMode", "relativeToGround"),
        )
    )
    out.write("<coordinates>")

    positions = [(_num(lon), _num(lat), _num(speed)) for lon, lat, _t, speed in rows]
    for lon, lat, speed in positions:
        out.write(_coord(lon, lat, speed * _SPEED_SCALE) + "\n")

    out.write(_lines("</coordinates>", "</LineString>", "</Placemark>"))

    first = positions[0][:2] if positions else (0.0, 0.0)
    last = positions[-1][:2] if positions else (0.0, 0.0)
    _beacon(out, "Start", trip, start, *first)
    _beacon(out, "End", trip, end, *last)
    out.write(_lines("</Document>"))
    return len(rows)