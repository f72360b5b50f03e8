"""KML chart of a trip with height from one column and colour from another."""

from __future__ import annotations

import sqlite3
from typing import TextIO

from .singleheight import _beacon, _num

STYLE_PREFIX = "obdgpsStyle"

_PLACEMARK_HEAD = (
    "<Placemark>\n"
    "<name>chart</name>\n"
    "<styleUrl>#{prefix}{index}</styleUrl>\n"
    "<LineString>\n"
    "<extrude>1</extrude>\n"
    "<tessellate>1</tessellate>\n"
    "<altitudeMode>relativeToGround</altitudeMode>\n"
    "<coordinates>\n"
)

_PLACEMARK_TAIL = "</coordinates>\n</LineString>\n</Placemark>\n"


def _percentiles(db: sqlite3.Connection, col: str, num_cols: int, trip: int) -> list[float]:
    """Boundary values of ``col`` that split the moving samples into colour bands."""
    positions = [0.001]
    for i in range(1, num_cols + 1):
        sql = (
            f"SELECT {col} AS ckobd FROM obd "
            f"WHERE vss>0 AND obd.trip={trip} "
            "ORDER BY ckobd "
            f"LIMIT 1 OFFSET (SELECT {i * 100 // num_cols}*COUNT(*)/100 FROM obd "
            f"WHERE vss>0 AND obd.trip={trip})"
        )
        row = db.execute(sql).fetchone()
        positions.append(_num(row[0]) if row else 0.0)
    return positions


def _write_styles(out: TextIO, num_cols: int) -> None:
    out.write(
        f'<Style id="{STYLE_PREFIX}0">\n'
        "<LineStyle>\n"
        "<color>00000000</color>\n"
        "</LineStyle>\n"
        "</Style>\n"
    )
    for i in range(1, num_cols + 1):
        green = (i - 1) * 0xFF // (num_cols - 1)
        red = 0xFF - green
        colour = f"ff00{green:02x}{red:02x}"
        out.write(
            f'<Style id="{STYLE_PREFIX}{i}">\n'
            "<PolyStyle>\n"
            f"<color>{colour}</color>\n"
            "</PolyStyle>\n"
            "<LineStyle>\n"
            f"<color>{colour}</color>\n"
            "</LineStyle>\n"
            "</Style>\n"
        )


def kml_value_height_color(
    db: sqlite3.Connection,
    out: TextIO,
    name: str,
    desc: str,
    column: str,
    height: int,
    col: str,
    num_cols: int,
    default_vis: int,
    start: float,
    end: float,
    trip: int,
) -> int:
    """Write a KML document charting ``column`` as height, coloured by ``col``.

    Heights are scaled so the trip's maximum reaches ``height``. Colours run
    from red to green over ``num_cols`` percentile bands of ``col``. Returns
    the number of points charted. Raises ValueError when fewer than two
    colours are asked for; query errors propagate as ``sqlite3.Error``
    before anything is written.
    """
    if num_cols < 2:
        raise ValueError("at least two colours are needed")
    trip = int(trip)

    select_sql = (
        f"SELECT {int(height)}*{column}/(SELECT MAX({column}) FROM obd "
        f"WHERE trip={trip}) "
        f"AS height,gps.lat, gps.lon, {col} "
        "FROM obd INNER JOIN gps ON obd.time=gps.time "
        f"WHERE obd.trip={trip}"
    )
    rows = db.execute(select_sql).fetchall()
    positions = _percentiles(db, col, num_cols, trip)

    out.write(
        "<Document>\n"
        "<Style>\n"
        "<ListStyle><listItemType>checkHideChildren</listItemType></ListStyle>\n"
        "</Style>\n"
        f"<visibility>{default_vis}</visibility>\n"
        f"<name>{name}</name>\n"
        f"<description>{desc}</description>\n"
    )
    _write_styles(out, num_cols)

    out.write(_PLACEMARK_HEAD.format(prefix=STYLE_PREFIX, index=0))

    last_band = -1
    first: tuple[float, float, float] | None = None
    last = (0.0, 0.0, 0.0)

    for value, lat, lon, colour_value in rows:
        current = (_num(lon), _num(lat), _num(value))
        if first is None:
            first = current

        perc = _num(colour_value)
        band = next((i for i in range(num_cols) if positions[i] > perc), num_cols)

        if band != last_band and last_band >= 0:
            out.write(_PLACEMARK_TAIL)
            out.write(_PLACEMARK_HEAD.format(prefix=STYLE_PREFIX, index=band))
            out.write(f"{last[0]:f},{last[1]:f},{last[2]:f}\n")

        out.write(f"{current[0]:f},{current[1]:f},{current[2]:f}\n")
        last = current
        last_band = band

    out.write(_PLACEMARK_TAIL)

    _beacon(out, "Start", trip, start, first or (0.0, 0.0, 0.0))
    _beacon(out, "End", trip, end, last)
    out.write("</Document>\n")
    return len(rows)