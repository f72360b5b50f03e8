import io
import re
import sqlite3
import time

import pytest

from obdgpstools.singleheight import kml_value_height

COORD_RE = re.compile(r"^(-?\d+\.\d+),(-?\d+\.\d+),(-?\d+\.\d+)$", re.MULTILINE)


def _make_db(points):
    """points: (time, trip, rpm, lat, lon)"""
    conn = sqlite3.connect(":memory:")
    conn.executescript(
        "CREATE TABLE obd (time REAL, trip INTEGER, rpm REAL);"
        "CREATE TABLE gps (time REAL, trip INTEGER, lat REAL, lon REAL);"
    )
    conn.executemany(
        "INSERT INTO obd VALUES (?,?,?)", [(t, trip, rpm) for t, trip, rpm, _, _ in points]
    )
    conn.executemany(
        "INSERT INTO gps VALUES (?,?,?,?)",
        [(t, trip, lat, lon) for t, trip, _, lat, lon in points],
    )
    return conn


MOVING = [
    (1.0, 1, 1000.0, 51.0, -1.0),
    (2.0, 1, 2000.0, 51.1, -1.1),
    (3.0, 1, 4000.0, 51.2, -1.2),
    (4.0, 2, 8000.0, 52.0, -2.0),
]


def _coords(text):
    return [tuple(float(v) for v in m) for m in COORD_RE.findall(text)]


def _run(db, trip=1, column="rpm", start=0.0, end=10.0):
    out = io.StringIO()
    count = kml_value_height(db, out, "Trip #1", "some desc", column, 1000, 0, start, end, trip)
    return count, out.getvalue()


def test_heights_normalised_to_requested_maximum():
    count, text = _run(_make_db(MOVING))
    coords = _coords(text)
    assert count == 3
    heights = [c[2] for c in coords]
    assert max(heights) == pytest.approx(1000.0)
    rpms = [1000.0, 2000.0, 4000.0]
    ratios = [h / r for h, r in zip(heights, rpms)]
    assert all(r == pytest.approx(ratios[0]) for r in ratios)


def test_low_output_warning(capsys):
    points = [(1.0, 1, 1000.0, 51.0, -1.0)] + [
        (float(t), 1, 1000.0, 51.0, -1.0) for t in range(2, 6)
    ]
    count, _ = _run(_make_db(points))
    assert count == 2
    assert "Output rows seems low" in capsys.readouterr().out


def test_beacons_use_first_and_last_raw_values():
    _, text = _run(_make_db(MOVING), start=0.0, end=0.0)
    assert f"<name>Start 1 ({time.ctime(0)}\n)</name>" in text
    assert f"<name>End 1 ({time.ctime(0)}\n)</name>" in text
    assert f"{-1.0:f},{51.0:f},{1000.0:f}</coordinates>" in text
    assert f"{-1.2:f},{51.2:f},{4000.0:f}</coordinates>" in text


def test_document_header():
    _, text = _run(_make_db(MOVING))
    assert text.startswith("<Document>\n")
    assert "<visibility>0</visibility>\n<name>Trip #1</name>\n" in text
    assert "<description>some desc</description>" in text
    assert text.endswith("</Document>\n")


def test_empty_trip_places_beacons_at_origin():
    count, text = _run(_make_db(MOVING), trip=9)
    assert count == 0
    assert text.count("0.000000,0.000000,0.000000</coordinates>") == 2


def test_bad_column_raises_before_writing():
    out = io.StringIO()
    with pytest.raises(sqlite3.OperationalError):
        kml_value_height(_make_db(MOVING), out, "n", "d", "nosuchcol", 1000, 0, 0.0, 1.0, 1)
    assert out.getvalue() == ""