import io
import sqlite3

import pytest

from obdgpstools.analysis import (
    TripAnalysis,
    create_analysis_tables,
    export_gps_csv,
    fill_analysis_tables,
    get_trip_analysis,
    insert_trip_analysis,
    mean_median_distances,
    reset_trip_analysis_tables,
)
from obdgpstools.trips import TripAnalysisError, haversine_dist, trip_distance, trip_mean_median


@pytest.fixture
def db():
    conn = sqlite3.connect(":memory:")
    conn.execute("CREATE TABLE gps (lat REAL, lon REAL, time REAL, trip INTEGER)")
    conn.execute('CREATE TABLE trip (tripid INTEGER, start REAL, "end" REAL)')
    conn.commit()
    create_analysis_tables(conn)
    yield conn
    conn.close()


def test_insert_and_get_round_trip(db):
    analysis = TripAnalysis(1.5, 10.0, 20.0, 11.0, 21.0)
    insert_trip_analysis(db, 4, analysis)
    assert get_trip_analysis(db, 4) == analysis


def test_insert_replaces_existing(db):
    insert_trip_analysis(db, 1, TripAnalysis(1, 2, 3, 4, 5))
    insert_trip_analysis(db, 1, TripAnalysis(6, 7, 8, 9, 10))
    assert get_trip_analysis(db, 1) == TripAnalysis(6.0, 7.0, 8.0, 9.0, 10.0)


def test_get_missing_trip_raises(db):
    with pytest.raises(KeyError):
        get_trip_analysis(db, 99)


def test_reset_clears_tables(db):
    insert_trip_analysis(db, 1, TripAnalysis(1, 2, 3, 4, 5))
    reset_trip_analysis_tables(db)
    with pytest.raises(KeyError):
        get_trip_analysis(db, 1)


def test_fill_analysis_tables(db):
    for lat, lon in [(0, 0), (0, 1), (0, 2)]:
        db.execute("INSERT INTO gps (lat, lon, trip) VALUES (?,?,1)", (lat, lon))
    db.execute("INSERT INTO trip (tripid) VALUES (1)")
    db.execute("INSERT INTO trip (tripid) VALUES (2)")
    db.commit()

    assert fill_analysis_tables(db) == 1
    stored = get_trip_analysis(db, 1)
    centre = trip_mean_median(db, 1)
    assert stored.length == pytest.approx(trip_distance(db, 1))
    assert stored.mean_lon == pytest.approx(centre.mean_lon)
    assert stored.median_lon == pytest.approx(centre.median_lon)
    with pytest.raises(KeyError):
        get_trip_analysis(db, 2)


def test_mean_median_distances(db):
    insert_trip_analysis(db, 1, TripAnalysis(1, 0, 0, 1, 1))
    insert_trip_analysis(db, 2, TripAnalysis(1, 0, 2, 3, 3))
    insert_trip_analysis(db, 3, TripAnalysis(1, 5, 5, 6, 6))
    assert mean_median_distances(db) == 3

    row = db.execute(
        "SELECT meandist, mediandist FROM analysis.clusterdistance "
        "WHERE tripA=1 AND tripB=2"
    ).fetchone()
    assert row[0] == pytest.approx(haversine_dist(0, 0, 0, 2))
    assert row[1] == pytest.approx(haversine_dist(1, 1, 3, 3))


def test_export_gps_csv(db):
    insert_trip_analysis(db, 1, TripAnalysis(2.5, 1.0, 2.0, 3.0, 4.0))
    out = io.StringIO()
    export_gps_csv(db, out)
    lines = out.getvalue().splitlines()
    assert lines[0] == "trip,length,meanlat,meanlon,medianlat,medianlon,"
    assert lines[1] == "1.000000,2.500000,1.000000,2.000000,3.000000,4.000000,"


def test_export_gps_csv_empty_raises(db):
    with pytest.raises(TripAnalysisError):
        export_gps_csv(db, io.StringIO())