import gzip
import io
import sqlite3

import pytest

from obdgpstools.csvexport import (
    MPG_COLUMN,
    build_select,
    export_columns,
    export_csv,
    main,
)


def _make_db(conn, obd_columns=("time", "rpm", "vss", "maf", "trip")):
    conn.execute(f"CREATE TABLE obd ({', '.join(obd_columns)})")
    conn.execute("CREATE TABLE gps (lat, lon, alt, time, trip)")
    conn.execute("CREATE TABLE trip (tripid, start, end)")
    conn.commit()
    return conn


@pytest.fixture
def db():
    conn = _make_db(sqlite3.connect(":memory:"))
    conn.executemany(
        "INSERT INTO obd VALUES (?,?,?,?,?)",
        [(10, 2000, 50, 10, 1), (20, 2500, 60, 12, 1), (30, 1000, 0, 5, 1)],
    )
    conn.executemany(
        "INSERT INTO gps VALUES (?,?,?,?,?)",
        [(51.5, -0.1, 30, 10, 1), (51.6, -0.2, 31, 20, 1)],
    )
    conn.execute("INSERT INTO trip VALUES (1, 5, 35)")
    conn.commit()
    yield conn
    conn.close()


def test_export_columns_with_mpg(db):
    columns = export_columns(db)
    assert columns[:5] == ["obd.time", "obd.rpm", "obd.vss", "obd.maf", "obd.trip"]
    assert columns[5] == MPG_COLUMN
    assert columns[6:] == ["gps.lon", "gps.lat", "gps.alt", "trip.tripid"]


def test_export_columns_without_maf():
    conn = _make_db(sqlite3.connect(":memory:"), ("time", "rpm", "vss"))
    columns = export_columns(conn)
    assert MPG_COLUMN not in columns
    assert columns == [
        "obd.time", "obd.rpm", "obd.vss", "gps.lon", "gps.lat", "gps.alt", "trip.tripid",
    ]


def test_build_select_without_bounds_has_no_where():
    sql = build_select(["obd.time", "gps.lat"])
    assert sql.startswith("SELECT obd.time, gps.lat FROM obd LEFT JOIN gps")
    assert "WHERE" not in sql


def test_build_select_bounds():
    assert build_select(["a"], 5, 9).endswith(
        " WHERE obd.time>5.000000 AND obd.time<9.000000 "
    )
    assert build_select(["a"], None, 9).endswith(" WHERE obd.time<9.000000 ")
    assert build_select(["a"], 5, None).endswith(" WHERE obd.time>5.000000 ")


def test_build_select_ignores_non_positive_bounds():
    assert "WHERE" not in build_select(["a"], 0, -1)


def test_export_csv_header_and_rows(db):
    out = io.StringIO()
    rows = export_csv(db, out)
    lines = out.getvalue().splitlines()
    assert rows == 3
    assert len(lines) == 4
    assert lines[0] == "".join(f"{c}," for c in export_columns(db))
    for line in lines[1:]:
        assert line.endswith(",")
        fields = line[:-1].split(",")
        assert len(fields) == len(export_columns(db))
        assert all(float(f) is not None for f in fields)
    assert lines[1].startswith("10.000000,2000.000000,")


def test_export_csv_null_gps_becomes_zero(db):
    out = io.StringIO()
    export_csv(db, out)
    last = out.getvalue().splitlines()[3][:-1].split(",")
    assert last[0] == "30.000000"
    # gps.lon, gps.lat, gps.alt are missing for time 30
    assert [float(v) for v in last[-4:-1]] == [0.0, 0.0, 0.0]


def test_export_csv_time_filter(db):
    out = io.StringIO()
    rows = export_csv(db, out, start=15, end=25)
    lines = out.getvalue().splitlines()
    assert rows == 1
    assert lines[1].startswith("20.000000,")


def test_export_csv_progress(capsys):
    conn = _make_db(sqlite3.connect(":memory:"))
    conn.executemany(
        "INSERT INTO obd VALUES (?,?,?,?,?)", [(t, 1, 1, 1, 1) for t in range(50)]
    )
    export_csv(conn, io.StringIO(), progress=True)
    printed = capsys.readouterr().out.split()
    assert [float(v) for v in printed] == [100.0]


def test_main_writes_file(tmp_path, db):
    path = tmp_path / "log.db"
    disk = sqlite3.connect(path)
    db.backup(disk)
    disk.close()
    out = tmp_path / "out.csv"
    assert main(["-d", str(path), "-o", str(out)]) == 0
    lines = out.read_text().splitlines()
    assert len(lines) == 4
    assert lines[0].startswith("obd.time,")


def test_main_gzip_round_trip(tmp_path, db):
    path = tmp_path / "log.db"
    disk = sqlite3.connect(path)
    db.backup(disk)
    disk.close()
    plain = tmp_path / "plain.csv"
    packed = tmp_path / "packed.csv.gz"
    assert main(["--db", str(path), "--out", str(plain)]) == 0
    assert main(["--db", str(path), "--out", str(packed), "--gzip"]) == 0
    with gzip.open(packed, "rt") as handle:
        assert handle.read() == plain.read_text()


def test_main_missing_database(tmp_path):
    assert main(["-d", str(tmp_path / "absent.db"), "-o", str(tmp_path / "x.csv")]) == 1


def test_main_without_obd_table_fails(tmp_path):
    path = tmp_path / "empty.db"
    conn = sqlite3.connect(path)
    conn.execute("CREATE TABLE gps (lat, lon, alt, time, trip)")
    conn.commit()
    conn.close()
    out = tmp_path / "x.csv"
    assert main(["-d", str(path), "-o", str(out)]) == 1
    assert not out.exists()


def test_main_help(capsys):
    assert main(["--help"]) == 0
    assert capsys.readouterr().out.startswith("Usage: ")