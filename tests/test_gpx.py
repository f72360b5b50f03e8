import io
import re
import sqlite3
import xml.etree.ElementTree as ET

from obdgpstools.gpx import end_trip, export_gpx, main, start_trip, write_header, write_tail

NS = {"g": "http://www.topografix.com/GPX/1/1"}


def _make_db(path=":memory:"):
    db = sqlite3.connect(path)
    db.execute("CREATE TABLE gps (lat REAL, lon REAL, alt REAL, time REAL, trip INTEGER)")
    db.executemany(
        "INSERT INTO gps VALUES (?,?,?,?,?)",
        [
            (51.5, -0.1, 20.0, 1000, 1),
            (51.6, -0.2, -1000.0, 1001, 1),
            (40.0, 10.0, 5.0, 2000, 2),
            (41.0, 11.0, 5.0, 3000, None),
        ],
    )
    db.commit()
    return db


def test_fragments_form_valid_document():
    out = io.StringIO()
    write_header(out, "file.gpx")
    start_trip(out, 4)
    end_trip(out)
    write_tail(out)
    root = ET.fromstring(out.getvalue().encode())
    assert root.find("g:metadata/g:name", NS).text == "obd2gpx file.gpx"
    assert root.find("g:trk/g:name", NS).text == "Trip 4"


def test_export_tracks_and_points():
    out = io.StringIO()
    count = export_gpx(_make_db(), out, "x.gpx")
    assert count == 3
    root = ET.fromstring(out.getvalue().encode())
    tracks = root.findall("g:trk", NS)
    assert [t.find("g:name", NS).text for t in tracks] == ["Trip 1", "Trip 2"]
    points = tracks[0].findall("g:trkseg/g:trkpt", NS)
    assert len(points) == 2
    assert float(points[0].get("lat")) == 51.5
    assert float(points[0].get("lon")) == -0.1


def test_fix_and_elevation():
    out = io.StringIO()
    export_gpx(_make_db(), out, "x.gpx")
    root = ET.fromstring(out.getvalue().encode())
    first, second = root.findall("g:trk", NS)[0].findall("g:trkseg/g:trkpt", NS)
    assert first.find("g:fix", NS).text == "3d"
    assert float(first.find("g:ele", NS).text) == 20.0
    assert second.find("g:fix", NS).text == "2d"
    assert second.find("g:ele", NS) is None


def test_time_format():
    out = io.StringIO()
    export_gpx(_make_db(), out, "x.gpx")
    root = ET.fromstring(out.getvalue().encode())
    times = [node.text for node in root.iter("{%s}time" % NS["g"])]
    assert len(times) == 3
    matching = [t for t in times if re.fullmatch(r"\d{4}-\d\d-\d\dT\d\d:\d\d:\d\d", t)]
    assert matching == times


def test_empty_database_gives_valid_document():
    db = sqlite3.connect(":memory:")
    db.execute("CREATE TABLE gps (lat REAL, lon REAL, alt REAL, time REAL, trip INTEGER)")
    out = io.StringIO()
    assert export_gpx(db, out, "x.gpx") == 0
    root = ET.fromstring(out.getvalue().encode())
    assert root.findall("g:trk", NS) == []


def test_main_writes_file(tmp_path):
    dbpath = tmp_path / "log.db"
    _make_db(str(dbpath)).close()
    outpath = tmp_path / "out.gpx"
    assert main(["-d", str(dbpath), "-o", str(outpath)]) == 0
    root = ET.fromstring(outpath.read_bytes())
    assert root.find("g:metadata/g:name", NS).text == "obd2gpx out.gpx"
    assert len(root.findall("g:trk", NS)) == 2


def test_main_help(capsys):
    assert main(["--help"]) == 0
    assert "Usage:" in capsys.readouterr().out


def test_main_missing_database(tmp_path):
    assert main(["-d", str(tmp_path / "none.db"), "-o", str(tmp_path / "o.gpx")]) == 1
    assert not (tmp_path / "o.gpx").exists()


def test_main_database_without_gps_table(tmp_path):
    dbpath = tmp_path / "empty.db"
    sqlite3.connect(str(dbpath)).execute("CREATE TABLE x (a)").connection.close()
    assert main(["-d", str(dbpath), "-o", str(tmp_path / "o.gpx")]) == 1