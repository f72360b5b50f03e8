# obdgpstools

Tools for working with car journey logs recorded as OBD-II engine readings
and GPS fixes in an SQLite database. The database is expected to hold `obd`,
`gps` and `trip` tables.

The package can:

- measure each trip's length and its distance-weighted mean and median
  position, and compute the distances between the centres of every pair of
  trips;
- export the logged data to CSV, with a derived `mpg` column when both
  vehicle speed (`vss`) and mass air flow (`maf`) were logged;
- export GPS tracks to GPX, one track per trip;
- render trips to KML: speed, engine revs, fuel economy and gear ratio drawn
  as height (and, for fuel economy, colour) along the route.

## Installation

```
pip install .
```

Only the Python standard library is needed at run time.

## Commands

### Export to CSV

```
obdgpscsv --db obdgpslogger.db --out obdlogger.csv
```

Options: `-d/--db` database file (default `./obdgpslogger.db`), `-o/--out`
output file (default `./obdlogger.csv`, or `./obdlogger.csv.gz` with
`--gzip`), `-s/--start` and `-e/--end` to restrict the time range (values
that are not positive are ignored), `-z/--gzip` to compress the output,
`-p/--progress` to print a percentage every 50 rows, `-v/--version`,
`-h/--help`.

Every column of the `obd` table is written, followed by `mpg` when possible,
then `gps.lon`, `gps.lat`, `gps.alt` and `trip.tripid`. Every field, header
included, is followed by a comma, and values are written as decimals.

### Export to GPX

```
obd2gpx --db obdgpslogger.db --out trips.gpx
```

Every trip becomes a `<trk>`. Points with an altitude above -900 get an
`<ele>` and are marked as 3d fixes, the rest as 2d fixes. Times are written
in local time.

### Export to KML

```
obdgpskml --db obdgpslogger.db --out trips.kml --altitude 1000
```

Options: `-d/--db`, `-o/--out` (default `./obdlogger.kml`), `-n/--name`
the top folder's name, `-a/--altitude` the height everything is scaled to
(default 1000), `-p/--progress`, `-v/--version`, `-h/--help`. Both the
`obd` and `gps` tables must have a `trip` column. The "Just GPS" folder is
only written when the `gps` table has a `speed` column; trips with fewer
than two GPS points are skipped with a warning.

### Compare trips

```
obdtripcompare obdgpslogger.db
```

Attaches an in-memory `analysis` database, computes length, mean and median
position for every trip in the `trip` table, fills the pairwise
`clusterdistance` table and writes the per-trip results as CSV to standard
output. The database file must already exist.

## Library use

```python
import sqlite3

from obdgpstools.trips import haversine_dist, trip_distance, trip_mean_median
from obdgpstools.analysis import (
    create_analysis_tables,
    fill_analysis_tables,
    get_trip_analysis,
    export_gps_csv,
)

db = sqlite3.connect("obdgpslogger.db")
print(haversine_dist(51.5, -0.12, 48.85, 2.35))  # km
print(trip_distance(db, 1))
print(trip_mean_median(db, 1))  # TripCentre, or TripAnalysisError

create_analysis_tables(db)
fill_analysis_tables(db)
print(get_trip_analysis(db, 1))  # TripAnalysis, or KeyError
with open("analysis.csv", "w") as out:
    export_gps_csv(db, out)
```

Other modules:

- `obdgpstools.csvexport`: `export_columns`, `build_select` and
  `export_csv` behind the CSV command.
- `obdgpstools.gpx`: `export_gpx` and the `write_header`, `start_trip`,
  `end_trip`, `write_tail` pieces.
- `obdgpstools.kml`: `write_kml_graphs`, `has_gps_speed`,
  `check_trip_columns`; the individual charts are
  `obdgpstools.justgps.gps_pos_vel`,
  `obdgpstools.singleheight.kml_value_height` and
  `obdgpstools.heightandcolor.kml_value_height_color`.
- `obdgpstools.config`: `load_config` builds a `Config` from defaults, then
  `/etc/obdgpslogger`, the user's `~/.obdgpslogger`, `/tmp/obdftdipty` and
  the file named by `OBD_CONFIGFILE`, later files overriding earlier ones;
  `parse_config` reads `key=value` lines from any stream; `write_config`
  writes a config back out.
- `obdgpstools.devices.guess_serial_devices` lists likely serial ports.
- `obdgpstools.loggerhandler.LoggerHandler` starts a logger program
  (`obdgpslogger` by default, with `--spam-stdout`), parses its output lines
  such as `rpm=...` and `gpspos=...` with `parse_logger_line`, passes the
  readings to a `LoggerListener`, and starts or ends trips by sending
  `SIGUSR1` and `SIGUSR2`.

## What this package does not do

It does not talk to OBD-II adapters or GPS receivers and does not record
logs itself: it works on databases that are already written.
`LoggerHandler` only runs an external logger program, which must be
installed separately. There is no graphical interface.

## Running the tests

```
pip install .[test]
pytest
```