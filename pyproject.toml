[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "obdgpstools"
version = "0.1.0"
description = "Analyse and export OBD-II and GPS car logs stored in SQLite: trip statistics, CSV, GPX and KML output"
requires-python = ">=3.10"
dependencies = []
keywords = ["obd", "obd-ii", "gps", "kml", "gpx", "csv", "sqlite", "car", "trip", "logging"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: End Users/Desktop",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: GIS",
    "Topic :: Utilities",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
obdtripcompare = "obdgpstools.tripcompare:main"
obd2gpx = "obdgpstools.gpx:main"
obdgpscsv = "obdgpstools.csvexport:main"
obdgpskml = "obdgpstools.kml:main"

[tool.hatch.build.targets.wheel]
packages = ["obdgpstools"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
