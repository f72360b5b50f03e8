"""Analysis and CSV, GPX and KML export for OBD-II and GPS car logs in SQLite."""

__version__ = "0.1.0"