"""gtfsproxy - GTFS-Realtime to JSON reverse proxy."""

__version__ = "0.1.0"
