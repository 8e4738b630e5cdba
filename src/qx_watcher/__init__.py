"""QX Watcher - ingestion, live feed and whale monitoring for the Qubic QX exchange."""

__version__ = "0.1.0"
