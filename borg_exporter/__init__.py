"""Prometheus exporter for BorgBackup repository statistics."""

__version__ = "0.1.0"
