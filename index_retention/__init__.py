"""Disk-pressure driven retention for date-partitioned Elasticsearch indexes."""

__version__ = "0.1.0"
