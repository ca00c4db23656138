"""
Pytest configuration and fixtures for Index Retention tests.
"""

import json
import os

# Set env vars BEFORE any package import
os.environ.setdefault("ENDPOINT", "search-logs-abc123.us-east-1.es.amazonaws.com")
os.environ.setdefault("INDEX_PREFIX", "cwl-")
os.environ.setdefault("PRESERVE_DAYS", "7")

from unittest.mock import AsyncMock

# Clear lru_cache so settings picks up the test env vars
from index_retention.config import Settings, get_settings

get_settings.cache_clear()

from index_retention.services.cluster_client import ClusterClient, ClusterResponse

import pytest


@pytest.fixture
def settings():
    return Settings(
        endpoint="search-logs-abc123.us-east-1.es.amazonaws.com",
        index_prefix="cwl-",
        preserve_days=7,
        storage_usage_min_threshold=75.0,
        request_signing="sigv4",
        aws_region=None,
    )


@pytest.fixture
def make_response():
    def _make(status_code=200, body=None, text=None):
        if text is None:
            text = json.dumps(body)
        return ClusterResponse(status_code=status_code, text=text, body=body)

    return _make


@pytest.fixture
def cluster_client(settings):
    """ClusterClient with real URL building and a mocked execute()."""
    client = ClusterClient(settings)
    client.execute = AsyncMock()
    client.close = AsyncMock()
    return client
