import json
import logging
import math

from index_retention.config import Settings
from index_retention.models import StorageSnapshot
from index_retention.services.cluster_client import (
    ClusterClient,
    ClusterPayloadError,
    ClusterRequestError,
    ensure_ok,
)
from index_retention.utils.pipeline_logger import log_storage_check

logger = logging.getLogger(__name__)

# Valid usage always lies in [0, 100]
STORAGE_UNAVAILABLE = -1.0


def parse_storage_snapshot(payload, raw: str = "") -> StorageSnapshot:
    """Read ``nodes.fs`` from a _cluster/stats payload."""
    try:
        fs = payload["nodes"]["fs"]
        free = float(fs["free_in_bytes"])
        total = float(fs["total_in_bytes"])
    except (KeyError, TypeError, ValueError) as e:
        raise ClusterPayloadError(f"Unexpected stats payload: {e!r}", body=raw) from e

    if not (math.isfinite(free) and math.isfinite(total)):
        raise ClusterPayloadError("Stats payload has non-finite storage figures", body=raw)

    if total == 0:
        raise ClusterPayloadError("Cluster reports zero total storage", body=raw)

    return StorageSnapshot(free_bytes=free, total_bytes=total)


class StorageMonitor:
    def __init__(self, settings: Settings, client: ClusterClient):
        self.client = client
        self.path = settings.get_storage_path
        self.query = settings.get_storage_query

    async def get_storage_usage(self) -> float:
        """Percentage of cluster disk in use, or STORAGE_UNAVAILABLE."""
        url = self.client.url_for(self.path, self.query)
        logger.info("Getting storage size")
        logger.info(f"URL={url}")

        try:
            response = await self.client.execute("GET", self.path, self.query)
            snapshot = parse_storage_snapshot(ensure_ok(response), response.text)
        except ClusterRequestError as e:
            logger.error(f"{e}: {json.dumps(e.details(), indent=2)}")
            log_storage_check(url, STORAGE_UNAVAILABLE)
            return STORAGE_UNAVAILABLE

        used = snapshot.used_percent
        log_storage_check(url, used)
        return used
