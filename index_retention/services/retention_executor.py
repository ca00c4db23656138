import json
import logging
from typing import Iterable

from index_retention.models import CleanupResult
from index_retention.services.cluster_client import (
    ClusterClient,
    ClusterRequestError,
    ensure_ok,
)
from index_retention.utils.pipeline_logger import log_index_delete

logger = logging.getLogger(__name__)


class RetentionExecutor:
    def __init__(self, client: ClusterClient):
        self.client = client

    async def delete_index(self, name: str) -> int:
        """DELETE one index. Returns 1 when removed, 0 otherwise."""
        logger.info(f"Cleaning index {name}")
        logger.info(f"URL={self.client.url_for(name)}")

        try:
            response = await self.client.execute("DELETE", name)
            ensure_ok(response)
        except ClusterRequestError as e:
            logger.error(f"Failed to delete {name}: {json.dumps(e.details(), indent=2)}")
            log_index_delete(name, e.status_code, success=False)
            return 0

        log_index_delete(name, response.status_code, success=True)
        return 1

    async def run_cleanup(self, names: Iterable[str]) -> CleanupResult:
        """Delete indexes one at a time; a failure never stops the loop."""
        result = CleanupResult()
        for name in names:
            result.record(await self.delete_index(name) == 1)

        logger.info(result.summary())
        return result
