import logging
from datetime import datetime, timezone
from typing import Optional

from index_retention.config import Settings
from index_retention.models import RetentionReport, RunOutcome
from index_retention.services.cluster_client import ClusterClient
from index_retention.services.index_selector import IndexSelector
from index_retention.services.retention_executor import RetentionExecutor
from index_retention.services.storage_monitor import STORAGE_UNAVAILABLE, StorageMonitor
from index_retention.utils.pipeline_logger import log_retention_run

logger = logging.getLogger(__name__)


class RetentionAgent:
    """
    One retention pass: check disk usage, and when it is at or above the
    threshold delete every prefixed index dated before the cutoff.
    """

    def __init__(self, settings: Settings, client: ClusterClient):
        self.settings = settings
        self.threshold = settings.storage_usage_min_threshold
        self.storage_monitor = StorageMonitor(settings, client)
        self.index_selector = IndexSelector(settings, client)
        self.executor = RetentionExecutor(client)

    async def run(self, now: Optional[datetime] = None) -> RetentionReport:
        current_storage = await self.storage_monitor.get_storage_usage()
        logger.info(f"Current storage is {current_storage}%")

        if current_storage == STORAGE_UNAVAILABLE:
            logger.warning("It was not able to retrieve current storage size")
            return self._finish(RunOutcome.STORAGE_UNAVAILABLE, current_storage)

        if current_storage < self.threshold:
            logger.info("Storage is fine, no index will be deleted")
            return self._finish(RunOutcome.BELOW_THRESHOLD, current_storage)

        logger.info("Current storage is above the threshold")
        now = now or datetime.now(timezone.utc)

        eligible = await self.index_selector.list_eligible_indexes(now)
        logger.info(
            f"Script will clean indexes before {self.settings.preserve_days} day(s)"
        )

        result = await self.executor.run_cleanup(eligible)
        return self._finish(RunOutcome.CLEANED, current_storage, result)

    def _finish(self, outcome, current_storage, result=None) -> RetentionReport:
        log_retention_run(
            outcome.value,
            current_storage,
            self.threshold,
            deleted=result.deleted if result else 0,
            total=result.total if result else 0,
        )
        return RetentionReport(
            outcome=outcome, storage_percent=current_storage, result=result
        )
