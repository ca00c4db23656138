"""
Index Selector for Index Retention
Lists prefixed indexes and picks those whose name-encoded date falls before
the retention cutoff.
"""

import json
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from index_retention.config import Settings
from index_retention.models import IndexDate
from index_retention.services.cluster_client import (
    ClusterClient,
    ClusterPayloadError,
    ClusterRequestError,
    ensure_ok,
)
from index_retention.utils.pipeline_logger import log_index_listing

logger = logging.getLogger(__name__)


def index_date_pattern(prefix: str) -> "re.Pattern[str]":
    """``<prefix>YYYY[.]MM[.][DD]``, e.g. cwl-2023.03.10, cwl-20230310, cwl-2023.03"""
    return re.compile("^" + re.escape(prefix) + r"(\d{4})\.?(\d{2})\.?(\d{2})?$")


def parse_index_date(name: str, pattern: "re.Pattern[str]") -> Optional[IndexDate]:
    match = pattern.fullmatch(name)
    if not match:
        return None
    year, month, day = match.groups()
    return IndexDate(
        year=int(year),
        month=int(month),
        day=int(day) if day is not None else None,
    )


def shifted_midnight(
    year: int,
    month: int,
    day: Optional[int] = None,
    year_diff: int = 0,
    month_diff: int = 0,
    day_diff: int = 0,
) -> datetime:
    """
    Midnight UTC of (year - year_diff, month - month_diff, day - day_diff).

    Out-of-range months and days roll over into neighbouring years and
    months the way calendar arithmetic does: month 13 is January of the next
    year, day 0 is the last day of the previous month. A missing day counts
    as the first of the month.
    """
    if day is None:
        day = 1

    month_index = month - 1 - month_diff
    year = year - year_diff + month_index // 12
    month_index %= 12

    first = datetime(year, month_index + 1, 1, tzinfo=timezone.utc)
    return first + timedelta(days=day - 1 - day_diff)


def date_to_epoch(
    year: int,
    month: int,
    day: Optional[int] = None,
    year_diff: int = 0,
    month_diff: int = 0,
    day_diff: int = 0,
) -> int:
    """shifted_midnight() as epoch milliseconds."""
    moment = shifted_midnight(year, month, day, year_diff, month_diff, day_diff)
    return int(moment.timestamp()) * 1000


class IndexSelector:
    def __init__(self, settings: Settings, client: ClusterClient):
        self.client = client
        self.prefix = settings.index_prefix
        self.preserve_days = settings.preserve_days
        self.path = settings.get_all_indexes_path
        self.query = settings.get_all_indexes_query
        self.pattern = index_date_pattern(self.prefix)

    async def list_indexes(self) -> List[str]:
        """Sorted names of all indexes carrying the configured prefix; [] on failure."""
        logger.info("Getting list of indexes")
        logger.info(f"URL={self.client.url_for(self.path, self.query)}")

        try:
            response = await self.client.execute("GET", self.path, self.query)
            payload = ensure_ok(response)
            indices = payload.get("indices") if isinstance(payload, dict) else None
            if not isinstance(indices, dict):
                raise ClusterPayloadError(
                    "Health response has no 'indices' mapping",
                    status_code=response.status_code,
                    body=response.text,
                )
        except ClusterRequestError as e:
            logger.error(f"{e}: {json.dumps(e.details(), indent=2)}")
            log_index_listing(self.prefix, 0, error=str(e))
            return []

        indexes = [name for name in indices if name.startswith(self.prefix)]
        logger.info(f"Found {len(indexes)} indexes")
        log_index_listing(self.prefix, len(indexes))

        logger.info("Sorting indexes")
        indexes.sort()
        return indexes

    def retention_cutoff(self, now: datetime) -> int:
        """Epoch ms of today's UTC midnight minus preserve_days."""
        now = now.astimezone(timezone.utc)
        return date_to_epoch(now.year, now.month, now.day, 0, 0, self.preserve_days)

    def select_eligible(self, names: Iterable[str], now: datetime) -> List[str]:
        cutoff = self.retention_cutoff(now)
        eligible = []

        for name in names:
            index_date = parse_index_date(name, self.pattern)
            if index_date is None:
                continue
            try:
                index_time = date_to_epoch(index_date.year, index_date.month, index_date.day)
            except (ValueError, OverflowError):
                # Year 0000 and similar cannot be represented
                continue
            if index_time < cutoff:
                eligible.append(name)

        return eligible

    async def list_eligible_indexes(self, now: datetime) -> List[str]:
        return self.select_eligible(await self.list_indexes(), now)
