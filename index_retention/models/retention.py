"""
Run-scoped value types for the retention pipeline.
Nothing here is persisted; every instance lives for a single cleanup run.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class StorageSnapshot:
    """Aggregate filesystem figures from the cluster stats endpoint."""

    free_bytes: float
    total_bytes: float

    @property
    def used_percent(self) -> float:
        return 100.0 - ((self.free_bytes / self.total_bytes) * 100.0)


@dataclass(frozen=True)
class IndexDate:
    """Date encoded in an index name. ``day`` is None for monthly indexes."""

    year: int
    month: int
    day: Optional[int] = None


@dataclass
class CleanupResult:
    deleted: int = 0
    total: int = 0

    def record(self, success: bool) -> None:
        self.total += 1
        if success:
            self.deleted += 1

    def summary(self) -> str:
        return f"{self.deleted} out of {self.total} indexes were removed"


class RunOutcome(str, Enum):
    STORAGE_UNAVAILABLE = "storage_unavailable"
    BELOW_THRESHOLD = "below_threshold"
    CLEANED = "cleaned"


@dataclass(frozen=True)
class RetentionReport:
    outcome: RunOutcome
    storage_percent: float
    result: Optional[CleanupResult] = None
