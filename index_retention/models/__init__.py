# Models module exports, re-exported from the canonical source
from index_retention.models.retention import (
    StorageSnapshot,
    IndexDate,
    CleanupResult,
    RunOutcome,
    RetentionReport,
)
