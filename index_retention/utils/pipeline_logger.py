"""
Pipeline Logging System for Index Retention
Structured JSON logging for retention pipeline stages
"""

import structlog
from datetime import datetime, timezone
from typing import Any

STORAGE_MONITOR = "storage_monitor"
INDEX_SELECTOR = "index_selector"
RETENTION_EXECUTOR = "retention_executor"
RETENTION_RUN = "retention_run"


def setup_logger() -> structlog.BoundLogger:
    """
    Configure structlog for structured JSON logging.
    Outputs through stdlib logging so Lambda/CloudWatch capture it.
    """
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    return structlog.get_logger()


_log = setup_logger()


def _log_event(
    stage: str,
    index: str | None = None,
    input: Any = None,
    output: Any = None,
    success: bool = True,
    **extra: Any,
) -> None:
    """Base logging function for pipeline events."""
    event = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "stage": stage,
        "success": success,
    }
    if index is not None:
        event["index"] = index
    if input is not None:
        event["input"] = input
    if output is not None:
        event["output"] = output
    event.update(extra)
    _log.info("pipeline_event", **event)


def log_storage_check(url: str, used_percent: float) -> None:
    """Log the storage usage query. A negative figure means it failed."""
    _log_event(
        stage=STORAGE_MONITOR,
        input={"url": url},
        output={"used_percent": used_percent},
        success=used_percent >= 0,
    )


def log_index_listing(
    prefix: str,
    found: int,
    error: str | None = None,
) -> None:
    """Log index enumeration results."""
    _log_event(
        stage=INDEX_SELECTOR,
        input={"prefix": prefix},
        output={"found": found, "error": error} if error else {"found": found},
        success=error is None,
    )


def log_index_delete(
    index: str,
    status_code: int | None,
    success: bool,
) -> None:
    """Log a single index deletion."""
    _log_event(
        stage=RETENTION_EXECUTOR,
        index=index,
        output={"status_code": status_code},
        success=success,
    )


def log_retention_run(
    outcome: str,
    used_percent: float,
    threshold: float,
    deleted: int = 0,
    total: int = 0,
) -> None:
    """Log the terminal state of one retention run."""
    _log_event(
        stage=RETENTION_RUN,
        input={"used_percent": used_percent, "threshold": threshold},
        output={"outcome": outcome, "deleted": deleted, "total": total},
        success=deleted == total,
    )


__all__ = [
    "STORAGE_MONITOR",
    "INDEX_SELECTOR",
    "RETENTION_EXECUTOR",
    "RETENTION_RUN",
    "log_storage_check",
    "log_index_listing",
    "log_index_delete",
    "log_retention_run",
]
