from functools import lru_cache
from typing import Optional
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings

SIGNING_MODES = ("sigv4", "none")

# Keeps today minus preserve_days representable as a date
MAX_PRESERVE_DAYS = 36500


class Settings(BaseSettings):
    app_name: str = "Index Retention"
    log_level: str = "INFO"

    # Cleanup only runs once disk usage reaches this percentage
    storage_usage_min_threshold: float = 75.0

    # Cluster Configuration
    endpoint: str = "testcluster.testregion.es.amazonaws.com"
    scheme: str = "https"
    get_all_indexes_path: str = "_cluster/health"
    get_all_indexes_query: str = "level=indices"
    get_storage_path: str = "_cluster/stats"
    get_storage_query: str = "human&pretty"
    request_timeout: float = 30.0

    # Retention Policy
    index_prefix: str = "cwl-"
    preserve_days: int = 7

    # Request Signing
    request_signing: str = "sigv4"
    aws_region: Optional[str] = None
    aws_service: str = "es"

    schedule_interval_seconds: int = 86400

    @field_validator("preserve_days")
    @classmethod
    def check_preserve_days(cls, value: int) -> int:
        if value < 0 or value > MAX_PRESERVE_DAYS:
            raise ValueError(f"preserve_days must be between 0 and {MAX_PRESERVE_DAYS}")
        return value

    @field_validator("request_signing")
    @classmethod
    def check_request_signing(cls, value: str) -> str:
        value = value.lower()
        if value not in SIGNING_MODES:
            raise ValueError(f"request_signing must be one of {SIGNING_MODES}")
        return value

    @property
    def base_url(self) -> str:
        return f"{self.scheme}://{self.endpoint}"

    @property
    def node_url(self) -> str:
        # elasticsearch-py requires an explicit port
        if ":" in self.endpoint:
            return self.base_url
        port = 443 if self.scheme == "https" else 9200
        return f"{self.base_url}:{port}"

    class Config:
        env_file = str(Path(__file__).parent.parent / ".env")
        case_sensitive = False
        extra = "ignore"
        frozen = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()
