from functools import lru_cache
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# 1990-01-01T00:00:00Z
DEFAULT_EPOCH = 631123200000


class Settings(BaseSettings):
    """Allocator settings, read from ``IDGEN_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="IDGEN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    WORKER_ID: Optional[int] = None
    DATACENTER_ID: Optional[int] = None
    EPOCH: int = DEFAULT_EPOCH
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def normalize_log_level(cls, value):
        """Accept level names in any case, e.g. ``debug``."""
        if isinstance(value, str):
            return value.strip().upper()
        return value


@lru_cache
def get_settings() -> Settings:
    """Load settings once from the environment and ``.env`` file."""
    return Settings()
