# config.py

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LeaseSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="LEASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- etcd ---
    etcd_host: str = "127.0.0.1"
    etcd_port: int = 2379
    etcd_timeout: Optional[float] = None

    # --- Leases ---
    key_prefix: str = "/leases"
    default_ttl_ms: int = Field(30_000, gt=0)
    max_cas_retries: int = Field(16, ge=1)

    # --- Logging ---
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_file: Optional[str] = None

    @field_validator("key_prefix")
    @classmethod
    def _normalize_prefix(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError("key_prefix must start with '/'")
        return value.rstrip("/")


@lru_cache
def get_settings() -> LeaseSettings:
    return LeaseSettings()
