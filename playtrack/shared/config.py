from __future__ import annotations

from pydantic import BaseModel, Field


class AppConfig(BaseModel):
    auto_tracking: bool = True
    notifications_enabled: bool = True
    poll_interval_ms: int = Field(default=2000, ge=250)
    session_timeout_ms: int = Field(default=6000, ge=0)
    cleanup_timeout_ms: int = Field(default=300_000, ge=0)
    cache_ttl_ms: int = Field(default=1500, ge=0)
    max_cache_entries: int = Field(default=5000, ge=1)
    catalog_refresh_ms: int = Field(default=60_000, ge=0)
    native_timeout_s: float = Field(default=10.0, gt=0)

    def to_monitor_config(self) -> dict:
        return {
            "poll_interval_ms": self.poll_interval_ms,
            "session_timeout_ms": self.session_timeout_ms,
            "cleanup_timeout_ms": self.cleanup_timeout_ms,
            "cache_ttl_ms": self.cache_ttl_ms,
            "max_cache_entries": self.max_cache_entries,
            "catalog_refresh_ms": self.catalog_refresh_ms,
        }
