"""Pydantic models used across the explorer configuration flow."""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

MAX_PAGES_TO_FETCH = 5
MAX_STREAM_LIMIT = 30


class SortKey(str, Enum):
    """Fields the processing step can order by."""

    NAME = "name"
    AGE = "age"


class DataSettings(BaseModel):
    """Caller-adjustable bounds on how much synthetic data is requested."""

    pages_to_fetch: int = Field(default=2, ge=1, le=MAX_PAGES_TO_FETCH)
    stream_limit: int = Field(default=15, ge=1, le=MAX_STREAM_LIMIT)


class ProcessingDefaults(BaseModel):
    """Initial filter/sort controls for a session."""

    min_age: int = 30
    sort_by: SortKey = SortKey.NAME
    use_worker: bool = True


class ServerSettings(BaseModel):
    """Behaviour of the mock data server."""

    host: str = "127.0.0.1"
    port: int = 5000
    page_delay: float = 0.3
    stream_interval: float = 0.1
    stream_count: int = 50
    default_limit: int = 50
    max_limit: int = 500

    @model_validator(mode="after")
    def _validate_non_negative(self) -> "ServerSettings":
        if self.page_delay < 0:
            raise ValueError("page_delay must be >= 0")
        if self.stream_interval < 0:
            raise ValueError("stream_interval must be >= 0")
        if self.stream_count < 0:
            raise ValueError("stream_count must be >= 0")
        if self.default_limit < 1:
            raise ValueError("default_limit must be >= 1")
        if self.max_limit < self.default_limit:
            raise ValueError("max_limit must be >= default_limit")
        return self


class ExplorerConfig(BaseModel):
    """Top level configuration shared by the client session and the mock server."""

    base_url: str = "http://localhost:5000"
    request_timeout: float = 15.0
    users_per_page: int = Field(default=10, ge=1)
    cache_ttl_seconds: float = Field(default=300.0, gt=0)
    cache_backend: Literal["sqlite", "memory"] = "sqlite"
    data_settings: DataSettings = Field(default_factory=DataSettings)
    processing: ProcessingDefaults = Field(default_factory=ProcessingDefaults)
    server: ServerSettings = Field(default_factory=ServerSettings)

    @field_validator("base_url", mode="before")
    @classmethod
    def _strip_trailing_slash(cls, value: Any) -> str:
        text = str(value).strip()
        if not text:
            raise ValueError("base_url cannot be empty")
        return text.rstrip("/")


__all__ = [
    "DataSettings",
    "ExplorerConfig",
    "MAX_PAGES_TO_FETCH",
    "MAX_STREAM_LIMIT",
    "ProcessingDefaults",
    "ServerSettings",
    "SortKey",
]
