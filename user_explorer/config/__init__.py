"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import (
    MAX_PAGES_TO_FETCH,
    MAX_STREAM_LIMIT,
    DataSettings,
    ExplorerConfig,
    ProcessingDefaults,
    ServerSettings,
    SortKey,
)

__all__ = [
    "ConfigLocator",
    "ConfigRepository",
    "DataSettings",
    "ExplorerConfig",
    "MAX_PAGES_TO_FETCH",
    "MAX_STREAM_LIMIT",
    "ProcessingDefaults",
    "ServerSettings",
    "SortKey",
]
