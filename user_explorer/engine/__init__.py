"""Engine components: fetch → dedup → cache → stream → process."""

from .cache import ExpiringCache, MemoryCacheBackend, SQLiteCacheBackend, USERS_CACHE_KEY
from .dedup import DeduplicationStore, merge_unique
from .fetcher import FetchError, UserFetcher
from .parallel import ParallelFetchCoordinator, ParallelFetchResult, SettledOutcome
from .processing import ProcessingDispatcher, ProcessingOutcome, transform_users
from .records import Metrics, RecordValidation, User, parse_line, validate_record
from .stream import LineBuffer, StreamIngestor

__all__ = [
    "DeduplicationStore",
    "ExpiringCache",
    "FetchError",
    "LineBuffer",
    "MemoryCacheBackend",
    "Metrics",
    "ParallelFetchCoordinator",
    "ParallelFetchResult",
    "ProcessingDispatcher",
    "ProcessingOutcome",
    "RecordValidation",
    "SQLiteCacheBackend",
    "SettledOutcome",
    "StreamIngestor",
    "USERS_CACHE_KEY",
    "User",
    "UserFetcher",
    "merge_unique",
    "parse_line",
    "transform_users",
    "validate_record",
]
