"""Session coordinator wiring fetching, caching, streaming and processing."""

from __future__ import annotations

from typing import Callable, Literal

import structlog

from .config import DataSettings, ExplorerConfig, SortKey
from .engine import (
    ExpiringCache,
    Metrics,
    ParallelFetchCoordinator,
    ProcessingDispatcher,
    StreamIngestor,
    USERS_CACHE_KEY,
    User,
    UserFetcher,
)
from .logging_conf import configure_logging


class Explorer:
    """Hold one session's user state and run its data operations.

    Every operation catches its own failures, logs them and leaves a safe
    state behind; ``loading`` is always cleared on the way out.
    """

    def __init__(
        self,
        config: ExplorerConfig,
        fetcher: UserFetcher,
        cache: ExpiringCache,
        dispatcher: ProcessingDispatcher | None = None,
        ingestor: StreamIngestor | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.config = config
        self.fetcher = fetcher
        self.cache = cache
        self.coordinator = ParallelFetchCoordinator(fetcher)
        self.dispatcher = dispatcher or ProcessingDispatcher()
        self.ingestor = ingestor or StreamIngestor()
        self.logger = logger or configure_logging().bind(component="explorer")

        self.users: list[User] = []
        self.stream_users: list[User] = []
        self.loading = False
        self.data_source: Literal["cache", "server"] | None = None
        self.metrics = Metrics()
        self.settings = config.data_settings.model_copy()
        self.min_age = config.processing.min_age
        self.sort_by = config.processing.sort_by
        self.use_worker = config.processing.use_worker

    # ------------------------------------------------------------------
    def update_settings(
        self, pages_to_fetch: int | None = None, stream_limit: int | None = None
    ) -> DataSettings:
        payload = self.settings.model_dump()
        if pages_to_fetch is not None:
            payload["pages_to_fetch"] = pages_to_fetch
        if stream_limit is not None:
            payload["stream_limit"] = stream_limit
        self.settings = DataSettings.model_validate(payload)
        return self.settings

    async def load_parallel_data(self) -> list[User]:
        self.loading = True
        try:
            cached = self.cache.get(USERS_CACHE_KEY)
            if cached is not None:
                self.users = cached
                self.data_source = "cache"
                self.logger.info("users_loaded_from_cache", count=len(cached))
                return self.users

            result = await self.coordinator.run(self.settings.pages_to_fetch)
            self.users = result.users
            self.data_source = "server"
            self.metrics.parallel_all = result.all_ms
            self.metrics.parallel_settled = result.settled_ms
            self.cache.put(USERS_CACHE_KEY, result.users)
        except Exception as exc:  # noqa: BLE001
            self.logger.error("parallel_load_failed", error=str(exc), error_type=type(exc).__name__)
        finally:
            self.loading = False
        return self.users

    async def refresh_data(self) -> list[User]:
        self.cache.invalidate(USERS_CACHE_KEY)
        return await self.load_parallel_data()

    async def stream_data(self, on_record: Callable[[User], None] | None = None) -> list[User]:
        self.stream_users = []

        def _append(user: User) -> None:
            self.stream_users.append(user)
            if on_record is not None:
                on_record(user)

        try:
            async with self.fetcher.open_stream() as chunks:
                await self.ingestor.ingest(chunks, self.settings.stream_limit, on_record=_append)
        except Exception as exc:  # noqa: BLE001
            self.logger.error(
                "streaming_failed",
                error=str(exc),
                error_type=type(exc).__name__,
                received=len(self.stream_users),
            )
        return self.stream_users

    async def process_data(
        self,
        min_age: int | None = None,
        sort_by: SortKey | str | None = None,
        use_worker: bool | None = None,
    ) -> list[User]:
        if min_age is not None:
            self.min_age = min_age
        if sort_by is not None:
            self.sort_by = SortKey(sort_by)
        if use_worker is not None:
            self.use_worker = use_worker
        if not self.users:
            self.logger.info("process_skipped_no_users")
            return self.users

        if self.use_worker:
            outcome = await self.dispatcher.process_offloaded(self.users, self.min_age, self.sort_by)
            if outcome is None:
                return self.users
            self.metrics.worker_time = outcome.elapsed_ms
        else:
            outcome = self.dispatcher.process_inline(self.users, self.min_age, self.sort_by)
            self.metrics.main_thread_time = outcome.elapsed_ms
        self.users = outcome.users
        return self.users


__all__ = ["Explorer"]
