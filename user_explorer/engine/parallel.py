"""Concurrent page fetching with fail-fast and partial-success aggregation."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field

import structlog

from .dedup import merge_unique
from .fetcher import UserFetcher
from .records import User


@dataclass(slots=True)
class SettledOutcome:
    """Per-request outcomes of a partial-success group."""

    batches: list[list[User]] = field(default_factory=list)
    failures: list[BaseException] = field(default_factory=list)

    @property
    def users(self) -> list[User]:
        return [user for batch in self.batches for user in batch]


@dataclass(slots=True)
class ParallelFetchResult:
    users: list[User]
    all_ms: float
    settled_ms: float
    failures: list[BaseException] = field(default_factory=list)


class ParallelFetchCoordinator:
    """Fetch the same pages twice, once per aggregation strategy, and merge.

    The two groups are timed separately; both timings are kept because they
    benchmark two patterns. There is no retry: a failed fail-fast group is
    surfaced to the caller as is.
    """

    def __init__(self, fetcher: UserFetcher, logger: structlog.BoundLogger | None = None) -> None:
        self.fetcher = fetcher
        self.logger = logger or structlog.get_logger("user_explorer.parallel")

    async def fetch_all(self, pages: list[int]) -> list[list[User]]:
        """Any single failure aborts the group and propagates."""

        return list(await asyncio.gather(*(self.fetcher.fetch_page(page) for page in pages)))

    async def fetch_settled(self, pages: list[int]) -> SettledOutcome:
        """Collect every outcome independently; only successes are kept."""

        results = await asyncio.gather(
            *(self.fetcher.fetch_page(page) for page in pages), return_exceptions=True
        )
        outcome = SettledOutcome()
        for page, result in zip(pages, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                self.logger.warning("settled_page_failed", page=page, error=str(result))
                outcome.failures.append(result)
            else:
                outcome.batches.append(result)
        return outcome

    async def run(self, pages_to_fetch: int) -> ParallelFetchResult:
        pages = list(range(1, pages_to_fetch + 1))

        all_start = time.perf_counter()
        all_batches = await self.fetch_all(pages)
        all_ms = (time.perf_counter() - all_start) * 1000

        settled_start = time.perf_counter()
        settled = await self.fetch_settled(pages)
        settled_ms = (time.perf_counter() - settled_start) * 1000

        fail_fast_users = [user for batch in all_batches for user in batch]
        users = merge_unique(fail_fast_users, settled.users)
        self.logger.info(
            "parallel_fetch_complete",
            pages=pages_to_fetch,
            unique_users=len(users),
            all_ms=round(all_ms, 2),
            settled_ms=round(settled_ms, 2),
            settled_failures=len(settled.failures),
        )
        return ParallelFetchResult(
            users=users, all_ms=all_ms, settled_ms=settled_ms, failures=settled.failures
        )


__all__ = ["ParallelFetchCoordinator", "ParallelFetchResult", "SettledOutcome"]
