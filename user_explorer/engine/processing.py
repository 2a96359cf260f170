"""Filter + sort of loaded users, inline or in a one-shot worker process."""

from __future__ import annotations

import asyncio
import time
import unicodedata
from concurrent.futures import Executor, ProcessPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Literal

import structlog

from ..config.models import SortKey
from .records import User, users_from_payload, users_to_payload


def name_collation_key(name: str) -> tuple[str, str]:
    """Case- and accent-insensitive ordering; lowercase wins ties between case variants."""

    folded = unicodedata.normalize("NFKD", name).casefold()
    return ("".join(ch for ch in folded if not unicodedata.combining(ch)), name.swapcase())


def _sort_key(sort_by: SortKey) -> Callable[[User], Any]:
    if sort_by is SortKey.NAME:
        return lambda user: name_collation_key(user.name)
    if sort_by is SortKey.AGE:
        return lambda user: user.age
    raise ValueError(f"Unsupported sort key: {sort_by}")


def transform_users(users: list[User], min_age: int, sort_by: SortKey | str) -> list[User]:
    """Keep users strictly older than ``min_age`` and stable-sort them.

    ``min_age`` is truncated to an int so both execution modes share one threshold.
    """

    threshold = int(min_age)
    key = _sort_key(SortKey(sort_by))
    return sorted((user for user in users if user.age > threshold), key=key)


def handle_message(message: dict[str, Any]) -> dict[str, Any]:
    """Worker entry point: ``{users, minAge, sortBy}`` -> ``{users, processingTime}``."""

    start = time.perf_counter()
    users = users_from_payload(message["users"])
    result = transform_users(users, message["minAge"], message["sortBy"])
    processing_time = (time.perf_counter() - start) * 1000
    return {"users": users_to_payload(result), "processingTime": processing_time}


@dataclass(slots=True)
class ProcessingOutcome:
    users: list[User]
    elapsed_ms: float
    mode: Literal["worker", "inline"]


def _single_worker() -> Executor:
    return ProcessPoolExecutor(max_workers=1)


class ProcessingDispatcher:
    """Run :func:`transform_users` on the caller's loop or in an isolated worker."""

    def __init__(
        self,
        executor_factory: Callable[[], Executor] = _single_worker,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.executor_factory = executor_factory
        self.logger = logger or structlog.get_logger("user_explorer.processing")

    def process_inline(self, users: list[User], min_age: int, sort_by: SortKey) -> ProcessingOutcome:
        start = time.perf_counter()
        result = transform_users(users, min_age, sort_by)
        elapsed = (time.perf_counter() - start) * 1000
        self.logger.info("inline_processed", count=len(result), elapsed_ms=round(elapsed, 3))
        return ProcessingOutcome(users=result, elapsed_ms=elapsed, mode="inline")

    async def process_offloaded(
        self, users: list[User], min_age: int, sort_by: SortKey
    ) -> ProcessingOutcome | None:
        """Hand a copy of ``users`` to a fresh worker and await its single reply.

        Returns None when the worker fails; the worker is torn down either way.
        """

        message = {"users": users_to_payload(users), "minAge": min_age, "sortBy": SortKey(sort_by).value}
        loop = asyncio.get_running_loop()
        executor = self.executor_factory()
        try:
            reply = await loop.run_in_executor(executor, handle_message, message)
            result = users_from_payload(reply["users"])
            elapsed = float(reply["processingTime"])
        except Exception as exc:  # noqa: BLE001
            self.logger.error("worker_failed", error=str(exc), error_type=type(exc).__name__)
            return None
        finally:
            executor.shutdown(wait=False)
        self.logger.info("worker_processed", count=len(result), elapsed_ms=round(elapsed, 3))
        return ProcessingOutcome(users=result, elapsed_ms=elapsed, mode="worker")


__all__ = [
    "ProcessingDispatcher",
    "ProcessingOutcome",
    "handle_message",
    "name_collation_key",
    "transform_users",
]
