from __future__ import annotations

import asyncio
import json
from concurrent.futures import ThreadPoolExecutor

import httpx
import pytest
import structlog
from structlog.testing import capture_logs

from user_explorer.config import SortKey
from user_explorer.engine import (
    ExpiringCache,
    MemoryCacheBackend,
    ProcessingDispatcher,
    SQLiteCacheBackend,
    USERS_CACHE_KEY,
)
from user_explorer.engine import processing
from user_explorer.infra import SQLiteManager
from user_explorer.orchestrator import Explorer


def _stream_body(count: int) -> bytes:
    return "".join(
        json.dumps({"id": i, "name": f"User {i}", "age": 20 + i, "email": f"user{i}@example.com"}) + "\n"
        for i in range(1, count + 1)
    ).encode("utf-8")


@pytest.fixture
def build_explorer(sample_config, fetcher_factory):
    def _builder(handler, cache: ExpiringCache | None = None, **config_overrides) -> Explorer:
        config = sample_config(**config_overrides)
        fetcher = fetcher_factory(handler, users_per_page=config.users_per_page)
        return Explorer(config, fetcher, cache or ExpiringCache(MemoryCacheBackend()))

    return _builder


def test_load_fetches_from_server_and_caches(build_explorer, paged_handler) -> None:
    explorer = build_explorer(paged_handler)
    users = asyncio.run(explorer.load_parallel_data())

    assert [user.id for user in users] == list(range(1, 21))
    assert explorer.data_source == "server"
    assert explorer.loading is False
    assert explorer.metrics.parallel_all > 0
    assert explorer.metrics.parallel_settled > 0
    assert explorer.cache.get(USERS_CACHE_KEY) == users


def test_load_prefers_fresh_cache(build_explorer, make_user) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        pytest.fail("server must not be called on a cache hit")

    cache = ExpiringCache(MemoryCacheBackend())
    cache.put(USERS_CACHE_KEY, [make_user(42)])
    explorer = build_explorer(handler, cache=cache)

    users = asyncio.run(explorer.load_parallel_data())
    assert [user.id for user in users] == [42]
    assert explorer.data_source == "cache"
    assert explorer.metrics.parallel_all == 0.0


def test_refresh_invalidates_cache_before_loading(build_explorer, paged_handler, make_user) -> None:
    cache = ExpiringCache(MemoryCacheBackend())
    cache.put(USERS_CACHE_KEY, [make_user(42)])
    explorer = build_explorer(paged_handler, cache=cache)

    users = asyncio.run(explorer.refresh_data())
    assert len(users) == 20
    assert explorer.data_source == "server"


def test_load_failure_is_logged_and_clears_loading(build_explorer, make_user) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.params["page"] == "2":
            return httpx.Response(500)
        return httpx.Response(200, json=[make_user(1).model_dump()])

    explorer = build_explorer(handler)
    explorer.users = [make_user(99)]
    with capture_logs() as logs:
        explorer.logger = structlog.get_logger("test.explorer")
        users = asyncio.run(explorer.load_parallel_data())

    assert [user.id for user in users] == [99]
    assert explorer.loading is False
    assert explorer.cache.get(USERS_CACHE_KEY) is None
    assert any(entry["event"] == "parallel_load_failed" for entry in logs)


def test_stream_respects_limit_from_settings(build_explorer, make_user) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=_stream_body(50))

    explorer = build_explorer(handler)
    explorer.update_settings(stream_limit=5)
    observed: list[int] = []

    users = asyncio.run(explorer.stream_data(on_record=lambda user: observed.append(user.id)))
    assert [user.id for user in users] == [1, 2, 3, 4, 5]
    assert observed == [1, 2, 3, 4, 5]
    assert explorer.stream_users == users


def test_stream_failure_keeps_empty_result(build_explorer) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    explorer = build_explorer(handler)
    assert asyncio.run(explorer.stream_data()) == []


def test_update_settings_validates_bounds(build_explorer, paged_handler) -> None:
    explorer = build_explorer(paged_handler)
    assert explorer.update_settings(pages_to_fetch=3).pages_to_fetch == 3
    assert explorer.settings.stream_limit == 15
    with pytest.raises(ValueError):
        explorer.update_settings(pages_to_fetch=6)
    assert explorer.settings.pages_to_fetch == 3


def test_process_inline_updates_users_and_metric(build_explorer, paged_handler, make_user) -> None:
    explorer = build_explorer(paged_handler)
    explorer.users = [make_user(1, age=40, name="b"), make_user(2, age=20, name="a"), make_user(3, age=50, name="a")]

    result = asyncio.run(explorer.process_data(min_age=30, sort_by="name", use_worker=False))
    assert [user.id for user in result] == [3, 1]
    assert explorer.metrics.main_thread_time > 0
    assert explorer.metrics.worker_time == 0.0


def test_process_worker_updates_users_and_metric(build_explorer, paged_handler, make_user) -> None:
    explorer = build_explorer(paged_handler)
    explorer.users = [make_user(1, age=40), make_user(2, age=35)]

    result = asyncio.run(explorer.process_data(min_age=30, sort_by=SortKey.AGE, use_worker=True))
    assert [user.id for user in result] == [2, 1]
    assert explorer.metrics.worker_time >= 0
    assert explorer.metrics.main_thread_time == 0.0


def test_process_worker_failure_leaves_users_unchanged(
    build_explorer, paged_handler, make_user, monkeypatch: pytest.MonkeyPatch
) -> None:
    def broken(_message):
        raise RuntimeError("boom")

    monkeypatch.setattr(processing, "handle_message", broken)
    explorer = build_explorer(paged_handler)
    explorer.dispatcher = ProcessingDispatcher(executor_factory=lambda: ThreadPoolExecutor(max_workers=1))
    original = [make_user(1, age=40), make_user(2, age=35)]
    explorer.users = list(original)

    result = asyncio.run(explorer.process_data(min_age=30, sort_by=SortKey.AGE, use_worker=True))
    assert result == original
    assert explorer.metrics.worker_time == 0.0


def test_process_without_users_is_noop(build_explorer, paged_handler) -> None:
    explorer = build_explorer(paged_handler)
    assert asyncio.run(explorer.process_data(use_worker=False)) == []
    assert explorer.metrics.main_thread_time == 0.0


def test_load_recovers_from_unreadable_cached_row(build_explorer, paged_handler, tmp_path) -> None:
    manager = SQLiteManager(tmp_path / "cache.db")
    conn = manager.connect()
    conn.execute(
        "INSERT INTO cache_entries(key, payload) VALUES (?, ?)",
        (USERS_CACHE_KEY, '{"data": [{"id": 1, "name": "User 1", "age": 30}], "timestamp": 0}'),
    )
    conn.commit()
    explorer = build_explorer(paged_handler, cache=ExpiringCache(SQLiteCacheBackend(manager)))

    users = asyncio.run(explorer.load_parallel_data())
    assert len(users) == 20
    assert explorer.data_source == "server"

    again = asyncio.run(explorer.load_parallel_data())
    assert again == users
    assert explorer.data_source == "cache"
