"""Pytest configuration providing shared fixtures."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Iterable

import httpx
import pytest

from user_explorer.config import ConfigLocator, ConfigRepository, ExplorerConfig
from user_explorer.engine import User, UserFetcher

BASE_URL = "http://testserver"


def make_user(user_id: int, age: int = 30, name: str | None = None) -> User:
    return User(
        id=user_id,
        name=name or f"User {user_id}",
        age=age,
        email=f"user{user_id}@example.com",
    )


def user_dicts(ids: Iterable[int], age: int = 30) -> list[dict[str, Any]]:
    return [make_user(user_id, age=age).model_dump() for user_id in ids]


def ndjson(records: Iterable[Any]) -> bytes:
    return "".join(json.dumps(record) + "\n" for record in records).encode("utf-8")


@pytest.fixture(autouse=True)
def explorer_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("USER_EXPLORER_HOME", str(tmp_path))
    return tmp_path


@pytest.fixture
def sample_config() -> Callable[..., ExplorerConfig]:
    def _builder(**overrides: Any) -> ExplorerConfig:
        base: dict[str, Any] = {
            "base_url": BASE_URL,
            "users_per_page": 10,
            "cache_backend": "memory",
        }
        base.update(overrides)
        return ExplorerConfig(**base)

    return _builder


@pytest.fixture
def paged_handler() -> Callable[[httpx.Request], httpx.Response]:
    """Serve ``limit`` users per page with ids (page-1)*limit+1 .. page*limit."""

    def _handler(request: httpx.Request) -> httpx.Response:
        page = int(request.url.params.get("page", 1))
        limit = int(request.url.params.get("limit", 50))
        start = (page - 1) * limit + 1
        return httpx.Response(200, json=user_dicts(range(start, start + limit)))

    return _handler


@pytest.fixture
def fetcher_factory() -> Callable[..., UserFetcher]:
    def _builder(handler: Callable[[httpx.Request], Any], users_per_page: int = 10) -> UserFetcher:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=BASE_URL)
        return UserFetcher(BASE_URL, users_per_page=users_per_page, client=client)

    return _builder


@pytest.fixture
def temp_config_repository(tmp_path: Path) -> ConfigRepository:
    locator = ConfigLocator(project_root=tmp_path)
    return ConfigRepository(locator)


@pytest.fixture(name="make_user")
def make_user_fixture() -> Callable[..., User]:
    return make_user


@pytest.fixture(name="ndjson")
def ndjson_fixture() -> Callable[[Iterable[Any]], bytes]:
    return ndjson
