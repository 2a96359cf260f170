"""Async HTTP access to the synthetic user source."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
import structlog

from .records import User, validate_record

USERS_PATH = "/api/users"
STREAM_PATH = "/api/users-stream"


class FetchError(RuntimeError):
    """Transport failure or non-OK status from the data source."""

    def __init__(self, message: str, url: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class UserFetcher:
    """Issue page and stream requests; one client per session."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 15.0,
        users_per_page: int = 10,
        client: httpx.AsyncClient | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.users_per_page = users_per_page
        self.logger = logger or structlog.get_logger("user_explorer.fetcher")
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "UserFetcher":
        return self

    async def __aexit__(self, *_exc_info) -> None:
        await self.aclose()

    async def fetch_page(self, page: int) -> list[User]:
        url = f"{self.base_url}{USERS_PATH}"
        params = {"page": page, "limit": self.users_per_page}
        try:
            response = await self._client.get(url, params=params)
        except httpx.HTTPError as exc:
            self.logger.warning("page_fetch_error", url=url, page=page, error=str(exc))
            raise FetchError(f"Request for page {page} failed: {exc}", url) from exc
        if self._is_failure(response):
            self.logger.warning("page_fetch_status", url=url, page=page, status=response.status_code)
            raise FetchError(
                f"Unexpected status {response.status_code} for page {page}",
                url,
                response.status_code,
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise FetchError(f"Page {page} returned a non-JSON body", url, response.status_code) from exc
        if not isinstance(payload, list):
            raise FetchError(f"Page {page} did not return a JSON array", url, response.status_code)

        users: list[User] = []
        for item in payload:
            result = validate_record(item)
            if result.valid:
                users.append(result.user)
            else:
                self.logger.warning("page_record_rejected", page=page, reason=result.reason)
        self.logger.debug("page_fetched", page=page, count=len(users))
        return users

    @asynccontextmanager
    async def open_stream(self) -> AsyncIterator[AsyncIterator[bytes]]:
        """Yield the raw byte chunks of the streaming endpoint.

        Leaving the block releases the connection whether or not the body was
        fully read.
        """

        url = f"{self.base_url}{STREAM_PATH}"
        try:
            async with self._client.stream("GET", url) as response:
                if self._is_failure(response):
                    raise FetchError(
                        f"HTTP error! status: {response.status_code}", url, response.status_code
                    )
                yield response.aiter_bytes()
        except httpx.HTTPError as exc:
            self.logger.warning("stream_open_error", url=url, error=str(exc))
            raise FetchError(f"Streaming request failed: {exc}", url) from exc

    @staticmethod
    def _is_failure(response: httpx.Response) -> bool:
        return not 200 <= response.status_code < 300


__all__ = ["FetchError", "STREAM_PATH", "USERS_PATH", "UserFetcher"]
