"""Incremental ingestion of newline-delimited JSON user streams."""

from __future__ import annotations

import codecs
from typing import AsyncIterator, Callable

import structlog

from .dedup import DeduplicationStore
from .records import User, parse_line


class LineBuffer:
    """Split a byte stream into complete text lines.

    The unterminated tail is kept until a newline arrives or :meth:`flush`
    is called at end of stream.
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._pending = ""

    @property
    def pending(self) -> str:
        return self._pending

    def feed(self, chunk: bytes) -> list[str]:
        self._pending += self._decoder.decode(chunk)
        *lines, self._pending = self._pending.split("\n")
        return lines

    def flush(self) -> list[str]:
        self._pending += self._decoder.decode(b"", final=True)
        tail, self._pending = self._pending, ""
        return [tail] if tail else []


class StreamIngestor:
    """Accept up to ``limit`` unique, valid users from a chunk iterator."""

    def __init__(self, logger: structlog.BoundLogger | None = None) -> None:
        self.logger = logger or structlog.get_logger("user_explorer.stream")

    async def ingest(
        self,
        chunks: AsyncIterator[bytes],
        limit: int,
        on_record: Callable[[User], None] | None = None,
    ) -> list[User]:
        if limit < 1:
            raise ValueError("limit must be >= 1")
        buffer = LineBuffer()
        seen = DeduplicationStore()
        accepted: list[User] = []
        reached_limit = False

        def consume(lines: list[str]) -> bool:
            for line in lines:
                if len(accepted) >= limit:
                    return True
                if not line.strip():
                    continue
                result = parse_line(line)
                if not result.valid:
                    self.logger.warning("stream_record_skipped", reason=result.reason, line=line[:200])
                    continue
                user = result.user
                if not seen.check_and_store(user.id):
                    self.logger.debug("stream_duplicate_skipped", id=user.id)
                    continue
                accepted.append(user)
                if on_record is not None:
                    on_record(user)
            return len(accepted) >= limit

        try:
            async for chunk in chunks:
                if consume(buffer.feed(chunk)):
                    reached_limit = True
                    break
            else:
                consume(buffer.flush())
        finally:
            if reached_limit:
                aclose = getattr(chunks, "aclose", None)
                if aclose is not None:
                    await aclose()
        if reached_limit:
            self.logger.info("stream_stopped_at_limit", limit=limit)
        self.logger.info("stream_complete", accepted=len(accepted), limit=limit)
        return accepted


__all__ = ["LineBuffer", "StreamIngestor"]
