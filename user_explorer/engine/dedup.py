"""Deduplication by user id."""

from __future__ import annotations

from typing import Iterable

from .records import User


def merge_unique(*batches: Iterable[User]) -> list[User]:
    """Concatenate batches keeping the first occurrence of each id."""

    store = DeduplicationStore()
    merged: list[User] = []
    for batch in batches:
        for user in batch:
            if store.check_and_store(user.id):
                merged.append(user)
    return merged


class DeduplicationStore:
    """Remember ids accepted during one run."""

    def __init__(self) -> None:
        self._seen: set[int] = set()

    def check_and_store(self, user_id: int) -> bool:
        """Return True when ``user_id`` is new, recording it."""

        if user_id in self._seen:
            return False
        self._seen.add(user_id)
        return True


__all__ = ["DeduplicationStore", "merge_unique"]
