"""User record model and explicit record-shape validation."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError


class User(BaseModel):
    """Synthetic user as produced by the data source. Identity is ``id``."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    age: int
    email: str


@dataclass(slots=True, frozen=True)
class RecordValidation:
    """Outcome of checking one raw record."""

    valid: bool
    user: User | None = None
    reason: str | None = None

    @classmethod
    def accept(cls, user: User) -> "RecordValidation":
        return cls(valid=True, user=user)

    @classmethod
    def reject(cls, reason: str) -> "RecordValidation":
        return cls(valid=False, reason=reason)


def validate_record(raw: Any) -> RecordValidation:
    """Check that ``raw`` looks like a user; never raises."""

    if not isinstance(raw, dict):
        return RecordValidation.reject("not_an_object")
    # id 0 counts as missing, same as an absent key
    if not raw.get("id"):
        return RecordValidation.reject("missing_id")
    name = raw.get("name")
    if not name or (isinstance(name, str) and not name.strip()):
        return RecordValidation.reject("missing_name")
    try:
        user = User.model_validate(raw)
    except ValidationError as exc:
        fields = ",".join(str(err["loc"][0]) for err in exc.errors() if err.get("loc"))
        return RecordValidation.reject(f"schema_mismatch:{fields}")
    return RecordValidation.accept(user)


def parse_line(line: str) -> RecordValidation:
    """Decode one newline-delimited JSON line and validate it."""

    try:
        raw = json.loads(line)
    except ValueError:
        return RecordValidation.reject("invalid_json")
    return validate_record(raw)


def users_to_payload(users: list[User]) -> list[dict[str, Any]]:
    return [user.model_dump() for user in users]


def users_from_payload(payload: list[dict[str, Any]]) -> list[User]:
    return [User.model_validate(item) for item in payload]


@dataclass
class Metrics:
    """Most recent duration (ms) of each measured operation; unmeasured reads as zero."""

    parallel_all: float = 0.0
    parallel_settled: float = 0.0
    worker_time: float = 0.0
    main_thread_time: float = 0.0


__all__ = [
    "Metrics",
    "RecordValidation",
    "User",
    "parse_line",
    "users_from_payload",
    "users_to_payload",
    "validate_record",
]
