"""
Mock data server.

A stateless random-user generator exposing two endpoints:

    GET /api/users          - paginated JSON array, after a fixed delay
    GET /api/users-stream   - newline-delimited JSON, one record per interval

Identifiers come from a process-wide counter that starts at 1 and is never
reset; they are not stable across server restarts.
"""

from __future__ import annotations

import json
import random
import time
from threading import Lock
from typing import Iterator

import structlog
from flask import Flask, Response, jsonify, request
from werkzeug.exceptions import HTTPException

from ..config.models import ServerSettings

MIN_AGE = 18
AGE_SPAN = 50


class UserFactory:
    """Produce synthetic user dicts with monotonically increasing ids."""

    def __init__(self, start: int = 1, rng: random.Random | None = None) -> None:
        self._next_id = start
        self._lock = Lock()
        self._rng = rng or random.Random()

    def create(self) -> dict:
        with self._lock:
            user_id = self._next_id
            self._next_id += 1
        return {
            "id": user_id,
            "name": f"User {user_id}",
            "age": MIN_AGE + self._rng.randrange(AGE_SPAN),
            "email": f"user{user_id}@example.com",
        }

    def create_many(self, count: int) -> list[dict]:
        return [self.create() for _ in range(count)]


_default_factory = UserFactory()


def _positive_int_arg(name: str, default: int) -> int:
    value = request.args.get(name, default=default, type=int)
    if value is None or value < 1:
        return default
    return value


def create_app(
    settings: ServerSettings | None = None, factory: UserFactory | None = None
) -> Flask:
    """
    Create and configure the mock server application.

    Args:
        settings: Delays, counts and limits; defaults mirror the demo backend.
        factory: Id/record generator; defaults to the process-wide one.

    Returns:
        Configured Flask application instance.
    """
    settings = settings or ServerSettings()
    factory = factory or _default_factory
    logger = structlog.get_logger("user_explorer.server")

    app = Flask(__name__)
    app.config["SERVER_SETTINGS"] = settings
    app.config["USER_FACTORY"] = factory

    @app.after_request
    def _allow_cors(response: Response) -> Response:
        response.headers["Access-Control-Allow-Origin"] = "*"
        return response

    @app.get("/api/users")
    def list_users():
        page = _positive_int_arg("page", 1)
        limit = min(_positive_int_arg("limit", settings.default_limit), settings.max_limit)
        if settings.page_delay:
            time.sleep(settings.page_delay)
        users = factory.create_many(limit)
        logger.debug("page_served", page=page, limit=limit)
        return jsonify(users)

    @app.get("/api/users-stream")
    def stream_users():
        def generate() -> Iterator[str]:
            for _ in range(settings.stream_count):
                if settings.stream_interval:
                    time.sleep(settings.stream_interval)
                yield json.dumps(factory.create()) + "\n"

        return Response(generate(), mimetype="application/json")

    @app.errorhandler(Exception)
    def _internal_error(error: Exception):
        if isinstance(error, HTTPException):
            return error
        logger.error("server_error", error=str(error), exc_info=True)
        return jsonify({"error": "Internal server error"}), 500

    return app


__all__ = ["UserFactory", "create_app"]
