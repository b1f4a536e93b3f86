from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import redis
from flask import Flask, current_app

from app.lucien.config import is_production

logger = logging.getLogger(__name__)

UPLOAD_LIMIT = (10, 60)
HANDSHAKE_LIMIT = (10, 60)
MESSAGES_LIMIT = (30, 60)
MUTATION_LIMIT = (30, 60)


@dataclass(frozen=True)
class RateLimitResult:
    count: int
    limit: int
    remaining: int

    @property
    def allowed(self) -> bool:
        return self.count <= self.limit

    def headers(self) -> dict[str, str]:
        return {"X-RateLimit-Limit": str(self.limit), "X-RateLimit-Remaining": str(self.remaining)}


def init_redis(app: Flask) -> None:
    url = app.config.get("REDIS_URL") or ""
    if not url:
        if is_production(app.config.get("ENV")):
            raise RuntimeError("REDIS_URL is required in production.")
        app.logger.warning("REDIS_URL not set; rate limits disabled and secure channel kept in memory.")
        app.extensions["redis"] = None
        return
    app.extensions["redis"] = redis.Redis.from_url(url, decode_responses=True)


def get_redis() -> Any | None:
    return current_app.extensions.get("redis")


def check_rate_limit(key: str, limit: int, window_seconds: int, client: Any | None = None) -> RateLimitResult:
    """
    Fixed-window counter: INCR the key and start its expiry on the first hit.
    Without a redis client every request is allowed with a count of 0.
    """
    r = client if client is not None else get_redis()
    if r is None:
        return RateLimitResult(count=0, limit=limit, remaining=limit)
    count = int(r.incr(key))
    if count == 1:
        r.expire(key, window_seconds)
    return RateLimitResult(count=count, limit=limit, remaining=max(limit - count, 0))
