"""
Public Endpoint Rate Limiting

WHY: The public registration, status-check and inquiry endpoints are
unauthenticated. Each caller address gets a fixed number of attempts per
window; after that the endpoint answers 429 until the oldest attempt ages
out of the window.

DESIGN:
- RateLimiter holds the policy (window, max attempts)
- RateLimitStore holds the counts; any object with count/record/oldest/purge
  can be injected
- SqlRateLimitStore (default) counts rows in rate_limit_hits, so every worker
  sharing the database shares the counter and it survives restarts
- MemoryRateLimitStore is for tests and single-process development
- Admin callers are exempted by the route decorator, not here

Only allowed calls are recorded as attempts. A rejected call does not extend
the lockout.
"""

from __future__ import annotations

import math
import threading
from collections import defaultdict, deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

from flask import current_app

from ..extensions import db
from ..errors import RateLimitedError
from ..models import RateLimitHit
from .concurrency import commit_or_raise
from disktrack.time_utils import as_naive_utc, utcnow


class RateLimitStore(Protocol):
    def count(self, bucket: str, key: str, since: datetime) -> int: ...

    def oldest(self, bucket: str, key: str, since: datetime) -> datetime | None: ...

    def record(self, bucket: str, key: str, at: datetime) -> None: ...

    def purge(self, before: datetime) -> int: ...


class SqlRateLimitStore:
    def _window(self, bucket: str, key: str, since: datetime):
        return db.session.query(RateLimitHit).filter(
            RateLimitHit.bucket == bucket,
            RateLimitHit.key == key,
            RateLimitHit.occurred_at >= since,
        )

    def count(self, bucket: str, key: str, since: datetime) -> int:
        return self._window(bucket, key, since).count()

    def oldest(self, bucket: str, key: str, since: datetime) -> datetime | None:
        hit = self._window(bucket, key, since).order_by(RateLimitHit.occurred_at.asc()).first()
        return hit.occurred_at if hit else None

    def record(self, bucket: str, key: str, at: datetime) -> None:
        db.session.add(RateLimitHit(bucket=bucket, key=key, occurred_at=at))
        commit_or_raise()

    def purge(self, before: datetime) -> int:
        deleted = (
            db.session.query(RateLimitHit)
            .filter(RateLimitHit.occurred_at < before)
            .delete(synchronize_session=False)
        )
        commit_or_raise()
        return deleted


class MemoryRateLimitStore:
    def __init__(self):
        self._hits: dict[tuple[str, str], deque] = defaultdict(deque)
        self._lock = threading.Lock()

    def count(self, bucket: str, key: str, since: datetime) -> int:
        with self._lock:
            return sum(1 for at in self._hits[(bucket, key)] if at >= since)

    def oldest(self, bucket: str, key: str, since: datetime) -> datetime | None:
        with self._lock:
            return next((at for at in self._hits[(bucket, key)] if at >= since), None)

    def record(self, bucket: str, key: str, at: datetime) -> None:
        with self._lock:
            self._hits[(bucket, key)].append(at)

    def purge(self, before: datetime) -> int:
        removed = 0
        with self._lock:
            for hits in self._hits.values():
                while hits and hits[0] < before:
                    hits.popleft()
                    removed += 1
        return removed


@dataclass
class RateLimiter:
    store: RateLimitStore
    window: timedelta
    max_attempts: int

    def hit(self, bucket: str, key: str, *, now: datetime | None = None) -> int:
        """
        Count one attempt for (bucket, key).

        Returns the attempts left in the current window.

        Raises:
            RateLimitedError: the cap was already reached; retry_after is the
                number of seconds until the oldest attempt leaves the window
        """
        now = as_naive_utc(now or utcnow())
        since = now - self.window

        used = self.store.count(bucket, key, since)
        if used >= self.max_attempts:
            oldest = self.store.oldest(bucket, key, since) or now
            retry_after = max(1, math.ceil((as_naive_utc(oldest) + self.window - now).total_seconds()))
            raise RateLimitedError(
                "Too many requests from this address. Please try again later.",
                retry_after=retry_after,
            )

        self.store.record(bucket, key, now)
        return self.max_attempts - used - 1

    def cleanup(self, *, now: datetime | None = None) -> int:
        now = as_naive_utc(now or utcnow())
        return self.store.purge(now - self.window)


def build_rate_limiter(config) -> RateLimiter:
    backend = config.get("RATE_LIMIT_BACKEND", "sql")
    if backend == "memory":
        store = MemoryRateLimitStore()
    elif backend == "sql":
        store = SqlRateLimitStore()
    else:
        raise ValueError(f"Unknown RATE_LIMIT_BACKEND: {backend}")
    return RateLimiter(
        store=store,
        window=timedelta(minutes=config["RATE_LIMIT_WINDOW_MINUTES"]),
        max_attempts=config["RATE_LIMIT_MAX_ATTEMPTS"],
    )


def get_rate_limiter() -> RateLimiter:
    """The app's limiter, built from config on first use; tests may install their own."""
    limiter = current_app.extensions.get("rate_limiter")
    if limiter is None:
        limiter = build_rate_limiter(current_app.config)
        current_app.extensions["rate_limiter"] = limiter
    return limiter
