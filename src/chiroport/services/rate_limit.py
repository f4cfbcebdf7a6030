"""Fixed-window rate limiting backed by a shared counter store.

Each rule names a bucket, a limit, and a window length. A request is counted
against the bucket's current window (``floor(now / window)``); the rule is
violated once the post-increment count exceeds the limit. Counters live in a
``CounterStore`` so single-instance deployments can use the in-process store
while multi-instance deployments share Redis.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from threading import Lock
from typing import Final, Protocol

import redis

from chiroport.core.settings import settings

logger = logging.getLogger(__name__)

FAIL_CLOSED_RETRY_SECONDS: Final[int] = 30
_CLEANUP_INTERVAL_SECONDS: Final[float] = 60.0


class CounterStoreError(RuntimeError):
    """Raised when the counter store cannot be reached or misbehaves."""


class CounterStore(Protocol):
    """Atomic per-key counters with absolute expiry."""

    backend_name: str

    def increment(self, key: str, expires_at: float) -> int:
        """Atomically add one to ``key`` and return the new count."""


@dataclass(frozen=True)
class RateLimitRule:
    """A single bucket rule: at most ``limit`` hits per ``window_seconds``."""

    bucket_key: str
    limit: int
    window_seconds: int

    def __post_init__(self) -> None:
        if not self.bucket_key:
            raise ValueError("bucket_key must not be empty")
        if self.limit <= 0:
            raise ValueError("limit must be positive")
        if self.window_seconds <= 0:
            raise ValueError("window_seconds must be positive")


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of evaluating one rule."""

    bucket_key: str
    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after_seconds: int


@dataclass(frozen=True)
class RateLimitResult:
    """Aggregate of all rule decisions for one request.

    ``limit``/``remaining``/``reset_at`` describe the governing bucket: the
    earliest-resetting violated bucket when blocked, otherwise the bucket
    with the least headroom.
    """

    allowed: bool
    decisions: tuple[RateLimitDecision, ...]
    retry_after_seconds: int
    limit: int
    remaining: int
    reset_at: float
    degraded: bool = False


@dataclass
class _Counter:
    count: int
    expires_at: float


class InMemoryCounterStore:
    """Process-local counter store guarded by a single lock.

    Expired windows are purged opportunistically, at most once per cleanup
    interval, and only when their window has fully elapsed.
    """

    backend_name = "memory"

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.time,
        cleanup_interval_seconds: float = _CLEANUP_INTERVAL_SECONDS,
    ) -> None:
        self._clock = clock
        self._cleanup_interval = cleanup_interval_seconds
        self._counters: dict[str, _Counter] = {}
        self._lock = Lock()
        self._last_cleanup = 0.0

    def increment(self, key: str, expires_at: float) -> int:
        now = self._clock()
        with self._lock:
            if now - self._last_cleanup >= self._cleanup_interval:
                self._purge_expired(now)
            counter = self._counters.get(key)
            if counter is None or counter.expires_at <= now:
                counter = _Counter(count=0, expires_at=expires_at)
                self._counters[key] = counter
            counter.count += 1
            return counter.count

    def _purge_expired(self, now: float) -> None:
        expired = [key for key, counter in self._counters.items() if counter.expires_at <= now]
        for key in expired:
            del self._counters[key]
        self._last_cleanup = now

    def __len__(self) -> int:
        with self._lock:
            return len(self._counters)


class RedisCounterStore:
    """Counter store backed by Redis INCR + EXPIREAT in one transaction."""

    backend_name = "redis"

    def __init__(self, client: redis.Redis) -> None:
        self._redis = client

    @classmethod
    def from_url(cls, url: str, *, timeout_seconds: float) -> RedisCounterStore:
        client = redis.Redis.from_url(
            url,
            socket_timeout=timeout_seconds,
            socket_connect_timeout=timeout_seconds,
        )
        return cls(client)

    def increment(self, key: str, expires_at: float) -> int:
        try:
            pipe = self._redis.pipeline(transaction=True)
            pipe.incr(key)
            # one extra second so the key outlives its window boundary
            pipe.expireat(key, int(math.ceil(expires_at)) + 1)
            count, _ = pipe.execute()
        except redis.RedisError as exc:
            raise CounterStoreError(f"Redis counter increment failed: {exc}") from exc
        return int(count)


class RateLimiter:
    """Evaluate rate-limit rules against a counter store."""

    def __init__(
        self,
        store: CounterStore,
        *,
        fail_open: bool = True,
        clock: Callable[[], float] = time.time,
        key_prefix: str = "rl",
    ) -> None:
        self.store = store
        self.fail_open = fail_open
        self._clock = clock
        self._key_prefix = key_prefix

    def evaluate(self, rules: Iterable[RateLimitRule]) -> RateLimitResult:
        """Count this request against every rule and aggregate the outcome."""
        rules = list(rules)
        now = self._clock()
        if not rules:
            return RateLimitResult(
                allowed=True,
                decisions=(),
                retry_after_seconds=0,
                limit=0,
                remaining=0,
                reset_at=now,
            )

        try:
            decisions = tuple(self._evaluate_rule(rule, now) for rule in rules)
        except Exception:
            logger.exception(
                "Rate limit counter store (%s) failed; failing %s",
                getattr(self.store, "backend_name", "unknown"),
                "open" if self.fail_open else "closed",
            )
            return self._degraded_result(rules, now)

        blocked = [decision for decision in decisions if not decision.allowed]
        if not blocked:
            governing = min(decisions, key=lambda d: (d.remaining, d.reset_at))
            return RateLimitResult(
                allowed=True,
                decisions=decisions,
                retry_after_seconds=0,
                limit=governing.limit,
                remaining=governing.remaining,
                reset_at=governing.reset_at,
            )

        governing = min(blocked, key=lambda d: d.reset_at)
        retry_after = min(decision.retry_after_seconds for decision in blocked)
        logger.warning(
            "Rate limit exceeded; retry after %ss",
            retry_after,
            extra={
                "buckets": [
                    {
                        "bucket": decision.bucket_key,
                        "limit": decision.limit,
                        "reset_at": decision.reset_at,
                    }
                    for decision in blocked
                ]
            },
        )
        return RateLimitResult(
            allowed=False,
            decisions=decisions,
            retry_after_seconds=retry_after,
            limit=governing.limit,
            remaining=0,
            reset_at=governing.reset_at,
        )

    def _evaluate_rule(self, rule: RateLimitRule, now: float) -> RateLimitDecision:
        window_id = int(now // rule.window_seconds)
        reset_at = float((window_id + 1) * rule.window_seconds)
        key = f"{self._key_prefix}:{rule.bucket_key}:{rule.window_seconds}:{window_id}"
        count = self.store.increment(key, reset_at)
        return RateLimitDecision(
            bucket_key=rule.bucket_key,
            allowed=count <= rule.limit,
            limit=rule.limit,
            remaining=max(0, rule.limit - count),
            reset_at=reset_at,
            retry_after_seconds=max(1, math.ceil(reset_at - now)),
        )

    def _degraded_result(self, rules: list[RateLimitRule], now: float) -> RateLimitResult:
        limit = min(rule.limit for rule in rules)
        if self.fail_open:
            return RateLimitResult(
                allowed=True,
                decisions=(),
                retry_after_seconds=0,
                limit=limit,
                remaining=limit,
                reset_at=now,
                degraded=True,
            )
        return RateLimitResult(
            allowed=False,
            decisions=(),
            retry_after_seconds=FAIL_CLOSED_RETRY_SECONDS,
            limit=limit,
            remaining=0,
            reset_at=now + FAIL_CLOSED_RETRY_SECONDS,
            degraded=True,
        )


def build_counter_store() -> CounterStore:
    """Return the configured counter store (Redis when a URL is set)."""
    if settings.rate_limit_redis_url:
        return RedisCounterStore.from_url(
            settings.rate_limit_redis_url,
            timeout_seconds=settings.rate_limit_store_timeout_seconds,
        )
    return InMemoryCounterStore()


_RATE_LIMITER: RateLimiter | None = None
_LIMITER_LOCK = Lock()


def get_rate_limiter() -> RateLimiter:
    """Return the process-wide rate limiter, creating it on first use."""
    global _RATE_LIMITER
    with _LIMITER_LOCK:
        if _RATE_LIMITER is None:
            _RATE_LIMITER = RateLimiter(
                build_counter_store(),
                fail_open=settings.rate_limit_fail_open,
            )
        return _RATE_LIMITER


def set_rate_limiter(limiter: RateLimiter | None) -> None:
    """Replace (or clear) the process-wide rate limiter."""
    global _RATE_LIMITER
    with _LIMITER_LOCK:
        _RATE_LIMITER = limiter
