# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""In-memory token-bucket rate limiter keyed by site and client.

This module implements per-(site, client) admission control with lazy,
whole-interval refills. Each bucket holds an integer token count and the
instant of its last refill. Tokens come back one per elapsed refill
interval, measured from the bucket's own last refill and truncated to whole
intervals, so a burst that arrives just before a boundary gets no partial
credit.

State is process-local and not persisted: a restart forgets every bucket,
and separate instances behind a load balancer keep independent quotas.

Buckets are kept in least-recently-used order and the oldest ones are
evicted once ``max_buckets`` is exceeded, which bounds memory when many
distinct clients are seen. An evicted client simply starts over with a full
bucket.

Example:
    Using the rate limiter::

        limiter = RateLimiter(max_buckets=10_000)
        if not limiter.allow("acme", "203.0.113.7", burst=3, refill_minutes=1):
            # Reject with 429
            ...
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass

from .logger import get_logger

DEFAULT_MAX_BUCKETS = 100_000
KEY_SEPARATOR = "|"

logger = get_logger("FormCourier.RateLimiter")


@dataclass
class RateBucket:
    """Token state for one (site, client) pair."""

    tokens: int
    last_refill: float


class RateLimiter:
    """Per-(site, client) token-bucket limiter safe for concurrent callers.

    Every read-modify-write of a bucket happens under a single lock, so two
    concurrent requests for the same key can never both consume the last
    token. The critical section is O(1) and never awaits.

    Attributes:
        max_buckets: Maximum number of buckets kept before the least
            recently used ones are evicted, or None for no bound.
    """

    def __init__(
        self,
        max_buckets: int | None = DEFAULT_MAX_BUCKETS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize an empty limiter.

        Args:
            max_buckets: Eviction threshold. ``None`` or ``0`` keeps every
                bucket for the process lifetime.
            clock: Source of the current time in seconds. Defaults to
                ``time.monotonic``; tests inject a controllable clock.
        """
        self.max_buckets = max_buckets or None
        self._clock = clock
        self._buckets: OrderedDict[str, RateBucket] = OrderedDict()
        self._lock = threading.Lock()

    @staticmethod
    def bucket_key(tenant_key: str, client: str) -> str:
        return f"{tenant_key}{KEY_SEPARATOR}{client}"

    def allow(self, tenant_key: str, client: str, burst: int, refill_minutes: int) -> bool:
        """Decide whether one more request from ``client`` is admitted.

        The first request seen for a pair is always admitted and creates a
        bucket holding ``burst - 1`` tokens. Later requests first add one
        token per whole refill interval elapsed since the last refill (capped
        at ``burst``), then consume a token if one is available.

        Args:
            tenant_key: Site the request targets.
            client: Client identity (forwarded-for address or peer address).
            burst: Bucket capacity.
            refill_minutes: Length of one refill interval in minutes.

        Returns:
            True if the request is admitted, False if the bucket is empty.
        """
        key = self.bucket_key(tenant_key, client)
        interval = refill_minutes * 60
        now = self._clock()

        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None:
                # The first request consumes one token of the new bucket.
                self._buckets[key] = RateBucket(tokens=burst - 1, last_refill=now)
                self._evict()
                return True

            self._buckets.move_to_end(key)
            refills = int((now - bucket.last_refill) // interval) if interval > 0 else 0
            if refills > 0:
                bucket.tokens = min(burst, bucket.tokens + refills)
                bucket.last_refill = now

            if bucket.tokens <= 0:
                return False
            bucket.tokens -= 1
            return True

    def _evict(self) -> None:
        # Caller holds the lock.
        if self.max_buckets is None:
            return
        while len(self._buckets) > self.max_buckets:
            key, _ = self._buckets.popitem(last=False)
            logger.debug("Evicted rate bucket %s", key)

    def reset(self) -> None:
        """Forget every bucket."""
        with self._lock:
            self._buckets.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._buckets)
