import threading

from form_courier.rate_limit import RateLimiter


class Clock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


def test_burst_then_deny_then_refill():
    clock = Clock()
    limiter = RateLimiter(clock=clock)

    outcomes = [limiter.allow("acme", "1.2.3.4", burst=2, refill_minutes=1) for _ in range(3)]
    assert outcomes == [True, True, False]

    clock.now += 60
    assert limiter.allow("acme", "1.2.3.4", burst=2, refill_minutes=1) is True
    assert limiter.allow("acme", "1.2.3.4", burst=2, refill_minutes=1) is False


def test_burst_of_one_denies_immediate_repeat():
    limiter = RateLimiter(clock=Clock())
    assert limiter.allow("acme", "1.2.3.4", burst=1, refill_minutes=1) is True
    assert limiter.allow("acme", "1.2.3.4", burst=1, refill_minutes=1) is False


def test_refill_uses_whole_intervals_only():
    clock = Clock()
    limiter = RateLimiter(clock=clock)
    assert limiter.allow("acme", "c", burst=1, refill_minutes=5) is True

    clock.now += 5 * 60 - 1
    assert limiter.allow("acme", "c", burst=1, refill_minutes=5) is False

    clock.now += 1
    assert limiter.allow("acme", "c", burst=1, refill_minutes=5) is True


def test_refill_is_measured_from_last_refill():
    clock = Clock()
    limiter = RateLimiter(clock=clock)
    limiter.allow("acme", "c", burst=1, refill_minutes=1)

    # 90s later one interval elapsed; last refill moves to now (t=90)
    clock.now = 90
    assert limiter.allow("acme", "c", burst=1, refill_minutes=1) is True

    # t=120 is a wall-clock boundary but only 30s since the last refill
    clock.now = 120
    assert limiter.allow("acme", "c", burst=1, refill_minutes=1) is False

    clock.now = 150
    assert limiter.allow("acme", "c", burst=1, refill_minutes=1) is True


def test_refill_is_capped_at_burst():
    clock = Clock()
    limiter = RateLimiter(clock=clock)
    for _ in range(3):
        limiter.allow("acme", "c", burst=3, refill_minutes=1)

    clock.now += 60 * 100
    outcomes = [limiter.allow("acme", "c", burst=3, refill_minutes=1) for _ in range(4)]
    assert outcomes == [True, True, True, False]


def test_buckets_are_independent_per_tenant_and_client():
    limiter = RateLimiter(clock=Clock())
    assert limiter.allow("acme", "1.1.1.1", burst=1, refill_minutes=1) is True
    assert limiter.allow("acme", "1.1.1.1", burst=1, refill_minutes=1) is False

    assert limiter.allow("acme", "2.2.2.2", burst=1, refill_minutes=1) is True
    assert limiter.allow("globex", "1.1.1.1", burst=1, refill_minutes=1) is True
    assert len(limiter) == 3


def test_least_recently_used_bucket_is_evicted():
    limiter = RateLimiter(max_buckets=2, clock=Clock())
    limiter.allow("acme", "a", burst=1, refill_minutes=1)
    limiter.allow("acme", "b", burst=1, refill_minutes=1)
    # touch "a" so "b" becomes the oldest
    assert limiter.allow("acme", "a", burst=1, refill_minutes=1) is False

    limiter.allow("acme", "c", burst=1, refill_minutes=1)
    assert len(limiter) == 2

    # "b" was evicted and starts over; "c" kept its empty bucket
    assert limiter.allow("acme", "b", burst=1, refill_minutes=1) is True
    assert limiter.allow("acme", "c", burst=1, refill_minutes=1) is False


def test_unbounded_when_max_buckets_is_none():
    limiter = RateLimiter(max_buckets=None, clock=Clock())
    for i in range(50):
        limiter.allow("acme", f"client-{i}", burst=1, refill_minutes=1)
    assert len(limiter) == 50


def test_reset_forgets_buckets():
    limiter = RateLimiter(clock=Clock())
    limiter.allow("acme", "c", burst=1, refill_minutes=1)
    limiter.reset()
    assert len(limiter) == 0
    assert limiter.allow("acme", "c", burst=1, refill_minutes=1) is True


def test_concurrent_callers_never_exceed_burst():
    limiter = RateLimiter(clock=Clock())
    burst = 5
    admitted = []
    barrier = threading.Barrier(20)

    def worker():
        barrier.wait()
        admitted.append(limiter.allow("acme", "shared", burst=burst, refill_minutes=1))

    threads = [threading.Thread(target=worker) for _ in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert admitted.count(True) == burst
    assert admitted.count(False) == 20 - burst
