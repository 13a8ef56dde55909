import asyncio

from conftest import FakeClock
from image_narrator.services.admission import TokenBucketLimiter


def acquire_many(limiter, key, n):
    async def _run():
        return [(await limiter.acquire(key))[0] for _ in range(n)]
    return asyncio.run(_run())


def test_full_bucket_allows_capacity_then_denies():
    limiter = TokenBucketLimiter(refill_rate=5, interval=60, capacity=5, clock=FakeClock())

    assert acquire_many(limiter, "client", 6) == [True] * 5 + [False]


def test_partial_interval_does_not_refill():
    clock = FakeClock()
    limiter = TokenBucketLimiter(refill_rate=5, interval=60, capacity=5, clock=clock)
    acquire_many(limiter, "client", 5)

    clock.advance(59.9)
    assert acquire_many(limiter, "client", 1) == [False]
    clock.advance(0.1)
    assert acquire_many(limiter, "client", 6) == [True] * 5 + [False]


def test_refill_never_exceeds_capacity():
    clock = FakeClock()
    limiter = TokenBucketLimiter(refill_rate=5, interval=60, capacity=5, clock=clock)
    acquire_many(limiter, "client", 1)

    clock.advance(3600)
    assert limiter.remaining("client") == 5


def test_keys_have_independent_buckets():
    limiter = TokenBucketLimiter(refill_rate=5, interval=60, capacity=5, clock=FakeClock())
    acquire_many(limiter, "a", 5)

    assert acquire_many(limiter, "a", 1) == [False]
    assert acquire_many(limiter, "b", 1) == [True]


def test_reset_after_counts_down_to_next_refill():
    clock = FakeClock()
    limiter = TokenBucketLimiter(refill_rate=5, interval=60, capacity=5, clock=clock)
    clock.advance(0)

    async def _run():
        await limiter.acquire("client")
        clock.advance(45)
        return await limiter.acquire("client")

    allowed, reset_after = asyncio.run(_run())
    assert allowed
    assert reset_after == 15


def test_concurrent_acquires_are_atomic():
    limiter = TokenBucketLimiter(refill_rate=5, interval=60, capacity=5, clock=FakeClock())

    async def _run():
        results = await asyncio.gather(*(limiter.acquire("client") for _ in range(20)))
        return [allowed for allowed, _ in results]

    assert sum(asyncio.run(_run())) == 5


def test_idle_full_buckets_are_evicted():
    clock = FakeClock()
    limiter = TokenBucketLimiter(refill_rate=5, interval=60, capacity=5, clock=clock, max_keys=3)
    for key in ("a", "b", "c"):
        acquire_many(limiter, key, 1)

    clock.advance(60)
    acquire_many(limiter, "d", 1)
    assert set(limiter.buckets) == {"d"}


def test_key_table_never_exceeds_max_keys():
    clock = FakeClock()
    limiter = TokenBucketLimiter(refill_rate=5, interval=60, capacity=5, clock=clock, max_keys=3)
    for key in ("a", "b", "c", "d", "e"):
        acquire_many(limiter, key, 1)
        clock.advance(1)
        assert len(limiter.buckets) <= 3

    assert set(limiter.buckets) == {"c", "d", "e"}
