"""
令牌桶限流 - 按客户端指纹维护独立的桶
"""

import asyncio
import logging
import time
from typing import Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class TokenBucket:
    """令牌桶实现，按整段间隔补充令牌（每 interval 秒补充 refill_rate 个）"""

    def __init__(self, refill_rate: int, interval: float, capacity: int, now: float):
        """
        :param refill_rate: 每个间隔补充的令牌数
        :param interval: 补充间隔（秒）
        :param capacity: 桶的最大容量
        :param now: 创建时刻，桶初始为满
        """
        self.refill_rate = refill_rate
        self.interval = interval
        self.capacity = capacity
        self.tokens = capacity
        self.last_refill = now

    def _refill(self, now: float):
        """补充已经走完的整段间隔"""
        if self.interval <= 0:
            self.tokens = self.capacity
            self.last_refill = now
            return
        elapsed_intervals = int((now - self.last_refill) // self.interval)
        if elapsed_intervals > 0:
            self.tokens = min(self.capacity, self.tokens + elapsed_intervals * self.refill_rate)
            self.last_refill += elapsed_intervals * self.interval

    def try_consume(self, count: int, now: float) -> bool:
        self._refill(now)
        if self.tokens >= count:
            self.tokens -= count
            return True
        return False

    def reset_after(self, now: float) -> float:
        """距下一次补充的秒数"""
        if self.interval <= 0:
            return 0.0
        return max(0.0, self.last_refill + self.interval - now)

    def is_full_at(self, now: float) -> bool:
        if self.tokens >= self.capacity:
            return True
        elapsed_intervals = int((now - self.last_refill) // self.interval) if self.interval > 0 else 1
        return self.tokens + elapsed_intervals * self.refill_rate >= self.capacity


class TokenBucketLimiter:
    """
    按 key 管理令牌桶。

    检查并扣减在同一把 asyncio.Lock 内完成，并发请求之间是原子的。
    """

    def __init__(
        self,
        refill_rate: int = 5,
        interval: float = 60.0,
        capacity: int = 5,
        clock: Callable[[], float] = time.monotonic,
        max_keys: int = 10000,
    ):
        self.refill_rate = refill_rate
        self.interval = interval
        self.capacity = capacity
        self.clock = clock
        self.max_keys = max_keys
        self.buckets: Dict[str, TokenBucket] = {}
        self.lock = asyncio.Lock()

    async def acquire(self, key: str, count: int = 1) -> Tuple[bool, float]:
        """
        尝试为 key 扣减 count 个令牌
        :return: (是否成功, 距下次补充的秒数)
        """
        async with self.lock:
            now = self.clock()
            bucket = self.buckets.get(key)
            if bucket is None:
                if len(self.buckets) >= self.max_keys:
                    self._evict_full(now)
                bucket = TokenBucket(self.refill_rate, self.interval, self.capacity, now)
                self.buckets[key] = bucket
            allowed = bucket.try_consume(count, now)
            return allowed, bucket.reset_after(now)

    def _evict_full(self, now: float):
        """移除已经（或将会）回满的桶，它们与新建的桶等价；
        仍然超过 max_keys 时按 last_refill 从旧到新淘汰，桶表大小始终不超过 max_keys"""
        stale = [k for k, b in self.buckets.items() if b.is_full_at(now)]
        for k in stale:
            del self.buckets[k]
        if stale:
            logger.debug(f"令牌桶清理: 移除 {len(stale)} 个空闲桶，剩余 {len(self.buckets)}")

        overflow = len(self.buckets) - self.max_keys + 1
        if overflow > 0:
            oldest = sorted(self.buckets, key=lambda k: self.buckets[k].last_refill)[:overflow]
            for k in oldest:
                del self.buckets[k]
            logger.warning(f"令牌桶数量达到上限 {self.max_keys}，淘汰 {len(oldest)} 个最旧的桶")

    def remaining(self, key: str) -> Optional[int]:
        bucket = self.buckets.get(key)
        if bucket is None:
            return None
        bucket._refill(self.clock())
        return bucket.tokens
