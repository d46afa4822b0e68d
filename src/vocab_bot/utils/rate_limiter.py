import asyncio
import time
from collections import defaultdict
from typing import Callable, Dict
import logging

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Per-user token bucket in front of the bot's handlers.
    Command and button updates each cost one token.
    """

    def __init__(
        self,
        rate: int = 30,  # Tokens refilled per window
        window: int = 60,  # Window in seconds
        burst: int = 40,  # Bucket capacity
        cleanup_interval: int = 300,
        clock: Callable[[], float] = time.monotonic
    ):
        self.rate = rate
        self.window = window
        self.burst = burst
        self.cleanup_interval = cleanup_interval
        self.clock = clock
        self._buckets: Dict[int, Dict[str, float]] = defaultdict(
            lambda: {'tokens': float(burst), 'last_update': self.clock()}
        )
        self._lock = asyncio.Lock()
        self._cleanup_task = None

    async def start(self):
        self._cleanup_task = asyncio.create_task(self._cleanup_loop())

    async def stop(self):
        if self._cleanup_task:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None

    def _refill(self, bucket: Dict[str, float], now: float):
        time_passed = max(0.0, now - bucket['last_update'])
        bucket['tokens'] = min(self.burst, bucket['tokens'] + (time_passed / self.window) * self.rate)
        bucket['last_update'] = now

    async def check_rate_limit(self, user_id: int) -> bool:
        """Take one token for user_id; False when the bucket is empty"""
        async with self._lock:
            bucket = self._buckets[user_id]
            self._refill(bucket, self.clock())

            if bucket['tokens'] >= 1:
                bucket['tokens'] -= 1
                return True

            return False

    def get_remaining_tokens(self, user_id: int) -> float:
        bucket = self._buckets.get(user_id)
        if not bucket:
            return float(self.burst)

        time_passed = max(0.0, self.clock() - bucket['last_update'])
        return min(self.burst, bucket['tokens'] + (time_passed / self.window) * self.rate)

    async def cleanup(self) -> int:
        """Drop buckets idle long enough to be full again"""
        async with self._lock:
            cutoff = self.clock() - (self.window * 2)
            stale = [
                user_id for user_id, bucket in self._buckets.items()
                if bucket['last_update'] < cutoff
            ]
            for user_id in stale:
                del self._buckets[user_id]

        if stale:
            logger.info(f"Cleaned up {len(stale)} idle rate limit buckets")
        return len(stale)

    async def _cleanup_loop(self):
        while True:
            try:
                await asyncio.sleep(self.cleanup_interval)
                await self.cleanup()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in rate limiter cleanup: {e}")
