"""内存缓存"""
from cachetools import TTLCache
from typing import List
import threading
import time

from ..errors import RateLimitError


class RateLimiter:
    """
    滑动窗口限流（进程内）

    Usage:
        limiter = RateLimiter(window=60)
        limiter.hit("token:1", limit=50)  # 超限抛出 RateLimitError
    """

    def __init__(self, window: int = 60, maxsize: int = 10000):
        self.window = window
        # 每个 key 保存窗口内的请求时间戳，窗口结束后整条过期
        self._hits: TTLCache = TTLCache(maxsize=maxsize, ttl=window)
        self._lock = threading.Lock()

    def hit(self, key: str, limit: int) -> int:
        """记录一次请求，返回窗口内的请求数"""
        if limit <= 0:
            return 0
        now = time.monotonic()
        with self._lock:
            stamps: List[float] = [t for t in self._hits.get(key, []) if now - t < self.window]
            if len(stamps) >= limit:
                self._hits[key] = stamps
                raise RateLimitError(f"请求过于频繁，每分钟最多 {limit} 次", {"limit": limit})
            stamps.append(now)
            self._hits[key] = stamps
            return len(stamps)

    def reset(self, key: str = None):
        """清除计数

        Args:
            key: 指定 key，None 则清除所有
        """
        with self._lock:
            if key is None:
                self._hits.clear()
            else:
                self._hits.pop(key, None)


# 链接提交限流
ingest_limiter = RateLimiter(window=60)
