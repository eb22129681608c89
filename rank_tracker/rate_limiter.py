"""検索 API の秒間リクエスト数制御."""

from __future__ import annotations

import threading
import time


class RateLimiter:
    """秒間リクエスト数を一定間隔に均すリミッター.

    Args:
        max_requests_per_second: API の秒間上限
        buffer: 安全マージン (0〜1). 0.9 なら上限の 90% で運用する
    """

    def __init__(self, max_requests_per_second: float = 10, buffer: float = 0.9) -> None:
        effective = max(max_requests_per_second * buffer, 0.001)
        self._interval = 1.0 / effective
        self._last_request_time: float | None = None
        self._lock = threading.Lock()

    @property
    def interval(self) -> float:
        return self._interval

    def wait(self) -> None:
        """次のリクエストが許可されるまでブロックする."""
        with self._lock:
            now = time.monotonic()
            if self._last_request_time is not None:
                elapsed = now - self._last_request_time
                if elapsed < self._interval:
                    time.sleep(self._interval - elapsed)
            self._last_request_time = time.monotonic()
