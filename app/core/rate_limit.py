import logging
import math
import threading
import time
from typing import Callable

logger = logging.getLogger(__name__)


class FixedWindowRateLimiter:
    """
    Ограничение числа запросов с одного клиента: не больше max_requests за окно window_ms.

    Счётчики в памяти процесса; окно начинается с первого запроса клиента.
    max_requests=0 выключает ограничение.
    """

    def __init__(self, max_requests: int, window_ms: int, clock: Callable[[], float] = time.monotonic):
        self.max_requests = max_requests
        self.window_seconds = window_ms / 1000
        self._clock = clock
        self._windows: dict[str, tuple[float, int]] = {}
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self.max_requests > 0

    def hit(self, client_key: str) -> tuple[bool, int]:
        """
        Учитывает запрос клиента.
        Возвращает (разрешён ли запрос, через сколько секунд закончится окно).
        """
        if not self.enabled:
            return True, 0

        now = self._clock()
        with self._lock:
            started, count = self._windows.get(client_key, (now, 0))
            if now - started >= self.window_seconds:
                started, count = now, 0
            count += 1
            self._windows[client_key] = (started, count)
            if len(self._windows) > 10_000:
                self._evict(now)

        retry_after = max(1, math.ceil(started + self.window_seconds - now))
        if count > self.max_requests:
            logger.warning("Rate limit exceeded", extra={"extra": {
                "client": client_key, "count": count, "max": self.max_requests}})
            return False, retry_after
        return True, retry_after

    def _evict(self, now: float) -> None:
        # Вызывается под локом
        expired = [k for k, (started, _) in self._windows.items() if now - started >= self.window_seconds]
        for key in expired:
            del self._windows[key]
