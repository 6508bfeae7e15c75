import threading
import time
from dataclasses import dataclass
from typing import Callable, Iterable

DEFAULT_TTL_SECONDS = 300


@dataclass(frozen=True)
class CapabilityEntry:
    methods: frozenset[str]
    expires_at: float


class CapabilityCache:
    """
    Кэш списка доступных методов по идентификатору вебхука.

    Живёт всё время процесса. Одновременные запросы на холодном кэше могут
    сходить в Bitrix24 по несколько раз: запрос идемпотентный, это допустимо.
    """

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CapabilityEntry] = {}
        self._lock = threading.Lock()

    def is_expired(self, entry: CapabilityEntry) -> bool:
        return self._clock() >= entry.expires_at

    def get(self, key: str) -> frozenset[str] | None:
        """Методы для ключа или None, если записи нет или она протухла."""
        with self._lock:
            entry = self._entries.get(key)
        if entry is None or self.is_expired(entry):
            return None
        return entry.methods

    def put(self, key: str, methods: Iterable[str]) -> CapabilityEntry:
        entry = CapabilityEntry(
            methods=frozenset(m.lower() for m in methods),
            expires_at=self._clock() + self.ttl_seconds,
        )
        with self._lock:
            self._entries[key] = entry
        return entry

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
