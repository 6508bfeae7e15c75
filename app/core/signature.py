import hashlib
import hmac
import logging
import math
import time
from typing import Callable

logger = logging.getLogger(__name__)


def sign_timestamp(secret: str, timestamp: str) -> str:
    """HMAC-SHA256 (hex) от строки timestamp. Так же подписывает запрос сам робот Bitrix24."""
    return hmac.new(secret.encode("utf-8"), timestamp.encode("utf-8"), hashlib.sha256).hexdigest()


class SignatureVerifier:
    """
    Проверка подписи входящего запроса: sig = HMAC-SHA256(SIGN_KEY, ts).

    ts - Unix-время в миллисекундах. Запросы старше окна (по умолчанию 5 минут)
    отклоняются, чтобы подпись нельзя было переиграть.
    """

    def __init__(self, secret: str, window_seconds: int = 300, clock: Callable[[], float] = time.time):
        self.secret = secret
        self.window_ms = window_seconds * 1000
        self._clock = clock

    def verify(self, signature: str | None, timestamp: str | None) -> bool:
        if not signature or not timestamp:
            return False
        try:
            ts_ms = float(timestamp)
        except ValueError:
            logger.debug("signature: non-numeric timestamp")
            return False
        if not math.isfinite(ts_ms):
            logger.debug("signature: non-finite timestamp")
            return False

        age_ms = abs(self._clock() * 1000 - ts_ms)
        if age_ms > self.window_ms:
            logger.info("signature: timestamp outside window", extra={"extra": {"age_ms": round(age_ms)}})
            return False

        expected = sign_timestamp(self.secret, timestamp)
        return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))
