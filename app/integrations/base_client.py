import hashlib
import httpx
import logging
import os
import time
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt, wait_exponential

from app.core.logging import _redact


def is_retryable_exception(exception: BaseException) -> bool:
    """Определяет, является ли исключение основанием для повторной попытки."""
    if isinstance(exception, (httpx.ConnectError, httpx.TimeoutException)):
        return True
    if isinstance(exception, httpx.HTTPStatusError):
        # Повторяем только при серверных ошибках (5xx)
        return 500 <= exception.response.status_code < 600
    return False


def _sample_rate() -> float:
    return float(os.getenv("LOG_SAMPLE_RATE", "1.0"))


LOG_BODY_MAX = int(os.getenv("LOG_BODY_MAX", "2000"))

class BaseApiClient:
    # Параметры экспоненциальной паузы между попытками (секунды)
    retry_multiplier: float = 1.0
    retry_max_wait: float = 60.0

    def __init__(self, base_url: str, timeout: float = 30.0):
        self.client = httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._logger = logging.getLogger("http")

    def _maybe_hash(self, body: str) -> str:
        return hashlib.sha256(body.encode("utf-8", "ignore")).hexdigest()[:16]

    async def _request(self, method: str, url: str, tries: int = 5, **kwargs):
        """
        HTTP-запрос с повторами (tenacity) и подробным логированием.
        Повторяются только сетевые ошибки, таймауты и 5xx; tries=1 отключает повторы.
        """
        t0 = time.perf_counter()
        attempt = 0

        def _before_sleep(state: RetryCallState):
            exc = state.outcome.exception() if state.outcome else None
            wait = state.next_action.sleep if state.next_action else 0
            self._logger.debug("HTTP retry %s %s in %.1fs after %r", method, url, wait, exc,
                               extra={"extra": {"method": method, "url": url, "attempt": state.attempt_number}})

        retrying = AsyncRetrying(
            stop=stop_after_attempt(tries),
            wait=wait_exponential(multiplier=self.retry_multiplier, max=self.retry_max_wait),
            retry=retry_if_exception(is_retryable_exception),
            before_sleep=_before_sleep,
            reraise=True,
        )
        try:
            async for attempt_ctx in retrying:
                with attempt_ctx:
                    attempt = attempt_ctx.retry_state.attempt_number
                    response = await self._send(method, url, attempt, t0, **kwargs)
        except httpx.HTTPError as e:
            dt = round((time.perf_counter() - t0) * 1000)
            self._logger.error("HTTP FAIL %s %s after %d tries: %s", method, url, attempt, repr(e),
                               extra={"extra": {"method": method, "url": url, "elapsed_ms": dt,
                                                "attempts": attempt}})
            raise

        return self._parse_response(response)

    async def _send(self, method: str, url: str, attempt: int, t0: float, **kwargs) -> httpx.Response:
        req_body = kwargs.get("content") or kwargs.get("data") or (kwargs.get("json") and _redact(kwargs["json"])) or ""
        headers = _redact(dict(kwargs.get("headers") or {}))

        self._logger.debug("HTTP %s %s (attempt %d)", method, url, attempt,
                           extra={"extra": {"method": method, "url": url, "attempt": attempt,
                                            "headers": headers, "body_preview": str(req_body)[:LOG_BODY_MAX]}})

        response: httpx.Response = await self.client.request(method, url, **kwargs)
        dt = round((time.perf_counter() - t0) * 1000)

        body_text = response.text or ""
        body_hash = self._maybe_hash(body_text)

        if _sample_rate() >= 1.0:
            body_preview = body_text[:LOG_BODY_MAX]
        else:
            body_preview = f"[sampled hash:{body_hash}]"

        self._logger.info("HTTP %s %s -> %d in %dms", method, url, response.status_code, dt,
                          extra={"extra": {"method": method, "url": url, "status_code": response.status_code,
                                           "elapsed_ms": dt, "response_preview": body_preview,
                                           "response_hash": body_hash}})

        response.raise_for_status()
        return response

    def _parse_response(self, response: httpx.Response):
        """Parse HTTP response with safe JSON handling."""
        # Пустой ответ (например, 204 No Content)
        if response.status_code == 204 or not response.content:
            return {}

        content_type = response.headers.get("content-type", "").lower()
        if "application/json" in content_type or content_type.startswith("application/"):
            try:
                return response.json()
            except ValueError:
                # Некорректный JSON — возвращаем пустой словарь, чтобы не падать в вызывающем коде
                return {}

        return {}

    async def close(self):
        await self.client.aclose()
