class AppError(Exception):
    """Ошибка, которую можно отдать клиенту: несёт HTTP-код ответа."""

    def __init__(self, http_code: int, message: str):
        super().__init__(message)
        self.http_code = http_code
        self.message = message


class InvalidInput(AppError):
    def __init__(self, message: str):
        super().__init__(400, message)


class NotFound(AppError):
    def __init__(self, message: str):
        super().__init__(404, message)


class RateLimited(AppError):
    def __init__(self, message: str = "Too Many Requests", retry_after: int | None = None):
        super().__init__(429, message)
        self.retry_after = retry_after


class RemoteError(AppError):
    """Bitrix24 недоступен, не ответил или вернул ошибку."""

    def __init__(self, message: str):
        super().__init__(502, message)


class ConfigurationError(AppError):
    """
    У вебхука нет нужных прав (или он не настроен).
    Это не временный сбой, повторять запрос бессмысленно.
    """

    def __init__(self, message: str, missing_methods: list[str] | None = None):
        super().__init__(502, message)
        self.missing_methods = missing_methods or []


def error_envelope(error: AppError) -> dict:
    return {"status": "error", "code": error.http_code, "message": error.message}
