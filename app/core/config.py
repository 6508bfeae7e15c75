from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Настройки приложения
    PROJECT_NAME: str = "Bitrix24 Inventory Documents Robot"
    DEBUG: bool = False
    PORT: int = 3000

    # Настройки Bitrix24 (входящий вебхук, авторизация зашита в URL)
    B24_WEBHOOK_URL: str | None = Field(default=None)
    B24_MOCK: bool = False
    B24_TIMEOUT_SECONDS: float = 30.0
    B24_READ_RETRIES: int = 3

    # Подпись запросов робота
    SIGN_KEY: str | None = Field(default=None)  # задаём в .env, чтобы включить проверку
    SIGNATURE_WINDOW_SECONDS: int = 300

    # Формирование документов
    DEFAULT_CURRENCY: str = "RUB"
    CAPABILITY_CACHE_TTL_SECONDS: int = 300

    # Ограничение частоты запросов (0 = выключено)
    RATE_LIMIT_MAX: int = 120
    RATE_LIMIT_WINDOW_MS: int = 60_000

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )


settings = Settings()
