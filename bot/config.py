"""Bot configuration from environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    TELEGRAM_BOT_TOKEN: str = ""
    API_BASE_URL: str = "http://api:8000"
    API_TIMEOUT_SEC: float = 10.0
    # Empty means in-memory dialog sessions (single process only)
    REDIS_URL: str = "redis://redis:6379/0"
    ADMIN_TELEGRAM_ID: str = ""

    # Same-day orders are accepted only before this local hour
    ORDER_CUTOFF_HOUR: int = 21
    TIMEZONE: str = "Asia/Yekaterinburg"

    class Config:
        env_file = ".env"
        extra = "allow"


settings = Settings()
