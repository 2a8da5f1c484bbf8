import logging
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # JWT
    SECRET_KEY: str = "change-me-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    BCRYPT_ROUNDS: int = 12

    # Pricing
    CURRENCY: str = "TRY"

    # Reservations
    ALLOW_PAST_DATES: bool = False
    LOCK_TIMEOUT_SECONDS: float = 5.0

    # Side effects (audit, notifications, broadcast)
    NOTIFICATION_TIMEOUT_SECONDS: float = 2.0

    LOG_LEVEL: str = "INFO"
    SEED_DEMO_DATA: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
