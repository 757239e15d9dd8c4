from __future__ import annotations

from functools import lru_cache

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict


load_dotenv()


class Settings(BaseSettings):
    APP_NAME: str = "orderflow"
    VERSION: str = "0.1.0"

    # Pipeline sizing
    WORKER_COUNT: int = 3
    QUEUE_CAPACITY: int = 100

    # Blocking bounds
    SUBMIT_TIMEOUT_SECONDS: float = 5.0
    POLL_TIMEOUT_SECONDS: float = 1.0
    RESCAN_INTERVAL_SECONDS: float = 10.0
    SHUTDOWN_GRACE_SECONDS: float = 30.0

    # Simulated payment / fulfillment stages
    VALIDATION_DELAY_SECONDS: float = 2.0
    FULFILLMENT_DELAY_SECONDS: float = 3.0

    # 0 keeps the drop-on-failure behavior
    MAX_RETRIES: int = 0
    RETRY_DELAY_SECONDS: float = 0.5

    # Database
    USE_DATABASE: bool = False
    DATABASE_URL: str = "sqlite:///./orderflow.db"

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="ORDERFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
