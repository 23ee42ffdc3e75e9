"""Application settings loaded from environment variables."""

import os
from enum import Enum
from typing import Any, Literal

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment types."""

    DEV = "dev"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):  # type: ignore[misc]
    """
    Main settings class.

    All values can be overridden with environment variables of the same
    (case sensitive) name. Logging defaults depend on ``ENV`` unless they
    are set explicitly.
    """

    model_config = SettingsConfigDict(case_sensitive=True)

    ENV: Environment = Environment.DEV

    # Database settings
    DB_USER: str
    DB_PASSWORD: SecretStr
    DB_HOST: str = "support-relay-db"
    DB_PORT: int = 5432
    DB_NAME: str = "support-relay-db"
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_RECYCLE: int = 3600
    DB_POOL_PRE_PING: bool = True
    DB_INIT_RETRY_INTERVAL: int = 2
    DB_INIT_MAX_RETRIES: int = 5

    # Logging settings
    LOG_FILE_PATH: str = "logs/logging_errors.log"
    LOG_LEVEL: str = "INFO"
    LOG_CONSOLE_FORMAT: Literal["human", "json"] = "human"

    # WebSocket relay settings
    WS_OUTBOUND_QUEUE_SIZE: int = 256
    WS_MAX_MESSAGE_LENGTH: int = 4096
    ADMIN_DEFAULT_NAME: str = "Admin"

    # Superseded connection sweep
    SUPERSEDED_IDLE_TIMEOUT_SECONDS: float = 300.0
    SWEEP_INTERVAL_SECONDS: float = 30.0

    def __init__(self, **kwargs: Any) -> None:
        """Initialize settings with environment-specific defaults."""
        super().__init__(**kwargs)
        self._apply_environment_defaults()

    def _apply_environment_defaults(self) -> None:
        """Apply environment-specific logging defaults."""
        if self.ENV == Environment.PRODUCTION:
            if os.getenv("LOG_CONSOLE_FORMAT") is None:
                self.LOG_CONSOLE_FORMAT = "json"
            if os.getenv("LOG_LEVEL") is None:
                self.LOG_LEVEL = "WARNING"

        elif self.ENV == Environment.STAGING:
            if os.getenv("LOG_CONSOLE_FORMAT") is None:
                self.LOG_CONSOLE_FORMAT = "json"
            if os.getenv("LOG_LEVEL") is None:
                self.LOG_LEVEL = "INFO"

        else:  # Environment.DEV
            if os.getenv("LOG_CONSOLE_FORMAT") is None:
                self.LOG_CONSOLE_FORMAT = "human"
            if os.getenv("LOG_LEVEL") is None:
                self.LOG_LEVEL = "DEBUG"

    @property
    def DATABASE_URL(self) -> str:
        """Construct the database URL."""
        password = self.DB_PASSWORD.get_secret_value()
        return (
            f"postgresql+asyncpg://{self.DB_USER}:{password}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )


app_settings = Settings()
