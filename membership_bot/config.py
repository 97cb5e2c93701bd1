"""Application settings — loaded from environment variables / .env file."""

from __future__ import annotations

from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Telegram
    BOT_TOKEN: str = ""

    # Intake endpoint that receives the JSON application
    INTAKE_URL: str = ""
    INTAKE_TIMEOUT_SECONDS: int = 15

    # Comma-separated chat IDs that get a summary of every submitted application
    ADMIN_CHAT_ID: str = ""

    # Logging
    LOG_LEVEL: str = "INFO"

    # Throttling
    RATE_LIMIT_MESSAGES: int = 5
    RATE_LIMIT_SECONDS: int = 3

    # Health-check HTTP server
    HEALTH_PORT: int = 10000

    @property
    def admin_ids(self) -> List[int]:
        """Parse comma-separated admin IDs into a list of ints."""
        return [int(x.strip()) for x in self.ADMIN_CHAT_ID.split(",") if x.strip()]

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
