"""Application configuration."""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional


class FatalStartupError(Exception):
    """Required configuration is missing or the store cannot be reached."""


class Settings(BaseSettings):
    """Application settings."""

    # Database
    database_url: Optional[str] = None

    # Targets (novel landing page URLs, processed in order)
    targets: List[str] = [
        "https://novelfire.net/book/reverend-insanity",
    ]

    # Pacing
    request_delay_ms: int = 2000
    db_operation_delay_ms: int = 50
    novel_delay_ms: int = 5000

    # HTTP
    request_timeout_seconds: float = 30.0
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    )

    # Reporting
    report_dir: Optional[str] = None
    progress_log_every: int = 50

    # Environment
    environment: str = "production"
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()
