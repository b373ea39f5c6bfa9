"""Application configuration via environment variables."""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """App settings loaded from .env or environment."""

    DATABASE_URL: str = "sqlite:///./markets.db"
    CORS_ORIGINS: str = "http://localhost:8081"
    LOG_LEVEL: str = "INFO"

    # Reaction cycles
    REACTION_CYCLE_DAYS: int = 7
    RESET_DELETE_BATCH_SIZE: int = 500  # per-transaction mutation limit of the store
    TRANSACTION_MAX_RETRIES: int = 5

    # Saved-market alerts
    DEFAULT_ALERT_TIME: str = "20:00"
    ALERT_SEARCH_DAYS: int = 21

    # Comments
    COMMENT_MAX_LENGTH: int = 500
    COMMENTS_PAGE_SIZE: int = 20
    COMMENTS_MAX_PAGE_SIZE: int = 100

    # Background jobs
    SCHEDULER_ENABLED: bool = False
    RESET_JOB_INTERVAL_HOURS: int = 24

    class Config:
        env_file = ".env"


settings = Settings()
