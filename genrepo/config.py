from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # --- Basic configuration ---
    APP_NAME: str = "genrepo"
    APP_ENV: str = "development"  # development, production, testing

    # --- Database (SQLModel/SQLAlchemy) ---
    DATABASE_URL: str = "sqlite:///./genrepo.db"
    ASYNC_DATABASE_URL: str = "sqlite+aiosqlite:///./genrepo.db"
    DB_ECHO: bool = False

    # Upper bound for a single async repository/unit-of-work call; None disables it
    QUERY_TIMEOUT_SECONDS: Optional[float] = None

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_TO_FILE: bool = False

    # --- Pydantic ---
    # Priority: env vars > .env > defaults
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
    )


# Singleton settings instance
settings = Settings()
