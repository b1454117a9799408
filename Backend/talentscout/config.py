import logging
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Manages application-wide settings loaded from a .env file.
    """
    model_config = SettingsConfigDict(env_file='.env', env_ignore_empty=True, extra='ignore')

    # --- Core Application Settings ---
    APP_ENV: str = "dev"
    FRONTEND_BASE_URL: str = "http://localhost:3000"

    # --- Database ---
    DATABASE_URL: str = "sqlite+pysqlite:///./talentscout.db"

    # --- Profile lookup (People Data Labs) ---
    PDL_API_KEY: str = ""
    PDL_BASE_URL: str = "https://api.peopledatalabs.com/v5"
    PDL_TIMEOUT: int = 30

    # --- Scoring / extraction models ---
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL_NAME: str = "gemini-2.0-flash"
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4o"
    DEFAULT_JOB_DESCRIPTION: str = "General software engineering position"

    # --- Background worker ---
    CELERY_BROKER_URL: str = "redis://redis:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://redis:6379/0"

    # --- Request scheduler ---
    MAX_CONCURRENT_REQUESTS: int = 3
    RATE_LIMIT_DELAY_SECONDS: float = 0.1
    CACHE_TTL_SECONDS: float = 300.0

    # --- Orchestrator / progress ---
    CANDIDATE_DELAY_SECONDS: float = 0.2
    SESSION_CLEANUP_DELAY_SECONDS: float = 30.0

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    @field_validator('LOG_LEVEL')
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'Log level must be one of: {valid_levels}')
        return v.upper()

    @field_validator('MAX_CONCURRENT_REQUESTS')
    @classmethod
    def validate_max_concurrent(cls, v):
        if v < 1:
            raise ValueError('MAX_CONCURRENT_REQUESTS must be at least 1')
        return v


class LoggingConfig:
    """Logging configuration and setup."""

    @staticmethod
    def setup_logging(settings: Settings) -> logging.Logger:
        """Set up the package logger based on settings."""
        logger = logging.getLogger('talentscout')
        logger.setLevel(getattr(logging, settings.LOG_LEVEL))

        # Clear existing handlers so repeated app construction does not duplicate output
        logger.handlers.clear()

        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        console_handler = logging.StreamHandler()
        console_handler.setLevel(getattr(logging, settings.LOG_LEVEL))
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

        if settings.LOG_FILE:
            try:
                file_handler = logging.FileHandler(settings.LOG_FILE, encoding='utf-8')
                file_handler.setLevel(getattr(logging, settings.LOG_LEVEL))
                file_handler.setFormatter(formatter)
                logger.addHandler(file_handler)
            except OSError as e:
                logger.warning(f"Could not set up file logging: {e}")

        return logger


settings = Settings()
