"""Application configuration"""
import logging
import re
from typing import List, Optional, Union
from pydantic_settings import BaseSettings
from pydantic import field_validator

from app.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings"""

    # Application
    APP_NAME: str = "DNS Hub"
    APP_ENV: str = "development"
    DEBUG: bool = False

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./dnshub.db"
    DATABASE_ECHO: bool = False

    # Redis (only needed for the redis rate limit backend)
    REDIS_URL: Optional[str] = None

    # Provider credentials vault
    CREDENTIALS_ENCRYPTION_KEY: Optional[str] = None

    # JWT
    JWT_SECRET_KEY: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # CORS
    CORS_ORIGINS: Union[List[str], str] = ["http://localhost:3000", "http://localhost:8000"]

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str) and not v.startswith("["):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    # Rate limiting
    RATE_LIMIT_BACKEND: str = "memory"  # memory, redis
    RATE_LIMIT_SWEEP_INTERVAL: int = 60  # seconds

    # Provider API calls
    PROVIDER_REQUEST_TIMEOUT: float = 30.0  # seconds, per adapter call
    PROVIDER_READ_RETRIES: int = 2  # extra attempts for idempotent reads
    PROVIDER_RETRY_BACKOFF: float = 0.5  # seconds, doubled per attempt

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()


_PLACEHOLDER_PATTERNS = [
    re.compile(r"^your[-_]?", re.IGNORECASE),
    re.compile(r"^change[-_]?me", re.IGNORECASE),
    re.compile(r"^replace[-_]?", re.IGNORECASE),
    re.compile(r"^xxx+$", re.IGNORECASE),
    re.compile(r"^placeholder", re.IGNORECASE),
    re.compile(r"^example", re.IGNORECASE),
    re.compile(r"^todo", re.IGNORECASE),
]


def is_placeholder_value(value: str) -> bool:
    """Check if a configured secret looks like a template placeholder"""
    return any(pattern.search(value) for pattern in _PLACEHOLDER_PATTERNS)


def check_settings(config: Optional[Settings] = None) -> List[str]:
    """Validate settings at startup.

    Raises ConfigurationError for missing required values and returns
    the list of warnings that were logged.
    """
    config = config or settings

    if not config.CREDENTIALS_ENCRYPTION_KEY:
        raise ConfigurationError(
            "CREDENTIALS_ENCRYPTION_KEY is not set. "
            "Generate a secure key using: openssl rand -base64 32"
        )

    warnings = []
    for name in ("CREDENTIALS_ENCRYPTION_KEY", "JWT_SECRET_KEY"):
        value = getattr(config, name)
        if value and is_placeholder_value(value):
            warnings.append(f"{name} appears to be a placeholder value. Please set a proper value.")

    if config.RATE_LIMIT_BACKEND not in ("memory", "redis"):
        raise ConfigurationError(f"Unknown RATE_LIMIT_BACKEND: {config.RATE_LIMIT_BACKEND}")

    if config.RATE_LIMIT_BACKEND == "redis" and not config.REDIS_URL:
        raise ConfigurationError("RATE_LIMIT_BACKEND=redis requires REDIS_URL")

    for warning in warnings:
        logger.warning(warning)

    return warnings
