"""
Application configuration loaded from environment variables.
"""

from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """TaskHub server configuration."""

    model_config = SettingsConfigDict(env_prefix="TH_", env_file=".env", extra="ignore")

    # Database
    database_url: str = "sqlite+aiosqlite:///./taskhub.db"

    # Security
    secret_key: str = "CHANGE_ME_IN_PRODUCTION"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60 * 24 * 7
    bcrypt_rounds: int = 12

    # File storage
    upload_dir: str = "./uploads"
    upload_url_prefix: str = "/uploads"
    max_upload_bytes: int = 10 * 1024 * 1024

    # Logging
    log_level: str = "info"
    log_format: Literal["json", "text"] = "json"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # CORS
    cors_origins: list[str] = ["*"]

    # Rate limiting on /api/v1, per client IP; 0 disables
    rate_limit_requests: int = 100
    rate_limit_window_seconds: int = 15 * 60

    @field_validator("bcrypt_rounds")
    @classmethod
    def _min_cost(cls, v: int) -> int:
        if v < 10:
            raise ValueError("bcrypt_rounds must be at least 10")
        return v


@lru_cache
def get_settings() -> Settings:
    return Settings()
