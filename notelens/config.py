"""
NoteLens Configuration Management
Handles all application settings using Pydantic Settings
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from typing import List


class Settings(BaseSettings):
    """Application settings with validation"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="NOTELENS_",
        case_sensitive=False,
        extra="ignore",
        validate_default=True
    )

    # Environment
    environment: str = Field(default="development", pattern="^(development|production|test)$")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")

    # API Server
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000, ge=1, le=65535)
    api_reload: bool = Field(default=True)

    # Redis
    redis_url: str = Field(default="redis://localhost:6379/0")
    redis_max_connections: int = Field(default=50, ge=10, le=200)

    # Celery
    celery_broker_url: str = Field(default="redis://localhost:6379/1")
    celery_result_backend: str = Field(default="redis://localhost:6379/2")
    celery_task_always_eager: bool = Field(default=False)
    worker_prefetch_multiplier: int = Field(default=2, ge=1, le=10)
    task_time_limit: int = Field(default=120, ge=10, le=1800)
    task_soft_time_limit: int = Field(default=100, ge=5, le=1700)

    # Feature Flags
    enable_parse_cache: bool = Field(default=True)
    enable_async_analysis: bool = Field(default=False)

    # Parsing
    max_upload_bytes: int = Field(default=2_000_000, ge=1_000, le=50_000_000)

    # Edit Tracking
    max_deltas_per_session: int = Field(default=1000, ge=10, le=100_000)
    max_tracked_sessions: int = Field(default=10_000, ge=1, le=1_000_000)

    # Caching
    cache_ttl: int = Field(default=3600, ge=0, le=86400)

    # Security
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"]
    )
    cors_allow_credentials: bool = Field(default=True)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS origins from string or list"""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v


# Global settings instance
settings = Settings()
