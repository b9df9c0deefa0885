"""
Configuration management for the NoverThinker API.

Uses Pydantic settings for type-safe configuration with environment variable support.
All settings can be overridden via environment variables.
"""

import os
from functools import lru_cache
from typing import Optional

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings with environment variable support.

    All settings can be overridden via environment variables.
    For nested settings, use double underscore: CORS__ALLOW_ORIGINS="http://localhost:3000"
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    # ==========================================================================
    # Application Metadata
    # ==========================================================================
    app_name: str = "NoverThinker API"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = Field(default="development", description="development, staging, production")

    # ==========================================================================
    # Database Configuration
    # ==========================================================================
    database_url: Optional[str] = Field(
        default=None,
        description="PostgreSQL connection string",
    )
    database_pool_min_size: int = Field(default=2, ge=1, le=50)
    database_pool_size: int = Field(default=10, ge=1, le=50)
    database_pool_timeout: int = Field(
        default=30,
        ge=1,
        le=120,
        description="Seconds to wait for a pooled connection before failing",
    )
    database_statement_timeout_ms: int = Field(
        default=10_000,
        ge=0,
        description="Server-side statement_timeout applied to every connection (0 disables)",
    )

    @computed_field
    @property
    def db_url(self) -> str:
        """Get the effective database URL."""
        return self.database_url or ""

    # ==========================================================================
    # API Configuration
    # ==========================================================================
    api_host: str = "0.0.0.0"
    api_port: int = 3000
    api_prefix: str = "/api"
    api_docs_url: str = "/docs"
    api_redoc_url: str = "/redoc"

    # ==========================================================================
    # CORS Configuration
    # ==========================================================================
    cors_allow_origins: list[str] = Field(
        default=["*"],
        description="Allowed CORS origins outside production.",
    )
    cors_production_origins: list[str] = Field(
        default=[
            "https://noverthinker.com",
            "https://app.noverthinker.com",
            "https://admin.noverthinker.com",
        ],
    )
    cors_allow_methods: list[str] = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
    cors_allow_headers: list[str] = ["Content-Type", "Authorization"]
    cors_allow_credentials: bool = True
    cors_expose_headers: list[str] = ["X-Process-Time"]

    @computed_field
    @property
    def cors_origins(self) -> list[str]:
        """Get CORS origins, switching to the production list in production."""
        if self.environment == "production":
            origins = list(self.cors_production_origins)
            extra = os.getenv("CORS_PRODUCTION_ORIGINS", "")
            if extra:
                origins.extend(o.strip() for o in extra.split(",") if o.strip())
            return origins
        return list(self.cors_allow_origins)

    # ==========================================================================
    # Fast Cache Configuration
    # TTL values are centralized in cache.py (single source of truth)
    # ==========================================================================
    cache_enabled: bool = Field(
        default=True,
        description="Set to false to run without the fast cache tier (SKIP_REDIS equivalent)",
    )
    cache_backend: str = Field(
        default="redis",
        description="Cache backend: redis, memory",
    )
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis connection URL (redis://host:port/db)",
    )
    redis_connect_timeout: float = Field(
        default=5.0,
        gt=0,
        description="Seconds allowed to establish a Redis connection",
    )
    redis_max_reconnect_attempts: int = Field(
        default=3,
        ge=1,
        description="Failed connection attempts before the cache is disabled until restart",
    )
    redis_retry_delay: float = Field(default=1.0, ge=0, description="Seconds between reconnect attempts")


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
