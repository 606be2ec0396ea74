"""
Centralized settings management using pydantic-settings.

All environment variables and configuration values are defined here.
Use get_settings() to access the singleton settings instance.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Required environment variables:
        - SUPABASE_URL: Supabase project URL
        - SUPABASE_SERVICE_KEY: Supabase service role key

    Optional environment variables:
        - HOST: Server host (default: 0.0.0.0)
        - PORT: Server port (default: 8080)
        - WORKERS: uvicorn worker processes (default: 4)
        - REDIS_URL: Redis connection URL (default: redis://localhost:6379/0)
        - ORION_MCP_URL: ORION-CORE memory service (default: http://localhost:8090)
        - ENVIRONMENT: Environment name (development, staging, production)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Environment
    # ==========================================================================
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Debug mode")

    @property
    def is_development(self) -> bool:
        return self.environment.lower() in ("development", "dev", "local")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in ("production", "prod")

    # ==========================================================================
    # Server Configuration
    # ==========================================================================
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")
    workers: int = Field(default=4, description="Number of uvicorn workers")

    # CORS Configuration
    cors_origins: List[str] = Field(
        default=[
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:5173",
        ],
        description="Allowed CORS origins"
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    # ==========================================================================
    # Supabase Configuration
    # ==========================================================================
    supabase_url: str = Field(..., description="Supabase project URL")
    supabase_service_key: str = Field(..., description="Supabase service role key")
    interactions_table: str = Field(
        default="user_interactions",
        description="Table holding raw interaction records"
    )

    # ==========================================================================
    # Redis Configuration
    # ==========================================================================
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL"
    )
    redis_enabled: bool = Field(
        default=False,
        description="Cache built profiles in Redis instead of process memory"
    )
    profile_cache_ttl_seconds: int = Field(
        default=300,
        description="Lifetime of a cached user profile (seconds)"
    )

    # ==========================================================================
    # ORION-CORE Memory Service
    # ==========================================================================
    orion_enabled: bool = Field(
        default=True,
        description="Retrieve candidates from ORION-CORE (empty candidate list if disabled)"
    )
    orion_mcp_url: str = Field(
        default="http://localhost:8090",
        description="ORION-CORE MCP base URL"
    )
    orion_request_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for ORION-CORE requests (seconds)"
    )
    recommendation_events_enabled: bool = Field(
        default=True,
        description="Store a recommendation_feedback memory for each generated list"
    )

    # ==========================================================================
    # Personalization Window
    # ==========================================================================
    interaction_window_days: int = Field(
        default=30,
        description="How far back to read interactions when building a profile"
    )
    interaction_limit: int = Field(
        default=50,
        description="Max interactions read per profile build"
    )
    candidate_limit: int = Field(
        default=25,
        description="Max candidates requested from the retriever"
    )
    candidate_threshold: float = Field(
        default=0.7,
        description="Minimum similarity for retrieved candidates"
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Uses lru_cache to ensure only one instance is created.
    Settings are loaded from environment variables and .env file.

    Returns:
        Settings: The application settings instance

    Raises:
        ValidationError: If required environment variables are missing
    """
    # Try to find .env file in project root
    env_file = Path(__file__).parent.parent.parent / ".env"
    if env_file.exists():
        os.environ.setdefault("ENV_FILE", str(env_file))

    return Settings(_env_file=env_file if env_file.exists() else None)


def get_settings_for_testing(**overrides) -> Settings:
    """
    Create a settings instance for testing with optional overrides.

    This bypasses the cache to allow different settings in tests.

    Args:
        **overrides: Setting values to override

    Returns:
        Settings: A new settings instance with overrides applied
    """
    test_defaults = {
        "supabase_url": "https://test.supabase.co",
        "supabase_service_key": "test-key",
        "environment": "testing",
        "debug": True,
    }
    test_defaults.update(overrides)

    return Settings(**test_defaults)
