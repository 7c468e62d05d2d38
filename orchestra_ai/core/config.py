"""
Configuration Settings.

This module defines the application configuration using Pydantic's BaseSettings.
It automatically loads all configuration from environment variables and .env file
without explicit dotenv loading.
"""

from datetime import timedelta
from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# =====================================================================
# Grouped Configuration Models
# =====================================================================


class TokenBudgetConfig(BaseModel):
    """Token budget limits shared by every session of a process."""

    daily_token_limit: int = Field(
        default=100_000, alias="TOKEN_BUDGET_DAILY_TOKEN_LIMIT", description="Maximum tokens per UTC day"
    )
    hourly_token_limit: int = Field(
        default=10_000, alias="TOKEN_BUDGET_HOURLY_TOKEN_LIMIT", description="Maximum tokens per UTC hour"
    )
    daily_budget_limit: float = Field(
        default=100.0, alias="TOKEN_BUDGET_DAILY_BUDGET_LIMIT", description="Maximum spend per UTC day"
    )
    hourly_budget_limit: float = Field(
        default=10.0, alias="TOKEN_BUDGET_HOURLY_BUDGET_LIMIT", description="Maximum spend per UTC hour"
    )
    warning_threshold: float = Field(
        default=0.8, alias="TOKEN_BUDGET_WARNING_THRESHOLD", description="Usage ratio that raises a warning"
    )
    block_threshold: float = Field(
        default=0.95, alias="TOKEN_BUDGET_BLOCK_THRESHOLD", description="Usage ratio reported as blocked"
    )
    retention_days: int = Field(
        default=30, alias="TOKEN_BUDGET_RETENTION_DAYS", description="Days of usage buckets kept by cleanup"
    )

    model_config = {"populate_by_name": True}


class CheckpointConfig(BaseModel):
    """Checkpoint store configuration."""

    backend: Literal["memory", "sql", "redis"] = Field(
        default="memory", alias="ORCHESTRA_AI_STATE_BACKEND", description="Checkpoint store backend"
    )
    database_url: str = Field(
        default="sqlite+aiosqlite:///./orchestra_ai.db",
        alias="ORCHESTRA_AI_DATABASE_URL",
        description="Async SQLAlchemy URL used by the sql backend",
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        alias="ORCHESTRA_AI_REDIS_URL",
        description="Redis URL used by the redis backend",
    )
    success_ttl_hours: float = Field(
        default=24, alias="ORCHESTRA_AI_SUCCESS_TTL_HOURS", description="Snapshot TTL after a successful run"
    )
    failure_ttl_hours: float = Field(
        default=1, alias="ORCHESTRA_AI_FAILURE_TTL_HOURS", description="Snapshot TTL after a failed run"
    )

    model_config = {"populate_by_name": True}

    @property
    def success_ttl(self) -> timedelta:
        return timedelta(hours=self.success_ttl_hours)

    @property
    def failure_ttl(self) -> timedelta:
        return timedelta(hours=self.failure_ttl_hours)


# =====================================================================
# Main Settings Class
# =====================================================================


class Settings(BaseSettings):
    """
    Application settings model.

    All properties are automatically bound from environment variables and .env file.
    Pydantic's BaseSettings handles dotenv loading automatically via model_config.
    """

    # =====================================================================
    # Pydantic Configuration
    # =====================================================================
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
        populate_by_name=True,
    )

    # =====================================================================
    # Engine Configuration
    # =====================================================================
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
        alias="ORCHESTRA_AI_LOG_LEVEL",
    )
    max_iterations: int = Field(
        default=10,
        ge=1,
        description="Maximum plan/execute/check cycles per run",
        alias="ORCHESTRA_AI_MAX_ITERATIONS",
    )

    # =====================================================================
    # Checkpoint Store Configuration
    # =====================================================================
    state_backend: Literal["memory", "sql", "redis"] = Field(
        default="memory",
        description="Checkpoint store backend (memory, sql, redis)",
        alias="ORCHESTRA_AI_STATE_BACKEND",
    )
    database_url: str = Field(
        default="sqlite+aiosqlite:///./orchestra_ai.db",
        description="Async SQLAlchemy connection URL for the sql checkpoint store",
        alias="ORCHESTRA_AI_DATABASE_URL",
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL for the redis checkpoint store",
        alias="ORCHESTRA_AI_REDIS_URL",
    )
    success_ttl_hours: float = Field(default=24, alias="ORCHESTRA_AI_SUCCESS_TTL_HOURS")
    failure_ttl_hours: float = Field(default=1, alias="ORCHESTRA_AI_FAILURE_TTL_HOURS")

    # =====================================================================
    # Token Budget Configuration
    # =====================================================================
    daily_token_limit: int = Field(default=100_000, alias="TOKEN_BUDGET_DAILY_TOKEN_LIMIT")
    hourly_token_limit: int = Field(default=10_000, alias="TOKEN_BUDGET_HOURLY_TOKEN_LIMIT")
    daily_budget_limit: float = Field(default=100.0, alias="TOKEN_BUDGET_DAILY_BUDGET_LIMIT")
    hourly_budget_limit: float = Field(default=10.0, alias="TOKEN_BUDGET_HOURLY_BUDGET_LIMIT")
    warning_threshold: float = Field(default=0.8, alias="TOKEN_BUDGET_WARNING_THRESHOLD")
    block_threshold: float = Field(default=0.95, alias="TOKEN_BUDGET_BLOCK_THRESHOLD")
    retention_days: int = Field(default=30, alias="TOKEN_BUDGET_RETENTION_DAYS")

    # =====================================================================
    # Computed Properties (Grouped Configurations)
    # =====================================================================

    @property
    def budget(self) -> TokenBudgetConfig:
        """Get token budget configuration from environment variables."""
        return TokenBudgetConfig.model_validate(self.model_dump(by_alias=True))

    @property
    def checkpoint(self) -> CheckpointConfig:
        """Get checkpoint store configuration from environment variables."""
        return CheckpointConfig.model_validate(self.model_dump(by_alias=True))


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings, loaded once."""
    return Settings()
