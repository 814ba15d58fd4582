"""
Application Configuration Module

Centralizes all configuration using environment variables with Pydantic Settings.
Supports two modes:
    - DEVELOPMENT: Uses the mock pizza factory (no API key needed)
    - PRODUCTION: Calls the real pizza factory service

The ENV_MODE variable controls which external services are instantiated,
while DAO_BACKEND selects the persistence engine (relational or in-memory).

Usage:
    from pizza_service.core.config import get_settings

    settings = get_settings()
    if settings.use_memory_database:
        # In-process reference engine
    else:
        # SQLAlchemy engine

Version: 1.0.0
"""

import logging
import sys
from enum import Enum
from typing import Optional
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL, make_url


class EnvironmentMode(str, Enum):
    """
    Application environment modes.

    Attributes:
        DEVELOPMENT: Local testing with mock services
        PRODUCTION: Live environment with real API integrations
        STAGING: Pre-production testing with real APIs but test keys
    """
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    STAGING = "staging"


class DaoBackend(str, Enum):
    """Persistence engine selection."""
    SQL = "sql"
    MEMORY = "memory"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables or .env file.
    Secrets (JWT secret, factory and Grafana keys) should NEVER be committed
    to version control.

    Attributes:
        env_mode: Current environment (development/production/staging)
        debug: Enable verbose logging and error details

        # Persistence
        dao_backend: "sql" for the relational engine, "memory" for tests
        database_url: Full SQLAlchemy URL (overrides the db_* fields)
        db_*: Connection parts used when database_url is not set
        list_per_page: Page size for a diner's order history
        bcrypt_rounds: Cost factor shared by both engines

        # External Services
        factory_url / factory_api_key: Pizza factory fulfillment API
        metrics_*: OTLP/JSON push endpoint
        logging_*: Loki push endpoint
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # ENVIRONMENT
    # ==========================================================================

    env_mode: EnvironmentMode = Field(
        default=EnvironmentMode.DEVELOPMENT,
        description="Application environment mode"
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode with verbose logging"
    )

    # ==========================================================================
    # APPLICATION
    # ==========================================================================

    app_name: str = Field(
        default="JWT Pizza Service",
        description="Application display name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="Application version"
    )
    jwt_secret: str = Field(
        default="change-me",
        description="HS256 secret used to sign auth tokens"
    )

    # ==========================================================================
    # DATABASE
    # ==========================================================================

    dao_backend: DaoBackend = Field(
        default=DaoBackend.SQL,
        description="Persistence engine (sql or memory)"
    )
    database_url: Optional[str] = Field(
        default=None,
        description="Full SQLAlchemy async URL; overrides the db_* fields"
    )
    db_driver: str = Field(
        default="postgresql+psycopg",
        description="SQLAlchemy dialect+driver"
    )
    db_host: str = Field(
        default="localhost",
        description="Database host"
    )
    db_port: Optional[int] = Field(
        default=None,
        description="Database port (driver default when unset)"
    )
    db_user: str = Field(
        default="pizza",
        description="Database user"
    )
    db_password: str = Field(
        default="pizza",
        description="Database password"
    )
    db_name: str = Field(
        default="pizza",
        description="Database name"
    )
    db_connect_timeout: int = Field(
        default=60,
        ge=1,
        description="Seconds to wait when opening a connection"
    )
    list_per_page: int = Field(
        default=10,
        ge=1,
        description="Orders per page in a diner's history"
    )
    bcrypt_rounds: int = Field(
        default=10,
        ge=4,
        le=31,
        description="bcrypt cost factor"
    )

    # ==========================================================================
    # PIZZA FACTORY
    # ==========================================================================

    factory_url: str = Field(
        default="https://pizza-factory.cs329.click",
        description="Base URL of the pizza factory"
    )
    factory_api_key: Optional[str] = Field(
        default=None,
        description="Bearer key for the pizza factory"
    )
    factory_timeout: float = Field(
        default=30.0,
        description="Seconds to wait for the pizza factory"
    )

    # ==========================================================================
    # METRICS (OTLP/JSON PUSH)
    # ==========================================================================

    metrics_url: Optional[str] = Field(
        default=None,
        description="OTLP/JSON metrics endpoint; metrics push disabled when unset"
    )
    metrics_api_key: Optional[str] = Field(
        default=None,
        description="Bearer key for the metrics endpoint"
    )
    metrics_source: str = Field(
        default="jwt-pizza-service",
        description="Value of the 'source' attribute on every data point"
    )
    metrics_interval_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Seconds between metric pushes"
    )

    # ==========================================================================
    # LOG SHIPPING (LOKI)
    # ==========================================================================

    logging_url: Optional[str] = Field(
        default=None,
        description="Loki push endpoint; log shipping disabled when unset"
    )
    logging_user_id: Optional[str] = Field(
        default=None,
        description="Loki user id"
    )
    logging_api_key: Optional[str] = Field(
        default=None,
        description="Loki API key"
    )
    logging_source: str = Field(
        default="jwt-pizza-service",
        description="Value of the 'source' stream label"
    )
    log_flush_interval_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Seconds between log flushes"
    )

    # ==========================================================================
    # CHAOS
    # ==========================================================================

    chaos_failure_rate: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Probability that a chaos-enabled request fails"
    )

    # ==========================================================================
    # VALIDATORS
    # ==========================================================================

    @field_validator("env_mode", mode="before")
    @classmethod
    def validate_env_mode(cls, v: str) -> EnvironmentMode:
        """Convert string to EnvironmentMode enum."""
        if isinstance(v, EnvironmentMode):
            return v
        try:
            return EnvironmentMode(v.lower())
        except ValueError:
            valid = [e.value for e in EnvironmentMode]
            raise ValueError(f"Invalid env_mode. Must be one of: {valid}")

    # ==========================================================================
    # COMPUTED PROPERTIES
    # ==========================================================================

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.env_mode == EnvironmentMode.PRODUCTION

    @property
    def use_real_services(self) -> bool:
        """Check if real external services should be used."""
        return self.env_mode in (EnvironmentMode.PRODUCTION, EnvironmentMode.STAGING)

    @property
    def use_memory_database(self) -> bool:
        """Check if the in-process reference engine is selected."""
        return self.dao_backend == DaoBackend.MEMORY

    @property
    def sqlalchemy_url(self) -> URL:
        """
        Build the SQLAlchemy URL for the relational engine.

        DATABASE_URL wins when present; otherwise the URL is assembled
        from the individual db_* settings.
        """
        if self.database_url:
            return make_url(self.database_url)
        return URL.create(
            drivername=self.db_driver,
            username=self.db_user,
            password=self.db_password,
            host=self.db_host,
            port=self.db_port,
            database=self.db_name,
        )

    # ==========================================================================
    # VALIDATION METHODS
    # ==========================================================================

    def validate_production_config(self) -> list[str]:
        """
        Validate that all required production settings are configured.

        Returns:
            List of missing configuration keys (empty if all present)
        """
        missing = []

        if self.use_real_services:
            if not self.factory_api_key:
                missing.append("FACTORY_API_KEY")
            if self.jwt_secret == "change-me":
                missing.append("JWT_SECRET")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Settings are read from the environment once; components receive the
    instance explicitly rather than calling this themselves.

    Returns:
        Settings: Configured application settings
    """
    return Settings()


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """
    Configure application-wide logging.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)

    Returns:
        Configured package logger
    """
    settings = get_settings()

    # Set level based on debug mode
    if settings.debug:
        level = logging.DEBUG

    # Configure format
    log_format = "%(asctime)s │ %(levelname)-8s │ %(name)-25s │ %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    logging.basicConfig(
        level=level,
        format=log_format,
        datefmt=date_format,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    return logging.getLogger("pizza_service")
