"""Configuration management for media-gc.

This module provides:
- Settings class for environment variable configuration using pydantic-settings
- CleanupConfig, the YAML-backed configuration of a cleanup run
- Loader functions for YAML configurations
- Singleton pattern for settings access
"""

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from media_gc.config.references import DEFAULT_REFERENCE_SPECS, ReferenceSpec
from media_gc.logging_config import logger


class CleanupConfig(BaseModel):
    """Configuration for the orphaned media cleanup job.

    Attributes:
        max_operations: Upper bound of deletes plus soft deletes per run
        grace_period_hours: Minimum asset age before orphan consideration
        page_size: Documents fetched per page while scanning
        retries: Retry count declared to the scheduler
        schedule: Cron expression the scheduler triggers the job on
        lease_minutes: How long a running job blocks another run
        dry_run: Classify candidates without mutating anything
        references: Where media references can appear
    """

    max_operations: int = 500
    grace_period_hours: float = 24
    page_size: int = 1000
    retries: int = 2
    schedule: str = "0 0 1 * *"
    lease_minutes: int = 120
    dry_run: bool = False
    references: List[ReferenceSpec] = Field(
        default_factory=lambda: list(DEFAULT_REFERENCE_SPECS)
    )

    @field_validator("max_operations", "retries")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Value must not be negative")
        return v

    @field_validator("grace_period_hours")
    @classmethod
    def validate_grace_period(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Grace period must not be negative")
        return v

    @field_validator("page_size", "lease_minutes")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Value must be positive")
        return v


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Uses pydantic-settings for type-safe configuration loading with
    automatic environment variable parsing and validation.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./media_gc.db",
        description="Database connection URL"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Minimum log level"
    )
    log_serialize: bool = Field(
        default=False,
        description="Emit JSON log records on stderr"
    )
    log_dir: str = Field(
        default="logs",
        description="Directory for the rotating log file"
    )

    # Configuration files
    config_dir: str = Field(
        default="",
        description="Directory holding YAML configuration files"
    )

    # Server
    server_host: str = Field(
        default="0.0.0.0",
        description="Server host"
    )
    server_port: int = Field(
        default=8000,
        description="Server port"
    )

    @field_validator("server_port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate server port is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError("Port must be between 1 and 65535")
        return v


def get_config_dir() -> Path:
    """Get the configuration directory path.

    Returns:
        CONFIG_DIR when set, otherwise the repository's config directory
    """
    configured = get_settings().config_dir
    if configured:
        return Path(configured)
    return Path(__file__).resolve().parents[3] / "config"


def load_yaml_config(config_name: str, config_dir: Path | None = None) -> Dict[str, Any]:
    """Load a YAML configuration file from the config directory.

    Args:
        config_name: Name of the YAML file without extension (e.g., 'cleanup')
        config_dir: Directory to read from, defaults to get_config_dir()

    Returns:
        Dictionary containing the loaded configuration

    Raises:
        FileNotFoundError: If the configuration file does not exist
        yaml.YAMLError: If the YAML file is malformed
    """
    config_dir = config_dir or get_config_dir()
    config_path = config_dir / f"{config_name}.yaml"

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def get_cleanup_config(config_dir: Path | None = None) -> CleanupConfig:
    """Load the cleanup job configuration.

    Falls back to built-in defaults when cleanup.yaml is absent.

    Raises:
        yaml.YAMLError: If the YAML file is malformed
        pydantic.ValidationError: If the configuration is invalid
    """
    try:
        data = load_yaml_config("cleanup", config_dir)
    except FileNotFoundError as e:
        logger.warning(f"{e}; using default cleanup configuration")
        return CleanupConfig()

    return CleanupConfig(**data)


@lru_cache
def get_settings() -> Settings:
    """Get cached Settings singleton instance.

    Uses lru_cache to ensure only one Settings instance is created
    and reused throughout the application lifecycle.

    Returns:
        Settings instance loaded from environment variables
    """
    return Settings()
