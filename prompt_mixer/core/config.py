"""Settings System.

This module provides the settings system for prompt-mixer, including:
- Pydantic models for all settings sections
- YAML file loading with default fallbacks
- Partial settings merging
- Validation with clear error messages
- Environment variable support for the storage home

Settings are loaded from prompt-mixer.yaml files. If no file exists,
sensible defaults are used. Partial settings are merged with defaults.
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator


# =============================================================================
# CONSTANTS
# =============================================================================

# Settings file looked up in the current directory
SETTINGS_FILE_NAME = "prompt-mixer.yaml"

# Environment variable overriding the storage home
HOME_ENV_VAR = "PROMPT_MIXER_HOME"

# Default storage home
DEFAULT_HOME = Path.home() / ".prompt-mixer"


# =============================================================================
# EXCEPTIONS
# =============================================================================


class ConfigurationError(Exception):
    """Raised when settings loading or validation fails."""

    pass


# =============================================================================
# ENUMS
# =============================================================================


class LogLevel(str, Enum):
    """Logging level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


# =============================================================================
# SETTINGS MODELS
# =============================================================================


class GenerationConfig(BaseModel):
    """Combination generation defaults."""

    innovation_count: int = Field(
        4, ge=1, le=1000, description="Combinations produced per random-mode preview"
    )
    seed: int | None = Field(
        None, description="Seed for reproducible previews (None = fresh entropy)"
    )
    unique_attempts: int = Field(
        100, ge=1, description="Retries per combination when avoiding duplicates"
    )


class IngestionConfig(BaseModel):
    """Tabular ingestion rules."""

    category_suffixes: list[str] = Field(
        default_factory=lambda: ["分类", "category"],
        description="Header suffixes marking a category column",
    )
    header_categories: bool = Field(
        True, description="Read '<category>-<name>' value headers as a default category"
    )

    @field_validator("category_suffixes")
    @classmethod
    def validate_suffixes(cls, v: list[str]) -> list[str]:
        """Validate that at least one non-blank suffix is configured."""
        cleaned = [suffix.strip() for suffix in v if suffix.strip()]
        if not cleaned:
            raise ValueError("category_suffixes must contain at least one suffix")
        return cleaned


class SyncConfig(BaseModel):
    """Reconciliation settings."""

    timeout: float = Field(
        30.0, gt=0, description="Seconds to wait for the source before failing"
    )
    auto_sync: bool = Field(
        False, description="Sync from the remembered source when the CLI starts"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(LogLevel.INFO, description="Logging level")
    format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format",
    )


class StorageConfig(BaseModel):
    """Where the library collection lives.

    The home directory can also be set via the PROMPT_MIXER_HOME environment
    variable, which takes precedence over the file value.
    """

    home: Path = Field(
        DEFAULT_HOME, validate_default=True, description="Storage home directory"
    )
    store_file: str = Field("libraries.json", description="Collection file name")

    @field_validator("home", mode="before")
    @classmethod
    def resolve_home(cls, v: Any) -> Path:
        env_home = os.environ.get(HOME_ENV_VAR)
        if env_home:
            v = env_home
        return Path(v).expanduser()

    @property
    def store_path(self) -> Path:
        return self.home / self.store_file


class Settings(BaseModel):
    """Complete settings.

    This is the main settings model containing all settings sections.
    Settings are loaded from prompt-mixer.yaml with defaults for missing values.
    """

    version: str = Field("1.0", description="Settings version")
    generation: GenerationConfig = Field(
        default_factory=GenerationConfig, description="Generation defaults"
    )
    ingestion: IngestionConfig = Field(
        default_factory=IngestionConfig, description="Tabular ingestion rules"
    )
    sync: SyncConfig = Field(default_factory=SyncConfig, description="Sync settings")
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )
    storage: StorageConfig = Field(
        default_factory=StorageConfig, description="Storage location"
    )

    class Config:
        """Pydantic configuration."""

        use_enum_values = True


# =============================================================================
# DEFAULT SETTINGS
# =============================================================================


def get_default_settings() -> Settings:
    """Return the default settings."""
    return Settings()


# =============================================================================
# SETTINGS LOADING
# =============================================================================


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries.

    Values from override take precedence. Nested dicts are merged recursively.
    Lists are replaced entirely (not merged).
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_settings(path: Path | str | None = None) -> Settings:
    """Load settings from a YAML file.

    If no path is provided, looks for prompt-mixer.yaml in the current directory.
    If the file doesn't exist, returns default settings.
    Partial settings are merged with defaults.

    Args:
        path: Path to the settings file.

    Returns:
        Loaded and validated Settings.

    Raises:
        ConfigurationError: If YAML is invalid or values are invalid.
    """
    if path is None:
        settings_path = Path.cwd() / SETTINGS_FILE_NAME
    else:
        settings_path = Path(path)

    if not settings_path.exists():
        return get_default_settings()

    try:
        with open(settings_path, encoding="utf-8") as f:
            user_settings = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {settings_path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Error reading {settings_path}: {e}") from e

    if user_settings is None:
        return get_default_settings()

    if not isinstance(user_settings, dict):
        raise ConfigurationError(
            f"Invalid settings in {settings_path}: expected a mapping at the top level"
        )

    default_dict = get_default_settings().model_dump()
    merged = _deep_merge(default_dict, user_settings)

    try:
        return Settings(**merged)
    except Exception as e:
        raise ConfigurationError(f"Invalid settings: {e}") from e


# =============================================================================
# SETTINGS VALIDATION
# =============================================================================


def validate_settings(settings: Settings) -> list[str]:
    """Return advisory warnings about settings that load but look wrong."""
    warnings: list[str] = []

    if settings.generation.innovation_count > 100:
        warnings.append(
            f"generation.innovation_count={settings.generation.innovation_count} "
            "produces very large previews. Consider 1-20."
        )

    if settings.sync.timeout < 5:
        warnings.append(
            f"sync.timeout={settings.sync.timeout} is short; slow sources "
            "will be reported as failed syncs."
        )

    if settings.sync.timeout > 300:
        warnings.append(
            f"sync.timeout={settings.sync.timeout} blocks further syncs for a "
            "long time when the source hangs."
        )

    return warnings
