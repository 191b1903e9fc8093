"""Core infrastructure: settings, logging and persistence."""

from prompt_mixer.core.config import (
    ConfigurationError,
    GenerationConfig,
    IngestionConfig,
    LoggingConfig,
    Settings,
    StorageConfig,
    SyncConfig,
    get_default_settings,
    load_settings,
    validate_settings,
)
from prompt_mixer.core.logging import LogManager, setup_logging
from prompt_mixer.core.store import (
    ConfigImportError,
    LibraryStore,
    StoreError,
    export_config,
    import_config,
    parse_config,
)

__all__ = [
    # Settings
    "ConfigurationError",
    "GenerationConfig",
    "IngestionConfig",
    "LoggingConfig",
    "Settings",
    "StorageConfig",
    "SyncConfig",
    "get_default_settings",
    "load_settings",
    "validate_settings",
    # Logging
    "LogManager",
    "setup_logging",
    # Store
    "ConfigImportError",
    "LibraryStore",
    "StoreError",
    "export_config",
    "import_config",
    "parse_config",
]
