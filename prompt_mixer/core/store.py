"""
Library Store

Persists the current CombinationConfig snapshot as a JSON file and handles
wholesale export/import of the serialized config.

The store never mutates a snapshot in place: callers load a config, derive a
new one through the engines, and save the replacement. Concurrent writers are
last-write-wins.
"""

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from prompt_mixer.reconcile.merge import merge_libraries
from prompt_mixer.schemas import (
    CombinationConfig,
    ImportMode,
    merge_default_libraries,
)

logger = logging.getLogger(__name__)

# Version written into export envelopes
EXPORT_VERSION = 1


class StoreError(Exception):
    """Raised when the collection file cannot be read or written."""
    pass


class ConfigImportError(Exception):
    """Raised when a serialized config cannot be imported."""
    pass


# ==================== Serialization ====================


def config_to_dict(config: CombinationConfig) -> dict[str, Any]:
    """Serialize a config using the camelCase wire names."""
    return config.model_dump(mode="json", by_alias=True)


def export_config(config: CombinationConfig) -> str:
    """Export the whole config wrapped in a versioned envelope."""
    return json.dumps(
        {
            "version": EXPORT_VERSION,
            "exportedAt": datetime.now(timezone.utc).isoformat(),
            "data": config_to_dict(config),
        },
        ensure_ascii=False,
        indent=2,
    )


def parse_config(text: str) -> CombinationConfig:
    """Parse an exported envelope or a bare config.

    Raises:
        ConfigImportError: On malformed JSON or a payload without libraries.
    """
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigImportError(f"Malformed config JSON: {e}") from e

    if not isinstance(payload, dict):
        raise ConfigImportError("Config must be a JSON object")

    data = payload.get("data", payload)
    if not isinstance(data, dict) or not isinstance(data.get("libraries"), list):
        raise ConfigImportError("Config has no 'libraries' list")

    try:
        return CombinationConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigImportError(f"Invalid config: {e}") from e


def import_config(
    text: str,
    current: CombinationConfig,
    mode: ImportMode | str,
) -> CombinationConfig:
    """Import a serialized config into ``current`` under ``mode``.

    ``replace`` takes the imported config wholesale. The merge modes keep the
    current settings and merge only the library lists.

    Raises:
        ConfigImportError: On malformed input or an unsupported mode. The
            current snapshot is never modified.
    """
    try:
        mode = ImportMode(mode)
    except ValueError as e:
        raise ConfigImportError(f"Unsupported import mode: {mode!r}") from e

    imported = parse_config(text)

    if mode == ImportMode.REPLACE:
        logger.info("Replacing collection with %d imported libraries", len(imported.libraries))
        return imported

    libraries = merge_libraries(current.libraries, imported.libraries, mode)
    logger.info(
        "Merged %d imported libraries (%s): %d -> %d",
        len(imported.libraries),
        mode.value,
        len(current.libraries),
        len(libraries),
    )
    return current.with_libraries(libraries)


# ==================== Store ====================


class LibraryStore:
    """JSON file holding the current collection snapshot."""

    def __init__(self, path: Path | str):
        """Initialize the store.

        Args:
            path: Path to the collection JSON file.
        """
        self.path = Path(path)

    @property
    def exists(self) -> bool:
        return self.path.exists()

    def init(self, force: bool = False, with_presets: bool = True) -> CombinationConfig:
        """Create a fresh collection file.

        Raises:
            StoreError: If the file already exists and force is False.
        """
        if self.exists and not force:
            raise StoreError(
                f"Collection already exists at {self.path}. Use --force to overwrite."
            )

        config = CombinationConfig()
        if with_presets:
            config = merge_default_libraries(config)
        self.save(config)
        return config

    def load(self) -> CombinationConfig:
        """Load the stored snapshot, or an empty config if none exists."""
        if not self.exists:
            return CombinationConfig()

        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise StoreError(f"Error reading {self.path}: {e}") from e

        try:
            return parse_config(text)
        except ConfigImportError as e:
            raise StoreError(f"Corrupt collection file {self.path}: {e}") from e

    def save(self, config: CombinationConfig) -> None:
        """Write the snapshot atomically (temp file + replace)."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(config_to_dict(config), ensure_ascii=False, indent=2)

        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, self.path)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise StoreError(f"Error writing {self.path}: {e}") from e

        logger.debug("Saved %d libraries to %s", len(config.libraries), self.path)

    def apply(self, config: CombinationConfig, previous: Optional[CombinationConfig] = None) -> bool:
        """Save ``config`` if it differs from ``previous``. Returns True on write."""
        if previous is not None and config == previous:
            return False
        self.save(config)
        return True
