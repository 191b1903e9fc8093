"""Pydantic schemas for prompt-mixer."""

from prompt_mixer.schemas.common import (
    DEFAULT_GROUP,
    LIBRARY_COLORS,
    UNIVERSAL_ALIASES,
    UNIVERSAL_CATEGORY,
    CombinationMode,
    ImportMode,
    PickMode,
    color_for_index,
    normalize_categories,
)
from prompt_mixer.schemas.library import (
    CombinationConfig,
    Library,
    MasterSheet,
    generate_library_id,
)
from prompt_mixer.schemas.presets import (
    PRESET_LIBRARY_NAMES,
    create_library,
    default_libraries,
    merge_default_libraries,
)

__all__ = [
    # Enums
    "CombinationMode",
    "ImportMode",
    "PickMode",
    # Constants
    "DEFAULT_GROUP",
    "LIBRARY_COLORS",
    "UNIVERSAL_ALIASES",
    "UNIVERSAL_CATEGORY",
    "PRESET_LIBRARY_NAMES",
    # Models
    "CombinationConfig",
    "Library",
    "MasterSheet",
    # Helpers
    "color_for_index",
    "normalize_categories",
    "generate_library_id",
    "create_library",
    "default_libraries",
    "merge_default_libraries",
]
