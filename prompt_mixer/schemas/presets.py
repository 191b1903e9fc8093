"""Preset library dimensions seeded into a fresh collection."""

from prompt_mixer.schemas.common import color_for_index
from prompt_mixer.schemas.library import CombinationConfig, Library


PRESET_LIBRARY_NAMES = [
    "Scene",
    "Art Style",
    "Decoration",
    "Props",
    "Other",
    "Character",
    "Gender",
    "Clothing",
    "Copy",
    "Age Group",
    "Season",
    "Weather",
    "Camera",
    "Pose",
]


def default_libraries() -> list[Library]:
    """Empty, disabled preset libraries for the user to fill in."""
    return [
        Library(name=name, enabled=False, color=color_for_index(index))
        for index, name in enumerate(PRESET_LIBRARY_NAMES)
    ]


def create_library(name: str, color_index: int = 0) -> Library:
    """Create an empty, enabled library from an explicit user action."""
    return Library(name=name, color=color_for_index(color_index))


def merge_default_libraries(config: CombinationConfig) -> CombinationConfig:
    """Add presets whose name is missing; existing libraries are untouched."""
    existing_names = {library.name for library in config.libraries}
    missing = [lib for lib in default_libraries() if lib.name not in existing_names]
    if not missing:
        return config
    return config.with_libraries([*config.libraries, *missing])
