"""Common types, enums and constants shared across schemas."""

from enum import Enum


class PickMode(str, Enum):
    """How many values a library contributes in cartesian mode."""

    RANDOM_ONE = "random-one"
    RANDOM_MULTIPLE = "random-multiple"


class CombinationMode(str, Enum):
    """Generation mode for a combination config."""

    RANDOM = "random"  # N independent combinations
    CARTESIAN = "cartesian"  # Product of per-library draw sets


class ImportMode(str, Enum):
    """Policy used when merging imported libraries into a collection."""

    REPLACE = "replace"
    MERGE_ADD = "merge-add"
    MERGE_UPDATE = "merge-update"


# Category label meaning "compatible with every category"
UNIVERSAL_CATEGORY = "universal"

# Labels normalized to the universal sentinel at ingestion
UNIVERSAL_ALIASES = frozenset({UNIVERSAL_CATEGORY, "通用"})

# Group assigned to master sheets whose name carries no group prefix
DEFAULT_GROUP = "default"

# Tab colors, assigned round-robin to new libraries
LIBRARY_COLORS = [
    "#f472b6",  # pink
    "#fb923c",  # orange
    "#facc15",  # yellow
    "#4ade80",  # green
    "#22d3ee",  # cyan
    "#818cf8",  # indigo
    "#c084fc",  # purple
    "#f87171",  # red
]


def color_for_index(index: int) -> str:
    """Return the palette color for the given library position."""
    return LIBRARY_COLORS[index % len(LIBRARY_COLORS)]


def normalize_categories(labels) -> frozenset[str]:
    """Normalize raw category labels into a set.

    Strips whitespace and drops empty labels. A set containing a universal label collapses
    to the empty set (compatible with everything).
    """
    if labels is None:
        return frozenset()
    if isinstance(labels, str):
        labels = [labels]
    cleaned = frozenset(str(label).strip() for label in labels if str(label).strip())
    if cleaned & UNIVERSAL_ALIASES:
        return frozenset()
    return cleaned
