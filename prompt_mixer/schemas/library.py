"""Library and combination config schemas.

Both models are frozen: every change produces a new snapshot through
``model_copy(update=...)`` so that previews and reconciliation can share a
config without locking. Attribute names are snake_case; the serialized form
uses camelCase aliases (``valuesWithCategory``, ``participationRate``, ...)
and either spelling is accepted on input.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
)
from pydantic.alias_generators import to_camel

from prompt_mixer.schemas.common import (
    LIBRARY_COLORS,
    CombinationMode,
    PickMode,
    normalize_categories,
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def generate_library_id() -> str:
    """Generate a locally unique library id (unstable across imports)."""
    return f"lib_{uuid.uuid4().hex[:12]}"


_MODEL_CONFIG = ConfigDict(
    frozen=True,
    populate_by_name=True,
    alias_generator=to_camel,
)


class Library(BaseModel):
    """A named, weighted, optionally category-tagged list of values."""

    model_config = _MODEL_CONFIG

    id: str = Field(default_factory=generate_library_id, description="Local id")
    name: str = Field(..., description="Dimension name, e.g. Scene")
    color: str = Field(LIBRARY_COLORS[0], description="Tab color")
    enabled: bool = Field(True, description="Use this library when generating")
    values: tuple[str, ...] = Field(
        default_factory=tuple, description="Candidate values, duplicates permitted"
    )
    values_with_category: Optional[dict[str, frozenset[str]]] = Field(
        None, description="Value -> category labels"
    )
    value_weights: dict[str, int] = Field(
        default_factory=dict, description="Value -> weight (missing = 1)"
    )
    participation_rate: int = Field(
        100, description="Chance (0-100) of joining a random-mode combination"
    )
    pick_mode: PickMode = Field(PickMode.RANDOM_ONE, description="Draw mode")
    pick_count: int = Field(1, description="Values drawn in random-multiple mode")
    source_sheet: Optional[str] = Field(None, description="Remote sheet of origin")
    group: Optional[str] = Field(None, description="Display group")
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    @field_validator("values", mode="before")
    @classmethod
    def coerce_values(cls, v: Any) -> Any:
        if v is None:
            return ()
        return v

    @field_validator("participation_rate", mode="before")
    @classmethod
    def clamp_participation_rate(cls, v: Any) -> int:
        """Clamp into [0, 100]; missing means always included."""
        if v is None:
            return 100
        return max(0, min(100, int(round(float(v)))))

    @field_validator("pick_count", mode="before")
    @classmethod
    def clamp_pick_count(cls, v: Any) -> int:
        if v is None:
            return 1
        return max(1, int(v))

    @field_validator("pick_mode", mode="before")
    @classmethod
    def coerce_pick_mode(cls, v: Any) -> Any:
        # Older exports carry a 'sequential' mode that draws a single value.
        if v is None or v == "sequential":
            return PickMode.RANDOM_ONE
        return v

    @field_validator("value_weights", mode="before")
    @classmethod
    def coerce_weights(cls, v: Any) -> Any:
        if not v:
            return {}
        return {str(key): int(round(float(weight))) for key, weight in v.items()}

    @field_validator("values_with_category", mode="before")
    @classmethod
    def normalize_value_categories(cls, v: Any) -> Any:
        """Accept the mapping form or the legacy [{value, categories}] list."""
        if v is None:
            return None
        if isinstance(v, dict):
            items = v.items()
        else:
            items = [(entry["value"], entry.get("categories")) for entry in v]
        mapping: dict[str, frozenset[str]] = {}
        for value, labels in items:
            # Duplicate value text collapses to the first occurrence.
            if value not in mapping:
                mapping[value] = normalize_categories(labels)
        return mapping

    @field_serializer("values_with_category")
    def serialize_value_categories(
        self, v: Optional[dict[str, frozenset[str]]]
    ) -> Optional[dict[str, list[str]]]:
        if v is None:
            return None
        return {value: sorted(labels) for value, labels in v.items()}

    @property
    def key(self) -> tuple[str, str]:
        """Reconciliation identity: (source sheet, name)."""
        return (self.source_sheet or "", self.name)

    @property
    def is_preset(self) -> bool:
        """True for libraries that did not come from a remote sheet."""
        return not self.source_sheet

    @property
    def has_category_data(self) -> bool:
        if not self.values_with_category:
            return False
        return any(self.values_with_category.values())

    @property
    def effective_pick_count(self) -> int:
        if self.pick_mode == PickMode.RANDOM_MULTIPLE:
            return self.pick_count
        return 1

    def weight_of(self, value: str) -> int:
        return self.value_weights.get(value, 1)

    def categories_of(self, value: str) -> frozenset[str]:
        if not self.values_with_category:
            return frozenset()
        return self.values_with_category.get(value, frozenset())

    def touch(self, **changes: Any) -> "Library":
        """Return a copy with ``changes`` applied and a fresh ``updated_at``."""
        changes.setdefault("updated_at", _now())
        return self.model_copy(update=changes)


class MasterSheet(BaseModel):
    """A remote bundle of libraries plus an optional linked instruction."""

    model_config = _MODEL_CONFIG

    sheet_name: str = Field(..., description="Remote sheet name")
    group_name: str = Field(..., description="Group derived from the sheet name")
    libraries: tuple[Library, ...] = Field(default_factory=tuple)
    linked_instruction: Optional[str] = Field(
        None, description="Instruction text paired with this sheet"
    )


class CombinationConfig(BaseModel):
    """The whole library collection plus generation settings."""

    model_config = _MODEL_CONFIG

    enabled: bool = Field(True, description="Master switch for generation")
    combination_mode: CombinationMode = Field(CombinationMode.RANDOM)
    libraries: tuple[Library, ...] = Field(default_factory=tuple)
    category_link_enabled: bool = Field(
        True, description="Constrain draws to one shared category when data exists"
    )
    active_source_sheet: Optional[str] = None
    linked_instructions: dict[str, str] = Field(default_factory=dict)
    source_spreadsheet_url: Optional[str] = Field(
        None, description="Remembered remote source for sync"
    )
    insert_template: str = Field(
        "", description="Optional {Library} template used to render combinations"
    )

    @field_validator("libraries", mode="before")
    @classmethod
    def coerce_libraries(cls, v: Any) -> Any:
        if v is None:
            return ()
        return v

    @field_validator("linked_instructions", mode="before")
    @classmethod
    def coerce_instructions(cls, v: Any) -> Any:
        if v is None:
            return {}
        return v

    def with_libraries(self, libraries, **changes: Any) -> "CombinationConfig":
        """Return a new snapshot holding ``libraries``."""
        return self.model_copy(update={"libraries": tuple(libraries), **changes})

    def find(self, source_sheet: Optional[str], name: str) -> Optional[Library]:
        key = (source_sheet or "", name)
        for library in self.libraries:
            if library.key == key:
                return library
        return None

    def source_sheets(self) -> list[str]:
        """Distinct source sheets, in first-seen order."""
        sheets: list[str] = []
        for library in self.libraries:
            if library.source_sheet and library.source_sheet not in sheets:
                sheets.append(library.source_sheet)
        return sheets

    @property
    def current_source_sheet(self) -> str:
        """The active sheet, defaulting to the first known one."""
        if self.active_source_sheet:
            return self.active_source_sheet
        sheets = self.source_sheets()
        return sheets[0] if sheets else ""

    def visible_libraries(self) -> list[Library]:
        """Libraries of the active sheet plus presets.

        With one or no source sheets everything is visible.
        """
        if len(self.source_sheets()) <= 1:
            return list(self.libraries)
        active = self.current_source_sheet
        return [
            library
            for library in self.libraries
            if library.source_sheet == active or library.is_preset
        ]

    def switch_source_sheet(self, sheet_name: str) -> "CombinationConfig":
        """Activate a sheet: enable its libraries and presets, disable the rest."""
        libraries = [
            library.model_copy(
                update={"enabled": library.source_sheet == sheet_name or library.is_preset}
            )
            for library in self.libraries
        ]
        return self.with_libraries(libraries, active_source_sheet=sheet_name)

    def linked_instruction_for(
        self, sheet_name: Optional[str] = None, fallback: str = ""
    ) -> str:
        """Instruction linked to a sheet (active sheet by default)."""
        sheet = sheet_name or self.current_source_sheet
        if sheet and self.linked_instructions.get(sheet):
            return self.linked_instructions[sheet]
        return fallback
