"""
Pure merge functions: (snapshot, incoming data) -> new snapshot.

Libraries are matched by their (source_sheet, name) key, never by id.
Two distinct libraries sharing a key are treated as the same library.
Nothing here performs I/O or mutates its inputs.
"""

import logging
from typing import Iterable, Optional

from prompt_mixer.schemas import CombinationConfig, ImportMode, Library, MasterSheet

logger = logging.getLogger(__name__)


# ==================== Helpers ====================


def _index_of(libraries: list[Library], key: tuple[str, str]) -> Optional[int]:
    for index, library in enumerate(libraries):
        if library.key == key:
            return index
    return None


def _preset_index(libraries: list[Library], name: str) -> Optional[int]:
    for index, library in enumerate(libraries):
        if library.is_preset and library.name == name:
            return index
    return None


def _merge_categories(
    existing: Optional[dict[str, frozenset[str]]],
    incoming: Optional[dict[str, frozenset[str]]],
) -> Optional[dict[str, frozenset[str]]]:
    """Union of two value->categories mappings; incoming entries win."""
    if existing is None and incoming is None:
        return None
    merged = dict(existing or {})
    merged.update(incoming or {})
    return merged


def _from_sheet(library: Library, sheet: MasterSheet) -> Library:
    return library.model_copy(
        update={"source_sheet": sheet.sheet_name, "group": sheet.group_name}
    )


def diff_libraries(before: Iterable[Library], after: Iterable[Library]) -> tuple[int, int]:
    """Count (updated, added) libraries between two snapshots, by id."""
    previous = {library.id: library for library in before}
    updated = added = 0
    for library in after:
        old = previous.get(library.id)
        if old is None:
            added += 1
        elif (
            old.values != library.values
            or old.values_with_category != library.values_with_category
        ):
            updated += 1
    return updated, added


# ==================== Import modes ====================


def resolve_replace(existing: Iterable[Library], incoming: Iterable[Library]) -> list[Library]:
    """Three-tier resolution of incoming libraries against ``existing``.

    1. A preset (no source sheet) with the same name takes over the incoming
       values, source sheet and group.
    2. A library with the same key gets the incoming values appended.
    3. Anything else is appended as a new library.
    """
    result = list(existing)
    for library in incoming:
        preset = _preset_index(result, library.name)
        if preset is not None:
            result[preset] = result[preset].touch(
                values=library.values,
                values_with_category=library.values_with_category,
                source_sheet=library.source_sheet,
                group=library.group,
            )
            continue

        match = _index_of(result, library.key)
        if match is not None:
            current = result[match]
            result[match] = current.touch(
                values=current.values + library.values,
                values_with_category=_merge_categories(
                    current.values_with_category, library.values_with_category
                ),
            )
            continue

        result.append(library)
    return result


def _merge_add(existing: list[Library], incoming: Iterable[Library]) -> list[Library]:
    result = list(existing)
    for library in incoming:
        match = _index_of(result, library.key)
        if match is None:
            result.append(library)
        elif not result[match].values:
            # Placeholder gets completed from the incoming copy and switched on
            result[match] = result[match].touch(
                values=library.values,
                values_with_category=library.values_with_category,
                enabled=True,
            )
        else:
            logger.debug("merge-add: keeping existing library %r", library.name)
    return result


def _merge_update(existing: list[Library], incoming: Iterable[Library]) -> list[Library]:
    result = list(existing)
    for library in incoming:
        match = _index_of(result, library.key)
        if match is None:
            result.append(library)
            continue
        current = result[match]
        result[match] = current.touch(
            values=current.values + library.values,
            values_with_category=_merge_categories(
                current.values_with_category, library.values_with_category
            ),
            group=library.group,
            source_sheet=library.source_sheet,
            enabled=current.enabled or not current.values,
        )
    return result


def merge_libraries(
    existing: Iterable[Library],
    incoming: Iterable[Library],
    mode: ImportMode | str,
) -> list[Library]:
    """Merge ``incoming`` into ``existing`` under an import mode.

    ``replace`` without sheet context keeps only the incoming set.
    ``merge-add`` skips non-empty matches and backfills empty ones.
    ``merge-update`` concatenates values onto matches (no deduplication).
    An empty placeholder that receives values is enabled by either merge.

    Raises:
        ValueError: If ``mode`` is not an import mode.
    """
    mode = ImportMode(mode)
    existing = list(existing)
    incoming = list(incoming)

    if mode == ImportMode.REPLACE:
        return incoming
    if mode == ImportMode.MERGE_ADD:
        return _merge_add(existing, incoming)
    return _merge_update(existing, incoming)


# ==================== Master sheets ====================


def merge_linked_instructions(
    current: dict[str, str],
    sheets: Iterable[MasterSheet],
) -> dict[str, str]:
    """Key-wise merge: sheets in this operation overwrite their own entries.

    A sheet without an instruction leaves any prior entry in place.
    """
    merged = dict(current)
    for sheet in sheets:
        if sheet.linked_instruction:
            merged[sheet.sheet_name] = sheet.linked_instruction
    return merged


def import_master_sheets(
    config: CombinationConfig,
    sheets: Iterable[MasterSheet],
    mode: ImportMode | str = ImportMode.REPLACE,
    source_url: Optional[str] = None,
) -> CombinationConfig:
    """Import fetched master sheets into a new config snapshot.

    Libraries of the first sheet arrive enabled and the others disabled; the
    first sheet becomes the active one. In ``replace`` mode previously
    imported sheet libraries are discarded and presets are resolved through
    :func:`resolve_replace`.
    """
    mode = ImportMode(mode)
    sheets = list(sheets)
    if not sheets:
        return config

    incoming = [
        _from_sheet(library, sheet) for sheet in sheets for library in sheet.libraries
    ]

    if mode == ImportMode.REPLACE:
        presets = [library for library in config.libraries if library.is_preset]
        libraries = resolve_replace(presets, incoming)
    else:
        libraries = merge_libraries(config.libraries, incoming, mode)

    imported = {sheet.sheet_name for sheet in sheets}
    active = sheets[0].sheet_name
    libraries = [
        library.model_copy(update={"enabled": library.source_sheet == active})
        if library.source_sheet in imported
        else library
        for library in libraries
    ]

    logger.info(
        "Imported %d libraries from %d sheets (%s)", len(incoming), len(sheets), mode.value
    )
    return config.with_libraries(
        libraries,
        active_source_sheet=sheets[0].sheet_name,
        linked_instructions=merge_linked_instructions(config.linked_instructions, sheets),
        source_spreadsheet_url=source_url or config.source_spreadsheet_url,
    )


def sync_libraries(config: CombinationConfig, sheets: Iterable[MasterSheet]) -> CombinationConfig:
    """Refresh values from the remote source, keeping user settings.

    Only ``values`` and ``values_with_category`` of matching libraries are
    overwritten; ``updated_at`` changes only when they differ, so syncing the
    same data twice yields an identical snapshot. Unmatched refreshed
    libraries are appended; unmatched local libraries are left alone.
    """
    sheets = list(sheets)
    refreshed: dict[tuple[str, str], Library] = {}
    for sheet in sheets:
        for library in sheet.libraries:
            library = _from_sheet(library, sheet)
            # Later duplicates of a key replace earlier ones
            refreshed[library.key] = library

    libraries = []
    matched = set()
    for library in config.libraries:
        fresh = refreshed.get(library.key)
        if fresh is None:
            libraries.append(library)
            continue
        matched.add(library.key)
        if (
            library.values == fresh.values
            and library.values_with_category == fresh.values_with_category
        ):
            libraries.append(library)
        else:
            libraries.append(
                library.touch(
                    values=fresh.values,
                    values_with_category=fresh.values_with_category,
                )
            )

    libraries.extend(
        library for key, library in refreshed.items() if key not in matched
    )

    return config.with_libraries(
        libraries,
        linked_instructions=merge_linked_instructions(config.linked_instructions, sheets),
    )
