"""
Tabular ingestion - turns pasted or fetched table text into libraries.

Layout:
    Row 1      header, one library name per column
    Row 2..n   one value per library per row

Ragged rows are padded or truncated to the header width, never rejected.

Category-linked tables pair a value column with a column named
"<library name><suffix>" (suffix "分类" or "category" by default) holding
comma-separated category labels. A value header of the form
"<category>-<library name>" gives its values a default category.
"""

import csv
import io
import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from prompt_mixer.schemas import (
    DEFAULT_GROUP,
    Library,
    MasterSheet,
    color_for_index,
    normalize_categories,
)

logger = logging.getLogger(__name__)


DEFAULT_CATEGORY_SUFFIXES = ("分类", "category")

# Category cells separate labels with ASCII or full-width commas
CATEGORY_SEPARATOR = re.compile(r"[,，]")

# "<category>-<library>" value headers
HEADER_CATEGORY_PATTERN = re.compile(r"^(.+)-(.+)$")

# Master-sheet name suffixes stripped to obtain the group name
SHEET_GROUP_SUFFIXES = [
    re.compile(r"-?随机总库$"),
    re.compile(r"-?总库$"),
    re.compile(r"-?master$", re.IGNORECASE),
]

# Header keywords of the catalog (index) sheet
CATALOG_NAME_KEYWORDS = ["分页名", "分页名称", "随机库", "库名", "总库名", "sheet", "library"]
CATALOG_INSTRUCTION_KEYWORDS = ["创新指令", "基础指令", "配套指令", "指令", "instruction", "prompt"]

# Longer catalog names are assumed to be stray instruction text
MAX_SHEET_NAME_LENGTH = 50


@dataclass
class _ValueColumn:
    """A value column and the columns that annotate it."""
    name: str
    value_index: int
    category_index: Optional[int] = None
    default_category: Optional[str] = None


@dataclass
class CatalogRow:
    """One entry of the catalog sheet: a sheet name and its instruction."""
    sheet_name: str
    linked_instruction: Optional[str] = None


# ==================== Row handling ====================


def detect_delimiter(header_line: str) -> str:
    """Tab-separated when the header has a tab, comma-separated otherwise."""
    return "\t" if "\t" in header_line else ","


def split_rows(text: str) -> list[list[str]]:
    """Split table text into rows of trimmed cells, dropping blank rows."""
    lines = [line for line in text.splitlines() if line.strip()]
    if not lines:
        return []

    delimiter = detect_delimiter(lines[0])
    reader = csv.reader(io.StringIO("\n".join(lines)), delimiter=delimiter)
    rows = []
    for row in reader:
        cells = [cell.strip() for cell in row]
        if any(cells):
            rows.append(cells)
    return rows


def fit_row(row: list[str], width: int) -> list[str]:
    """Pad with empty cells or truncate so the row matches the header."""
    if len(row) >= width:
        return row[:width]
    return row + [""] * (width - len(row))


def parse_category_cell(cell: str) -> frozenset[str]:
    """Parse a category cell once into a normalized label set."""
    if not cell:
        return frozenset()
    return normalize_categories(CATEGORY_SEPARATOR.split(cell))


# ==================== Header handling ====================


def category_column_base(header: str, suffixes: Iterable[str]) -> Optional[str]:
    """Return the value header a category header annotates, if it is one."""
    lowered = header.lower()
    for suffix in suffixes:
        if lowered.endswith(suffix.lower()):
            base = header[: len(header) - len(suffix)].rstrip(" _-")
            if base:
                return base
    return None


def identify_columns(
    headers: list[str],
    suffixes: Iterable[str] = DEFAULT_CATEGORY_SUFFIXES,
    header_categories: bool = True,
) -> list[_ValueColumn]:
    """Classify header cells into value columns paired with category columns.

    A header counts as a category column only when its base names another
    header; "Subcategory" alone is an ordinary library column.
    """
    suffixes = list(suffixes)
    present = {header for header in headers if header}
    category_columns: dict[str, int] = {}
    value_headers: list[tuple[int, str]] = []

    for index, header in enumerate(headers):
        if not header:
            continue
        base = category_column_base(header, suffixes)
        if base is not None and base != header and base in present:
            category_columns.setdefault(base, index)
        else:
            value_headers.append((index, header))

    columns = []
    for index, header in value_headers:
        name = header
        default_category = None
        if header_categories:
            match = HEADER_CATEGORY_PATTERN.match(header)
            if match:
                default_category = match.group(1).strip()
                name = match.group(2).strip()
        columns.append(
            _ValueColumn(
                name=name,
                value_index=index,
                category_index=category_columns.get(header),
                default_category=default_category,
            )
        )
    return columns


# ==================== Table parsing ====================


def parse_table(
    text: str,
    source_label: Optional[str] = None,
    group: Optional[str] = None,
    suffixes: Iterable[str] = DEFAULT_CATEGORY_SUFFIXES,
    header_categories: bool = True,
    keep_empty: bool = False,
) -> list[Library]:
    """Parse a header + rows table into libraries.

    Args:
        text: Tab- or comma-separated table text.
        source_label: Source sheet recorded on every library.
        group: Display group recorded on every library.
        suffixes: Header suffixes marking category columns.
        header_categories: Read "<category>-<name>" headers.
        keep_empty: Keep libraries whose column has no values.

    Returns:
        Libraries in header order. Columns sharing a library name are merged.
    """
    rows = split_rows(text)
    if not rows:
        return []

    headers = rows[0]
    columns = identify_columns(headers, suffixes, header_categories)
    if not columns:
        return []

    values: dict[str, list[str]] = {}
    categories: dict[str, dict[str, frozenset[str]]] = {}
    for column in columns:
        values.setdefault(column.name, [])
        categories.setdefault(column.name, {})

    width = len(headers)
    for raw_row in rows[1:]:
        row = fit_row(raw_row, width)
        for column in columns:
            value = row[column.value_index]
            if not value:
                continue
            values[column.name].append(value)

            labels = frozenset()
            if column.category_index is not None:
                labels = parse_category_cell(row[column.category_index])
            if not labels and column.default_category:
                labels = normalize_categories([column.default_category])
            # Duplicate value text keeps its first category set.
            categories[column.name].setdefault(value, labels)

    libraries = []
    for name, library_values in values.items():
        if not library_values and not keep_empty:
            continue
        mapping = categories[name]
        has_categories = any(mapping.values())
        libraries.append(
            Library(
                name=name,
                values=library_values,
                values_with_category=mapping if has_categories else None,
                color=color_for_index(len(libraries)),
                source_sheet=source_label,
                group=group,
            )
        )

    logger.debug(
        "Parsed %d libraries from %d data rows (source=%s)",
        len(libraries),
        len(rows) - 1,
        source_label,
    )
    return libraries


def group_name_for_sheet(sheet_name: str) -> str:
    """Derive the display group from a master-sheet name.

    "Clothing-Master" -> "Clothing"; a bare "Master" -> "default".
    """
    group = sheet_name.strip()
    for pattern in SHEET_GROUP_SUFFIXES:
        group = pattern.sub("", group).strip()
    return group or DEFAULT_GROUP


def parse_master_sheet(
    sheet_name: str,
    text: str,
    linked_instruction: Optional[str] = None,
    suffixes: Iterable[str] = DEFAULT_CATEGORY_SUFFIXES,
    header_categories: bool = True,
) -> Optional[MasterSheet]:
    """Parse a fetched master sheet. Returns None when it holds no columns."""
    group = group_name_for_sheet(sheet_name)
    libraries = parse_table(
        text,
        source_label=sheet_name,
        group=group,
        suffixes=suffixes,
        header_categories=header_categories,
        keep_empty=True,
    )
    if not libraries:
        return None
    return MasterSheet(
        sheet_name=sheet_name,
        group_name=group,
        libraries=libraries,
        linked_instruction=linked_instruction or None,
    )


# ==================== Catalog sheet ====================


def _find_column(headers: list[str], keywords: list[str], skip: int = -1) -> int:
    for index, header in enumerate(headers):
        if index == skip:
            continue
        lowered = header.lower()
        if any(keyword.lower() in lowered for keyword in keywords):
            return index
    return -1


def is_valid_sheet_name(name: str) -> bool:
    """Reject blanks and text that looks like an instruction."""
    name = name.strip()
    if not name or len(name) > MAX_SHEET_NAME_LENGTH:
        return False
    return name.count("。") < 2


def parse_catalog(text: str) -> list[CatalogRow]:
    """Parse the catalog sheet listing sheet names and linked instructions.

    The instruction column is detected first so that a header such as
    "sheet instruction" is not mistaken for the name column. Without a
    recognizable header, column A holds names and column B instructions.
    """
    rows = split_rows(text)
    if not rows:
        return []

    headers = rows[0]
    instruction_col = _find_column(headers, CATALOG_INSTRUCTION_KEYWORDS)
    name_col = _find_column(headers, CATALOG_NAME_KEYWORDS, skip=instruction_col)
    has_header = instruction_col != -1 or name_col != -1

    if name_col == -1:
        name_col = 0
    if instruction_col == -1:
        instruction_col = 1
    if name_col == instruction_col:
        instruction_col = 1 if name_col == 0 else 0

    results = []
    for row in rows[1 if has_header else 0:]:
        row = fit_row(row, max(name_col, instruction_col) + 1)
        sheet_name = row[name_col]
        if not is_valid_sheet_name(sheet_name):
            logger.debug("Skipping catalog entry %r", sheet_name[:50])
            continue
        results.append(CatalogRow(sheet_name=sheet_name, linked_instruction=row[instruction_col] or None))
    return results
