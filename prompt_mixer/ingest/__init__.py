"""Tabular ingestion for pasted tables, local files and master sheets."""

from prompt_mixer.ingest.tabular import (
    DEFAULT_CATEGORY_SUFFIXES,
    CatalogRow,
    group_name_for_sheet,
    parse_catalog,
    parse_category_cell,
    parse_master_sheet,
    parse_table,
    split_rows,
)

__all__ = [
    "DEFAULT_CATEGORY_SUFFIXES",
    "CatalogRow",
    "group_name_for_sheet",
    "parse_catalog",
    "parse_category_cell",
    "parse_master_sheet",
    "parse_table",
    "split_rows",
]
