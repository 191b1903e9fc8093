"""
Source adapters for reconciliation.

The reconciliation engine only sees the SourceAdapter interface: an async
fetch returning MasterSheet blocks. DirectorySource serves master sheets from
a local directory holding one delimited file per sheet.
"""

import asyncio
import csv
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, Optional

from prompt_mixer.ingest import (
    DEFAULT_CATEGORY_SUFFIXES,
    parse_catalog,
    parse_master_sheet,
)
from prompt_mixer.schemas import MasterSheet

logger = logging.getLogger(__name__)

SHEET_FILE_EXTENSIONS = (".tsv", ".csv", ".txt")

# Stem of the catalog file listing sheets and linked instructions
CATALOG_STEM = "catalog"


class SourceError(Exception):
    """Raised when a source cannot produce master sheets."""
    pass


class SourceAdapter(ABC):
    """Base class for anything that can fetch master sheets."""

    @property
    @abstractmethod
    def location(self) -> str:
        """Identifier remembered as the config's source for later syncs."""
        ...

    @abstractmethod
    async def list_sheets(self) -> list[str]:
        """Names of the sheets this source can serve."""
        ...

    @abstractmethod
    async def fetch_master_sheets(
        self, sheet_names: Optional[list[str]] = None
    ) -> list[MasterSheet]:
        """Fetch and parse master sheets.

        Args:
            sheet_names: Sheets to fetch, or None for every sheet.

        Raises:
            SourceError: If the source is unreachable or a sheet is missing.
        """
        ...


class DirectorySource(SourceAdapter):
    """Master sheets read from ``<path>/<sheet name>.tsv|.csv|.txt``.

    An optional ``catalog.*`` file lists sheet names with their linked
    instructions and fixes the sheet order.
    """

    def __init__(
        self,
        path: Path | str,
        suffixes: Iterable[str] = DEFAULT_CATEGORY_SUFFIXES,
        header_categories: bool = True,
    ):
        self.path = Path(path)
        self.suffixes = tuple(suffixes)
        self.header_categories = header_categories

    @property
    def location(self) -> str:
        return str(self.path.resolve())

    def _sheet_files(self) -> dict[str, Path]:
        if not self.path.is_dir():
            raise SourceError(f"Source directory not found: {self.path}")
        return {
            file.stem: file
            for file in sorted(self.path.iterdir())
            if file.is_file()
            and file.suffix.lower() in SHEET_FILE_EXTENSIONS
            and file.stem.lower() != CATALOG_STEM
        }

    def _catalog(self) -> dict[str, Optional[str]]:
        for extension in SHEET_FILE_EXTENSIONS:
            catalog_file = self.path / f"{CATALOG_STEM}{extension}"
            if catalog_file.is_file():
                try:
                    rows = parse_catalog(self._read_text(catalog_file))
                except csv.Error as e:
                    raise SourceError(f"Error parsing {catalog_file}: {e}") from e
                return {row.sheet_name: row.linked_instruction for row in rows}
        return {}

    @staticmethod
    def _read_text(file: Path) -> str:
        try:
            return file.read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as e:
            raise SourceError(f"Error reading {file}: {e}") from e

    def _sheet_order(self) -> list[str]:
        files = self._sheet_files()
        catalog = self._catalog()
        ordered = [name for name in catalog if name in files]
        ordered.extend(name for name in files if name not in catalog)
        return ordered

    def _fetch(self, sheet_names: Optional[list[str]]) -> list[MasterSheet]:
        files = self._sheet_files()
        catalog = self._catalog()
        names = sheet_names if sheet_names is not None else self._sheet_order()

        missing = [name for name in names if name not in files]
        if missing:
            raise SourceError(f"Sheets not found in {self.path}: {', '.join(missing)}")

        sheets = []
        for name in names:
            try:
                sheet = parse_master_sheet(
                    name,
                    self._read_text(files[name]),
                    linked_instruction=catalog.get(name),
                    suffixes=self.suffixes,
                    header_categories=self.header_categories,
                )
            except csv.Error as e:
                raise SourceError(f"Error parsing sheet {name!r}: {e}") from e
            if sheet is None:
                logger.warning("Sheet %r has no library columns, skipping", name)
                continue
            sheets.append(sheet)
        return sheets

    async def list_sheets(self) -> list[str]:
        return await asyncio.to_thread(self._sheet_order)

    async def fetch_master_sheets(
        self, sheet_names: Optional[list[str]] = None
    ) -> list[MasterSheet]:
        return await asyncio.to_thread(self._fetch, sheet_names)
