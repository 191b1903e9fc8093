"""
Reconciliation Engine

Fetches master sheets through a SourceAdapter and merges them into a config
snapshot. The engine owns a single in-flight flag: while one import or sync
is pending, further triggers return a skipped result instead of queueing.

Every run is all-or-nothing. Adapter and parse errors, merge errors, timeouts
and empty results produce a failed result carrying the untouched input snapshot.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from prompt_mixer.reconcile.merge import (
    diff_libraries,
    import_master_sheets,
    sync_libraries,
)
from prompt_mixer.reconcile.sources import SourceAdapter, SourceError
from prompt_mixer.schemas import CombinationConfig, ImportMode, MasterSheet

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class ReconciliationStatus(str, Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class ReconciliationResult:
    """Outcome of one import or sync run."""
    status: ReconciliationStatus
    config: CombinationConfig
    updated: int = 0
    added: int = 0
    message: str = ""

    @property
    def applied(self) -> bool:
        return self.status == ReconciliationStatus.APPLIED

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "updated": self.updated,
            "added": self.added,
            "message": self.message,
        }


class ReconciliationEngine:
    """Serializes imports and syncs against one source adapter."""

    def __init__(self, source: SourceAdapter, timeout: float = DEFAULT_TIMEOUT):
        """Initialize the engine.

        Args:
            source: Adapter producing master sheets.
            timeout: Seconds to wait for the adapter before failing the run.
        """
        self.source = source
        self.timeout = timeout
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def sync(
        self,
        config: CombinationConfig,
        sheet_names: Optional[list[str]] = None,
    ) -> ReconciliationResult:
        """Refresh values of the config's sheets from the source.

        Defaults to the sheets the config already holds, or every sheet the
        source serves when it holds none.
        """
        if sheet_names is None:
            sheet_names = config.source_sheets() or None
        return await self._run(
            config,
            "sync",
            sheet_names,
            lambda sheets: sync_libraries(config, sheets),
        )

    async def import_sheets(
        self,
        config: CombinationConfig,
        sheet_names: Optional[list[str]] = None,
        mode: ImportMode | str = ImportMode.REPLACE,
    ) -> ReconciliationResult:
        """Import sheets from the source under an import mode.

        Raises:
            ValueError: If ``mode`` is not an import mode.
        """
        mode = ImportMode(mode)
        return await self._run(
            config,
            f"import ({mode.value})",
            sheet_names,
            lambda sheets: import_master_sheets(
                config, sheets, mode, source_url=self.source.location
            ),
        )

    async def _run(
        self,
        config: CombinationConfig,
        operation: str,
        sheet_names: Optional[list[str]],
        apply: Callable[[list[MasterSheet]], CombinationConfig],
    ) -> ReconciliationResult:
        if self._in_flight:
            logger.info("Skipping %s: another reconciliation is in flight", operation)
            return ReconciliationResult(
                status=ReconciliationStatus.SKIPPED,
                config=config,
                message="Another reconciliation is already running",
            )

        self._in_flight = True
        try:
            try:
                sheets = await asyncio.wait_for(
                    self.source.fetch_master_sheets(sheet_names), self.timeout
                )
            except asyncio.TimeoutError:
                return self._failed(
                    config, operation, f"source did not respond within {self.timeout}s"
                )
            except (SourceError, OSError, ValueError) as e:
                return self._failed(config, operation, str(e))

            if not sheets:
                return self._failed(config, operation, "source returned no master sheets")

            try:
                new_config = apply(sheets)
            except Exception as e:
                logger.debug("%s merge error", operation.capitalize(), exc_info=True)
                return self._failed(config, operation, f"could not merge fetched sheets: {e}")
        finally:
            self._in_flight = False

        updated, added = diff_libraries(config.libraries, new_config.libraries)
        logger.info(
            "%s applied: %d sheets, %d libraries updated, %d added",
            operation.capitalize(),
            len(sheets),
            updated,
            added,
        )
        return ReconciliationResult(
            status=ReconciliationStatus.APPLIED,
            config=new_config,
            updated=updated,
            added=added,
            message=f"{len(sheets)} sheets: {updated} updated, {added} added",
        )

    @staticmethod
    def _failed(config: CombinationConfig, operation: str, reason: str) -> ReconciliationResult:
        logger.warning("%s failed, collection left unchanged: %s", operation.capitalize(), reason)
        return ReconciliationResult(
            status=ReconciliationStatus.FAILED,
            config=config,
            message=reason,
        )
