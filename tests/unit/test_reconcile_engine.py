"""Tests for the asynchronous reconciliation engine and directory source."""

import asyncio

import pytest

from prompt_mixer.reconcile import (
    DirectorySource,
    ReconciliationEngine,
    ReconciliationStatus,
    SourceAdapter,
    SourceError,
)
from prompt_mixer.schemas import CombinationConfig, Library


class StaticSource(SourceAdapter):
    """Adapter returning fixed sheets, optionally after a delay or an error."""

    def __init__(self, sheets=None, delay=0.0, error=None):
        self.sheets = sheets or []
        self.delay = delay
        self.error = error
        self.calls = 0

    @property
    def location(self):
        return "memory://test"

    async def list_sheets(self):
        return [sheet.sheet_name for sheet in self.sheets]

    async def fetch_master_sheets(self, sheet_names=None):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if sheet_names is None:
            return list(self.sheets)
        return [sheet for sheet in self.sheets if sheet.sheet_name in sheet_names]


@pytest.fixture
def synced_config():
    return CombinationConfig(
        libraries=[
            Library(
                name="Scene",
                values=["Street"],
                source_sheet="Clothing-Master",
                participation_rate=30,
            )
        ]
    )


class TestReconciliationEngine:
    """Tests for ReconciliationEngine."""

    def test_sync_applies(self, clothing_sheet, synced_config):
        """Test a successful sync."""
        engine = ReconciliationEngine(StaticSource([clothing_sheet]))
        result = asyncio.run(engine.sync(synced_config))

        assert result.status == ReconciliationStatus.APPLIED
        assert result.applied
        assert result.updated == 1
        assert result.added == 1
        scene = result.config.find("Clothing-Master", "Scene")
        assert scene.values == ("Street", "Studio")
        assert scene.participation_rate == 30
        assert not engine.in_flight

    def test_import_remembers_source(self, clothing_sheet):
        """Test that sheet import records the source location."""
        engine = ReconciliationEngine(StaticSource([clothing_sheet]))
        result = asyncio.run(engine.import_sheets(CombinationConfig(), mode="replace"))

        assert result.applied
        assert result.config.source_spreadsheet_url == "memory://test"
        assert result.config.active_source_sheet == "Clothing-Master"
        assert result.added == 2

    def test_source_error_leaves_config_unchanged(self, synced_config):
        """Test that adapter failures return the input snapshot."""
        engine = ReconciliationEngine(StaticSource(error=SourceError("unreachable")))
        result = asyncio.run(engine.sync(synced_config))

        assert result.status == ReconciliationStatus.FAILED
        assert result.config is synced_config
        assert "unreachable" in result.message
        assert not engine.in_flight

    def test_empty_result_is_failure(self, synced_config):
        """Test that an empty fetch is reported as a failure."""
        engine = ReconciliationEngine(StaticSource([]))
        result = asyncio.run(engine.sync(synced_config))

        assert result.status == ReconciliationStatus.FAILED
        assert result.config is synced_config

    def test_merge_error_is_failure(self, synced_config):
        """Test that an exception while merging returns the input snapshot."""
        engine = ReconciliationEngine(StaticSource(["not a sheet"]))
        result = asyncio.run(engine.sync(synced_config))

        assert result.status == ReconciliationStatus.FAILED
        assert result.config is synced_config
        assert not engine.in_flight

    def test_timeout_is_failure(self, clothing_sheet, synced_config):
        """Test that a slow source fails after the timeout."""
        engine = ReconciliationEngine(StaticSource([clothing_sheet], delay=1.0), timeout=0.05)
        result = asyncio.run(engine.sync(synced_config))

        assert result.status == ReconciliationStatus.FAILED
        assert result.config is synced_config
        assert not engine.in_flight

    def test_second_trigger_is_skipped(self, clothing_sheet, synced_config):
        """Test that a trigger during an in-flight run is dropped."""
        source = StaticSource([clothing_sheet], delay=0.05)
        engine = ReconciliationEngine(source)

        async def run_both():
            return await asyncio.gather(engine.sync(synced_config), engine.sync(synced_config))

        first, second = asyncio.run(run_both())

        assert first.status == ReconciliationStatus.APPLIED
        assert second.status == ReconciliationStatus.SKIPPED
        assert second.config is synced_config
        assert source.calls == 1
        assert not engine.in_flight

    def test_invalid_mode(self, clothing_sheet):
        """Test that an unknown import mode raises before fetching."""
        source = StaticSource([clothing_sheet])
        engine = ReconciliationEngine(source)
        with pytest.raises(ValueError):
            asyncio.run(engine.import_sheets(CombinationConfig(), mode="overwrite"))
        assert source.calls == 0

    def test_result_to_dict(self, clothing_sheet, synced_config):
        """Test result serialization."""
        engine = ReconciliationEngine(StaticSource([clothing_sheet]))
        result = asyncio.run(engine.sync(synced_config))
        assert result.to_dict()["status"] == "applied"


class TestDirectorySource:
    """Tests for DirectorySource."""

    def test_list_sheets_in_catalog_order(self, sheet_dir):
        """Test that the catalog fixes the sheet order."""
        source = DirectorySource(sheet_dir)
        assert asyncio.run(source.list_sheets()) == ["Food-Master", "Clothing-Master"]

    def test_fetch_all(self, sheet_dir):
        """Test fetching every sheet with linked instructions."""
        sheets = asyncio.run(DirectorySource(sheet_dir).fetch_master_sheets())

        assert [sheet.sheet_name for sheet in sheets] == ["Food-Master", "Clothing-Master"]
        food = sheets[0]
        assert food.group_name == "Food"
        assert food.linked_instruction == "Make it appetizing"
        dish, plating = food.libraries
        assert dish.values == ("Ramen", "Salad")
        assert plating.values == ("Bowl",)
        assert dish.source_sheet == "Food-Master"

    def test_fetch_selected(self, sheet_dir):
        """Test fetching a subset of sheets."""
        sheets = asyncio.run(DirectorySource(sheet_dir).fetch_master_sheets(["Clothing-Master"]))
        assert [sheet.sheet_name for sheet in sheets] == ["Clothing-Master"]

    def test_missing_sheet(self, sheet_dir):
        """Test that requesting an unknown sheet raises SourceError."""
        with pytest.raises(SourceError):
            asyncio.run(DirectorySource(sheet_dir).fetch_master_sheets(["Nope"]))

    def test_undecodable_sheet(self, sheet_dir):
        """Test that a sheet with invalid UTF-8 raises SourceError."""
        (sheet_dir / "Clothing-Master.tsv").write_bytes(b"Scene\n\xff\xfeBeach\n")
        with pytest.raises(SourceError):
            asyncio.run(DirectorySource(sheet_dir).fetch_master_sheets(["Clothing-Master"]))

    def test_undecodable_sheet_fails_sync(self, sheet_dir):
        """Test that a parse failure during sync keeps the collection unchanged."""
        engine = ReconciliationEngine(DirectorySource(sheet_dir))
        imported = asyncio.run(engine.import_sheets(CombinationConfig())).config
        (sheet_dir / "Clothing-Master.tsv").write_bytes(b"Scene\n\xff\xfeBeach\n")

        result = asyncio.run(engine.sync(imported))

        assert result.status == ReconciliationStatus.FAILED
        assert result.config is imported
        assert "Clothing-Master" in result.message
        assert not engine.in_flight

    def test_missing_directory(self, temp_dir):
        """Test that a missing directory raises SourceError."""
        with pytest.raises(SourceError):
            asyncio.run(DirectorySource(temp_dir / "absent").list_sheets())

    def test_engine_with_directory_source(self, sheet_dir):
        """Test an end-to-end import from a directory."""
        engine = ReconciliationEngine(DirectorySource(sheet_dir))
        result = asyncio.run(engine.import_sheets(CombinationConfig(), ["Clothing-Master"]))

        assert result.applied
        assert result.config.linked_instruction_for() == "Describe the outfit in detail"
        assert result.config.source_spreadsheet_url == str(sheet_dir.resolve())
