"""Tests for the library store and config import/export."""

import json

import pytest

from prompt_mixer.core.store import (
    ConfigImportError,
    LibraryStore,
    StoreError,
    export_config,
    import_config,
    parse_config,
)
from prompt_mixer.schemas import CombinationConfig, Library


@pytest.fixture
def config():
    return CombinationConfig(
        libraries=[
            Library(name="Scene", values=["a", "b"], participation_rate=40),
            Library(name="Style", values=["Ink"]),
        ],
        insert_template="{Scene} / {Style}",
    )


class TestExportImport:
    """Tests for serialized config export and import."""

    def test_export_envelope(self, config):
        """Test the versioned envelope."""
        payload = json.loads(export_config(config))
        assert payload["version"] == 1
        assert "exportedAt" in payload
        assert payload["data"]["libraries"][0]["participationRate"] == 40
        assert payload["data"]["insertTemplate"] == "{Scene} / {Style}"

    def test_parse_envelope_and_bare(self, config):
        """Test that both the envelope and a bare config are accepted."""
        envelope = export_config(config)
        bare = json.dumps(json.loads(envelope)["data"])
        assert parse_config(envelope) == config
        assert parse_config(bare) == config

    @pytest.mark.parametrize(
        "text",
        ["not json", "[1, 2]", '{"data": {"enabled": true}}', '{"libraries": [{"values": []}]}'],
    )
    def test_malformed_input(self, text):
        """Test that malformed input raises ConfigImportError."""
        with pytest.raises(ConfigImportError):
            parse_config(text)

    def test_replace(self, config):
        """Test that replace takes the imported config wholesale."""
        current = CombinationConfig(libraries=[Library(name="Old", values=["x"])])
        assert import_config(export_config(config), current, "replace") == config

    def test_merge_update(self, config):
        """Test merge-update through the serialized form."""
        current = CombinationConfig(libraries=[Library(name="Scene", values=["z"])])
        result = import_config(export_config(config), current, "merge-update")
        assert result.find(None, "Scene").values == ("z", "a", "b")
        assert result.find(None, "Style") is not None
        assert result.insert_template == ""

    def test_unsupported_mode(self, config):
        """Test that an unknown mode raises ConfigImportError."""
        with pytest.raises(ConfigImportError):
            import_config(export_config(config), CombinationConfig(), "overwrite")

    def test_failure_leaves_current_untouched(self, config):
        """Test that a failed import does not modify the current snapshot."""
        snapshot = config.model_copy()
        with pytest.raises(ConfigImportError):
            import_config("{broken", config, "merge-add")
        assert config == snapshot


class TestLibraryStore:
    """Tests for LibraryStore."""

    def test_load_missing_returns_empty(self, temp_dir):
        """Test that a missing file loads as an empty config."""
        store = LibraryStore(temp_dir / "libraries.json")
        assert not store.exists
        assert store.load() == CombinationConfig()

    def test_init_seeds_presets(self, temp_dir):
        """Test that init writes the preset libraries."""
        store = LibraryStore(temp_dir / "libraries.json")
        config = store.init()
        assert store.exists
        assert len(config.libraries) == 14
        assert store.load() == config

    def test_init_without_presets(self, temp_dir):
        """Test init with an empty collection."""
        config = LibraryStore(temp_dir / "libraries.json").init(with_presets=False)
        assert config.libraries == ()

    def test_double_init_without_force_fails(self, temp_dir):
        """Test that re-init without force raises StoreError."""
        store = LibraryStore(temp_dir / "libraries.json")
        store.init()
        with pytest.raises(StoreError):
            store.init()
        store.init(force=True)

    def test_save_and_load(self, temp_dir, config):
        """Test round trip through the file."""
        store = LibraryStore(temp_dir / "nested" / "libraries.json")
        store.save(config)
        assert store.load() == config
        assert not list(store.path.parent.glob("*.tmp"))

    def test_corrupt_file(self, temp_dir):
        """Test that a corrupt file raises StoreError."""
        path = temp_dir / "libraries.json"
        path.write_text("{nope", encoding="utf-8")
        with pytest.raises(StoreError):
            LibraryStore(path).load()

    def test_apply_skips_identical(self, temp_dir, config):
        """Test that apply only writes on change."""
        store = LibraryStore(temp_dir / "libraries.json")
        assert store.apply(config)
        assert not store.apply(config, config)
        changed = config.model_copy(update={"enabled": False})
        assert store.apply(changed, config)
        assert not store.load().enabled
