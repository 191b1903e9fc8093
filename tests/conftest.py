"""Pytest configuration and fixtures."""

import logging
import random
import tempfile
from pathlib import Path

import pytest

from prompt_mixer.schemas import (
    CombinationConfig,
    Library,
    MasterSheet,
    PickMode,
)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def isolated_home(temp_dir, monkeypatch):
    """Point the storage home at a temporary directory."""
    home = temp_dir / "home"
    monkeypatch.setenv("PROMPT_MIXER_HOME", str(home))
    monkeypatch.chdir(temp_dir)
    return home


@pytest.fixture
def rng():
    """Seeded random source for reproducible draws."""
    return random.Random(1234)


@pytest.fixture
def scene_library():
    """Scene library with category data."""
    return Library(
        name="Scene",
        values=["Room", "Beach"],
        values_with_category={"Room": ["indoor"], "Beach": ["waterside"]},
    )


@pytest.fixture
def vehicle_library():
    """Vehicle library with category data."""
    return Library(
        name="Vehicle",
        values=["Bike", "Boat"],
        values_with_category={"Bike": ["indoor", "outdoor"], "Boat": ["waterside"]},
    )


@pytest.fixture
def category_config(scene_library, vehicle_library):
    """Config with two category-linked libraries."""
    return CombinationConfig(libraries=[scene_library, vehicle_library])


@pytest.fixture
def cartesian_config():
    """Cartesian config: A picks 5 of 6, B picks 2 of 3."""
    return CombinationConfig(
        combination_mode="cartesian",
        libraries=[
            Library(
                name="A",
                values=["a1", "a2", "a3", "a4", "a5", "a6"],
                pick_mode=PickMode.RANDOM_MULTIPLE,
                pick_count=5,
            ),
            Library(
                name="B",
                values=["b1", "b2", "b3"],
                pick_mode=PickMode.RANDOM_MULTIPLE,
                pick_count=2,
            ),
        ],
    )


@pytest.fixture
def clothing_sheet():
    """Master sheet as produced by a source adapter."""
    return MasterSheet(
        sheet_name="Clothing-Master",
        group_name="Clothing",
        libraries=[
            Library(name="Scene", values=["Street", "Studio"]),
            Library(name="Outfit", values=["Coat", "Dress"]),
        ],
        linked_instruction="Describe the outfit in detail",
    )


@pytest.fixture
def sheet_dir(temp_dir):
    """Directory source with two sheets and a catalog."""
    root = temp_dir / "sheets"
    root.mkdir()
    (root / "Clothing-Master.tsv").write_text(
        "Scene\tOutfit\nStreet\tCoat\nStudio\tDress\n", encoding="utf-8"
    )
    (root / "Food-Master.tsv").write_text(
        "Dish\tPlating\nRamen\tBowl\nSalad\n", encoding="utf-8"
    )
    (root / "catalog.tsv").write_text(
        "Sheet\tInstruction\nFood-Master\tMake it appetizing\n"
        "Clothing-Master\tDescribe the outfit in detail\n",
        encoding="utf-8",
    )
    return root


@pytest.fixture(autouse=True)
def cleanup_loggers():
    """Remove handlers added by setup_logging so tests do not share files."""
    yield
    for name in ["prompt_mixer", "test_logger"]:
        logger = logging.getLogger(name)
        for handler in logger.handlers[:]:
            handler.close()
            logger.removeHandler(handler)
