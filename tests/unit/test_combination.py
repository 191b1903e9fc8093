"""Tests for the combination engine."""

import random

import pytest

from prompt_mixer.engine import (
    CartesianDraw,
    Combination,
    CombinationEngine,
    CombinationItem,
)
from prompt_mixer.schemas import CombinationConfig, Library


def _library(name, values, **kwargs):
    return Library(name=name, values=values, **kwargs)


class TestRandomMode:
    """Tests for random-mode generation."""

    @pytest.mark.parametrize("count", [1, 4, 25])
    def test_returns_exactly_n(self, count):
        """Test that random mode returns exactly the requested number."""
        config = CombinationConfig(
            libraries=[_library("Scene", ["a", "b"]), _library("Style", ["x"])]
        )
        engine = CombinationEngine(seed=1)
        assert len(engine.preview(config, count)) == count

    def test_contributors_are_enabled_and_non_empty(self):
        """Test that only enabled, non-empty libraries contribute."""
        config = CombinationConfig(
            libraries=[
                _library("Scene", ["a", "b"]),
                _library("Style", ["x"], enabled=False),
                _library("Empty", []),
                _library("Mood", ["calm"], participation_rate=50),
            ]
        )
        engine = CombinationEngine(seed=2)
        for combination in engine.generate_random(config, 200):
            assert set(combination.library_names) <= {"Scene", "Mood"}
            assert "Scene" in combination.library_names

    def test_participation_rate_statistics(self):
        """Test inclusion frequency over 10,000 trials at rate 50."""
        config = CombinationConfig(
            libraries=[
                _library("Half", ["h"], participation_rate=50),
                _library("Always", ["a"], participation_rate=100),
                _library("Never", ["n"], participation_rate=0),
            ]
        )
        engine = CombinationEngine(rng=random.Random(2024))
        combinations = engine.generate_random(config, 10_000)

        half = sum(1 for c in combinations if "Half" in c.library_names)
        assert abs(half / 10_000 - 0.5) < 0.03
        assert all("Always" in c.library_names for c in combinations)
        assert not any("Never" in c.library_names for c in combinations)

    def test_zero_weight_never_drawn(self):
        """Test that a zero-weight value never appears in a combination."""
        config = CombinationConfig(
            libraries=[_library("Scene", ["keep", "drop"], value_weights={"drop": 0})]
        )
        engine = CombinationEngine(seed=3)
        for combination in engine.generate_random(config, 500):
            assert combination.values_by_library() == {"Scene": ["keep"]}

    def test_no_participants_yields_empty_combination(self):
        """Test degenerate generation."""
        config = CombinationConfig(libraries=[_library("Scene", [], enabled=True)])
        combinations = CombinationEngine(seed=4).generate_random(config, 3)
        assert len(combinations) == 3
        assert all(c.is_empty for c in combinations)

    def test_category_link_prevents_mismatch(self, category_config):
        """Test that (Room, Boat) never co-occur when linking is on."""
        engine = CombinationEngine(seed=5)
        for combination in engine.generate_random(category_config, 1000):
            values = combination.values_by_library()
            pair = (values["Scene"][0], values["Vehicle"][0])
            assert pair != ("Room", "Boat")
            if combination.category == "waterside":
                assert pair == ("Beach", "Boat")

    def test_category_link_disabled(self, category_config):
        """Test that mismatched pairs appear when linking is off."""
        config = category_config.model_copy(update={"category_link_enabled": False})
        engine = CombinationEngine(seed=6)
        pairs = set()
        for combination in engine.generate_random(config, 500):
            values = combination.values_by_library()
            pairs.add((values["Scene"][0], values["Vehicle"][0]))
            assert combination.category is None
        assert ("Room", "Boat") in pairs

    def test_disabled_config_previews_nothing(self):
        """Test the master switch."""
        config = CombinationConfig(enabled=False, libraries=[_library("Scene", ["a"])])
        assert CombinationEngine(seed=7).preview(config, 4) == []

    def test_seed_reproducible(self):
        """Test that the same seed gives the same preview."""
        config = CombinationConfig(
            libraries=[_library("Scene", list("abcdef")), _library("Style", list("uvwxyz"))]
        )
        first = [c.render() for c in CombinationEngine(seed=99).preview(config, 5)]
        second = [c.render() for c in CombinationEngine(seed=99).preview(config, 5)]
        assert first == second


class TestUniqueGeneration:
    """Tests for generate_unique."""

    def test_unique_when_possible(self):
        """Test that combinations do not repeat while unique ones remain."""
        config = CombinationConfig(
            libraries=[_library("Scene", ["a", "b", "c"]), _library("Style", ["x", "y"])]
        )
        combinations = CombinationEngine(seed=8).generate_unique(config, 6)
        keys = [c.key() for c in combinations]
        assert len(keys) == 6
        assert len(set(keys)) == 6

    def test_falls_back_to_repeat(self):
        """Test that the batch is still full when uniqueness is impossible."""
        config = CombinationConfig(libraries=[_library("Scene", ["only"])])
        combinations = CombinationEngine(seed=9).generate_unique(config, 3, max_attempts=5)
        assert [c.render() for c in combinations] == ["Scene：only"] * 3


class TestCartesianMode:
    """Tests for cartesian-mode generation."""

    def test_total_is_product_of_pick_counts(self, cartesian_config):
        """Test that A picks 5 and B picks 2 gives 10 combinations."""
        draw = CombinationEngine(seed=10).generate_cartesian(cartesian_config)
        assert draw.total == 10
        assert len(draw.expand()) == 10

    def test_draw_sets_are_distinct(self, cartesian_config):
        """Test that each library's draw set has no repeats."""
        draw = CombinationEngine(seed=11).generate_cartesian(cartesian_config)
        for _, values in draw.draws:
            assert len(values) == len(set(values))

    def test_expand_is_full_product(self, cartesian_config):
        """Test that every pair appears exactly once."""
        draw = CombinationEngine(seed=12).generate_cartesian(cartesian_config)
        keys = {c.key() for c in draw.expand()}
        assert len(keys) == 10

    def test_pick_count_capped_by_values(self):
        """Test that pick count is capped by the available values."""
        config = CombinationConfig(
            combination_mode="cartesian",
            libraries=[_library("A", ["a1", "a2"], pick_mode="random-multiple", pick_count=5)],
        )
        draw = CombinationEngine(seed=13).generate_cartesian(config)
        assert draw.total == 2

    def test_random_one_draws_single_value(self):
        """Test that pick_count is ignored unless random-multiple."""
        config = CombinationConfig(
            combination_mode="cartesian",
            libraries=[_library("A", ["a1", "a2", "a3"], pick_count=3)],
        )
        assert CombinationEngine(seed=14).generate_cartesian(config).total == 1

    def test_preview_returns_one_representative(self, cartesian_config):
        """Test that the cartesian preview is a single combination."""
        preview = CombinationEngine(seed=15).preview(cartesian_config, 4)
        assert len(preview) == 1
        assert preview[0].library_names == ["A", "B"]

    def test_ignores_participation_rate(self, cartesian_config):
        """Test that cartesian eligibility does not roll participation."""
        libraries = [
            library.model_copy(update={"participation_rate": 0})
            for library in cartesian_config.libraries
        ]
        config = cartesian_config.with_libraries(libraries)
        assert CombinationEngine(seed=16).generate_cartesian(config).total == 10

    def test_no_participants(self):
        """Test an empty cartesian draw."""
        draw = CombinationEngine(seed=17).generate_cartesian(
            CombinationConfig(combination_mode="cartesian")
        )
        assert draw.total == 0
        assert draw.expand() == []
        assert draw.representative().is_empty


class TestRendering:
    """Tests for Combination.render."""

    def _combination(self):
        return Combination(
            items=[
                CombinationItem("Scene", "Beach", "#f472b6"),
                CombinationItem("Style", "Ink", "#fb923c"),
            ]
        )

    def test_default_join(self):
        """Test the default "name：value" rendering."""
        assert self._combination().render() == "Scene：Beach，Style：Ink"

    def test_template_substitution(self):
        """Test template placeholders and removal of unused ones."""
        text = self._combination().render("{Scene} in {Style} with {Props}")
        assert text == "Beach in Ink with"

    def test_multiple_values_joined(self):
        """Test that several values of one library are joined."""
        combination = Combination(
            items=[CombinationItem("A", "a1", "#fff"), CombinationItem("A", "a2", "#fff")]
        )
        assert combination.render() == "A：a1、a2"

    def test_empty_renders_empty(self):
        """Test rendering of an empty combination."""
        assert Combination().render() == ""
        assert CartesianDraw().representative().render() == ""
