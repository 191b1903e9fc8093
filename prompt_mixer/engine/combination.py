"""
Combination Engine

Generates combinations from a CombinationConfig snapshot:

- random mode: N independent combinations. Each one re-runs the
  participation trials, the shared category draw and one weighted draw
  per participating library.
- cartesian mode: every enabled, non-empty library draws its pick count of
  distinct values once. The product of those draw sets is the full batch;
  the preview shows one representative combination of it.

Generation never raises and never mutates the config.
"""

import itertools
import random
import re
from dataclasses import dataclass, field
from typing import Any, Optional

from prompt_mixer.engine.category import CategoryLinker
from prompt_mixer.engine.sampler import WeightedSampler, build_pool
from prompt_mixer.schemas import CombinationConfig, CombinationMode, Library

# Default rendering: "Scene：Beach，Style：Ink"
NAME_VALUE_SEPARATOR = "："
ITEM_SEPARATOR = "，"
VALUE_SEPARATOR = "、"

PLACEHOLDER_PATTERN = re.compile(r"\{[^{}]+\}")


# ==================== Results ====================


@dataclass(frozen=True)
class CombinationItem:
    library_name: str
    value: str
    color: str


@dataclass
class Combination:
    """An ordered set of (library, value, color) items."""
    items: list[CombinationItem] = field(default_factory=list)
    category: Optional[str] = None

    def __len__(self) -> int:
        return len(self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def library_names(self) -> list[str]:
        return list(self.values_by_library())

    def values_by_library(self) -> dict[str, list[str]]:
        grouped: dict[str, list[str]] = {}
        for item in self.items:
            grouped.setdefault(item.library_name, []).append(item.value)
        return grouped

    def key(self) -> tuple[tuple[str, str], ...]:
        """Identity used to detect repeated combinations."""
        return tuple((item.library_name, item.value) for item in self.items)

    def render(self, template: Optional[str] = None) -> str:
        """Render as text.

        Without a template items are joined as "name：value". A template
        substitutes "{Library name}" placeholders; placeholders of libraries
        absent from this combination are removed.
        """
        grouped = self.values_by_library()
        if not template or not template.strip():
            return ITEM_SEPARATOR.join(
                f"{name}{NAME_VALUE_SEPARATOR}{VALUE_SEPARATOR.join(values)}"
                for name, values in grouped.items()
            )

        text = template
        for name, values in grouped.items():
            text = text.replace("{" + name + "}", VALUE_SEPARATOR.join(values))
        return PLACEHOLDER_PATTERN.sub("", text).strip()

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "items": [
                {"library": item.library_name, "value": item.value, "color": item.color}
                for item in self.items
            ],
        }


@dataclass
class CartesianDraw:
    """Per-library draw sets of a cartesian run."""
    draws: list[tuple[Library, list[str]]] = field(default_factory=list)
    category: Optional[str] = None

    @property
    def total(self) -> int:
        """Size of the full product (0 when no library participates)."""
        if not self.draws:
            return 0
        total = 1
        for _, values in self.draws:
            total *= len(values)
        return total

    def _combination(self, values: tuple[str, ...]) -> Combination:
        items = [
            CombinationItem(library.name, value, library.color)
            for (library, _), value in zip(self.draws, values)
        ]
        return Combination(items=items, category=self.category)

    def representative(self) -> Combination:
        """First tuple of the product, used for previews."""
        return self._combination(tuple(values[0] for _, values in self.draws))

    def expand(self) -> list[Combination]:
        """Every combination of the product, in library order."""
        if not self.draws:
            return []
        return [
            self._combination(values)
            for values in itertools.product(*(values for _, values in self.draws))
        ]


# ==================== Engine ====================


class CombinationEngine:
    """Stateless apart from its random source."""

    def __init__(self, rng: Optional[random.Random] = None, seed: Optional[int] = None):
        """Initialize the engine.

        Args:
            rng: Random source shared by sampler and linker.
            seed: Seed for a fresh random source when ``rng`` is not given.
        """
        self.rng = rng if rng is not None else random.Random(seed)
        self.sampler = WeightedSampler(self.rng)
        self.linker = CategoryLinker(self.rng)

    def participates(self, library: Library) -> bool:
        """Participation trial for one random-mode combination."""
        if not library.enabled or not library.values:
            return False
        rate = library.participation_rate
        if rate >= 100:
            return True
        if rate <= 0:
            return False
        return self.rng.random() * 100 < rate

    def link_category(self, config: CombinationConfig) -> Optional[str]:
        if not config.category_link_enabled:
            return None
        if not self.linker.has_category_link_data(config.libraries):
            return None
        return self.linker.choose_category(config.libraries)

    def _draw(self, library: Library, category: Optional[str], count: int) -> list[str]:
        values = self.linker.filter_by_category(library, category)
        return self.sampler.sample(build_pool(library, values), count)

    def generate_one(self, config: CombinationConfig) -> Combination:
        participants = [library for library in config.libraries if self.participates(library)]
        if not participants:
            return Combination()

        category = self.link_category(config)
        items = []
        for library in participants:
            picked = self._draw(library, category, 1)
            if picked and picked[0]:
                items.append(CombinationItem(library.name, picked[0], library.color))
        return Combination(items=items, category=category)

    def generate_random(self, config: CombinationConfig, count: int) -> list[Combination]:
        """Exactly ``count`` independent combinations (some may be empty)."""
        return [self.generate_one(config) for _ in range(max(0, count))]

    def generate_unique(
        self,
        config: CombinationConfig,
        count: int,
        max_attempts: int = 100,
    ) -> list[Combination]:
        """Like :meth:`generate_random`, retrying to avoid repeats.

        When ``max_attempts`` draws in a row all repeat earlier ones, the last
        draw is kept anyway so the batch still has ``count`` entries.
        """
        seen: set[tuple[tuple[str, str], ...]] = set()
        results = []
        for _ in range(max(0, count)):
            combination = Combination()
            for _ in range(max(1, max_attempts)):
                combination = self.generate_one(config)
                if not combination.is_empty and combination.key() not in seen:
                    break
            seen.add(combination.key())
            results.append(combination)
        return results

    def generate_cartesian(self, config: CombinationConfig) -> CartesianDraw:
        """Draw each enabled, non-empty library's pick count of values."""
        participants = [
            library for library in config.libraries if library.enabled and library.values
        ]
        if not participants:
            return CartesianDraw()

        category = self.link_category(config)
        draws = []
        for library in participants:
            picked = self._draw(library, category, library.effective_pick_count)
            if picked:
                draws.append((library, picked))
        return CartesianDraw(draws=draws, category=category)

    def preview(self, config: CombinationConfig, innovation_count: int) -> list[Combination]:
        """Preview for the current mode; a disabled config yields nothing."""
        if not config.enabled:
            return []
        if config.combination_mode == CombinationMode.CARTESIAN:
            return [self.generate_cartesian(config).representative()]
        return self.generate_random(config, innovation_count)
