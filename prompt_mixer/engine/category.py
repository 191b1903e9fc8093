"""Category linking: one shared category constrains every library's draw."""

import random
from typing import Iterable, Optional

from prompt_mixer.schemas import Library


class CategoryLinker:
    """Chooses a shared category and filters library values by it.

    A value without categories (or only the universal label) matches any
    category. Filtering never leaves a library empty: when nothing matches,
    the full value list is returned.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng if rng is not None else random.Random()

    @staticmethod
    def has_category_link_data(libraries: Iterable[Library]) -> bool:
        return any(library.has_category_data for library in libraries)

    @staticmethod
    def categories(libraries: Iterable[Library]) -> list[str]:
        """Sorted union of the labels on current values of enabled libraries.

        Mapping entries for values no longer in ``values`` are ignored.
        """
        labels: set[str] = set()
        for library in libraries:
            if library.enabled and library.has_category_data:
                for value in set(library.values):
                    labels.update(library.categories_of(value))
        return sorted(labels)

    def choose_category(self, libraries: Iterable[Library]) -> Optional[str]:
        """Uniform draw over :meth:`categories`; None when there are none."""
        labels = self.categories(libraries)
        if not labels:
            return None
        return self.rng.choice(labels)

    @staticmethod
    def filter_by_category(
        library: Library,
        category: Optional[str],
        values: Optional[Iterable[str]] = None,
    ) -> list[str]:
        values = list(library.values if values is None else values)
        if category is None:
            return values
        matches = []
        for value in values:
            labels = library.categories_of(value)
            if not labels or category in labels:
                matches.append(value)
        return matches or values
