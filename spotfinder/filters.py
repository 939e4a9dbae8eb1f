import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional

from .errors import UnknownCategoryClass
from .geo import distance_meters
from .models import SearchArea, SearchFilters, Venue

logger = logging.getLogger(__name__)


# --- Module-level constants ---
MAX_RESULTS = 50

# Alcohol heuristic tiers
ALCOHOL_SERVING_CATEGORIES = frozenset({'bar', 'pub', 'nightclub', 'biergarten', 'casino'})
ALCOHOL_PLAUSIBLE_CATEGORIES = frozenset({'restaurant', 'bistro', 'food_court'})
ALCOHOL_TAG_KEYS = ('drink:alcohol', 'alcohol')


@dataclass(frozen=True)
class CategoryClass:
    """A broad venue bucket: the provider category tags that belong to it"""

    name: str
    members: FrozenSet[str]
    # Google Places 'type' values to query for this class
    google_types: FrozenSet[str] = frozenset()


DEFAULT_CATEGORY_CLASSES: Dict[str, CategoryClass] = {
    'food_drink': CategoryClass(
        name='food_drink',
        members=frozenset({
            'restaurant', 'cafe', 'bar', 'pub', 'fast_food', 'food_court',
            'bistro', 'biergarten', 'nightclub',
        }),
        google_types=frozenset({'restaurant', 'cafe', 'bar', 'night_club', 'meal_takeaway'}),
    ),
    'restaurant': CategoryClass(
        name='restaurant',
        members=frozenset({'restaurant', 'bistro', 'food_court', 'fast_food'}),
        google_types=frozenset({'restaurant', 'meal_takeaway'}),
    ),
    'bar': CategoryClass(
        name='bar',
        members=frozenset({'bar', 'pub', 'biergarten', 'nightclub'}),
        google_types=frozenset({'bar', 'night_club'}),
    ),
}

# Provider category spellings folded onto the OSM amenity vocabulary
CATEGORY_ALIASES = {
    'night_club': 'nightclub',
    'beer_garden': 'biergarten',
    'fastfood': 'fast_food',
    'fast_food_restaurant': 'fast_food',
    'meal_takeaway': 'fast_food',
    'coffee': 'cafe',
    'coffee_shop': 'cafe',
    'beer': 'bar',
}


def canonical_category(category: str) -> str:
    value = (category or '').strip().lower().replace('-', '_').replace(' ', '_')
    return CATEGORY_ALIASES.get(value, value)


def _alcohol_tag(tags: Mapping[str, str], wanted: str) -> bool:
    return any(tags.get(key) == wanted for key in ALCOHOL_TAG_KEYS)


def serves_alcohol(venue: Venue) -> bool:
    """
    Three-tier heuristic, in precedence order:
      1. explicitly alcohol-serving category (bar, pub, ...) -> keep, regardless of tags
      2. explicit alcohol tag == 'yes' -> keep
      3. plausibly-serving category (restaurant, ...) -> keep unless an alcohol tag says 'no'
    Everything else is dropped.
    """
    category = canonical_category(venue.category)
    if category in ALCOHOL_SERVING_CATEGORIES:
        return True
    if _alcohol_tag(venue.tags, 'yes'):
        return True
    if category in ALCOHOL_PLAUSIBLE_CATEGORIES:
        return not _alcohol_tag(venue.tags, 'no')
    return False


class VenueFilterPipeline:
    """Category -> alcohol -> distance bound -> cap. Pure; safe to re-run on the same input."""

    def __init__(
        self,
        category_classes: Optional[Mapping[str, CategoryClass]] = None,
        max_results: int = MAX_RESULTS,
    ):
        self.category_classes = dict(category_classes or DEFAULT_CATEGORY_CLASSES)
        if max_results <= 0:
            raise ValueError("max_results must be positive")
        self.max_results = max_results

    def category_class(self, name: str) -> CategoryClass:
        try:
            return self.category_classes[name]
        except KeyError:
            raise UnknownCategoryClass(f"unknown category class: {name!r}")

    def filter_category(self, venues: Iterable[Venue], class_name: str) -> List[Venue]:
        members = self.category_class(class_name).members
        return [v for v in venues if canonical_category(v.category) in members]

    def filter_alcohol(self, venues: Iterable[Venue]) -> List[Venue]:
        return [v for v in venues if serves_alcohol(v)]

    def filter_distance(self, venues: Iterable[Venue], area: SearchArea) -> List[Venue]:
        """Keep venues within the radius (inclusive), nearest first"""
        kept = []
        for v in venues:
            d = distance_meters(area.center, v.coordinate)
            if d <= area.radius_meters:
                kept.append(v.with_updates(distance_meters=d))
        # sort is stable, ties keep provider order
        kept.sort(key=lambda v: v.distance_meters)
        return kept

    def cap(self, venues: List[Venue], limit: Optional[int] = None) -> List[Venue]:
        return venues[: (limit or self.max_results)]

    def apply(self, venues: Iterable[Venue], filters: SearchFilters, area: SearchArea) -> List[Venue]:
        staged = list(venues)
        total = len(staged)
        staged = self.filter_category(staged, filters.category_class)
        after_category = len(staged)
        if filters.require_alcohol:
            staged = self.filter_alcohol(staged)
        after_alcohol = len(staged)
        staged = self.filter_distance(staged, area)
        after_distance = len(staged)
        staged = self.cap(staged)
        logger.debug(
            "filter pipeline: in=%d category=%d alcohol=%d distance=%d out=%d",
            total, after_category, after_alcohol, after_distance, len(staged),
        )
        return staged
