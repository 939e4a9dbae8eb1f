import logging
from typing import Iterable, Optional, Union

from .errors import InvalidRadius
from .geo import compute_centroid
from .models import GeoCoordinate, Participant, SearchArea

logger = logging.getLogger(__name__)


# --- Module-level constants ---
DEFAULT_RADIUS_M = 2000.0
MIN_RADIUS_M = 200.0
MAX_RADIUS_M = 10000.0


class SearchAreaModel:
    """Holds the search radius and center; every change swaps in a new SearchArea value"""

    def __init__(
        self,
        radius_meters: float = DEFAULT_RADIUS_M,
        min_radius_m: float = MIN_RADIUS_M,
        max_radius_m: float = MAX_RADIUS_M,
    ):
        if min_radius_m <= 0 or max_radius_m < min_radius_m:
            raise InvalidRadius(f"invalid radius bounds: {min_radius_m}..{max_radius_m}")
        self.min_radius_m = float(min_radius_m)
        self.max_radius_m = float(max_radius_m)
        self._radius = self._validate(radius_meters)
        self._area: Optional[SearchArea] = None

    def _validate(self, meters) -> float:
        try:
            value = float(meters)
        except (TypeError, ValueError):
            raise InvalidRadius(f"radius must be a number, got {meters!r}")
        if not value > 0:
            raise InvalidRadius(f"radius must be positive, got {value}")
        clamped = min(max(value, self.min_radius_m), self.max_radius_m)
        if clamped != value:
            logger.info(f"Radius {value:.0f} m clamped to {clamped:.0f} m")
        return clamped

    @property
    def radius_meters(self) -> float:
        return self._radius

    @property
    def has_center(self) -> bool:
        return self._area is not None

    def snapshot(self) -> Optional[SearchArea]:
        """Current area, or None before the first participant exists"""
        return self._area

    def set_radius(self, meters: float) -> float:
        """Validate and store a new radius. Does not start a search."""
        self._radius = self._validate(meters)
        if self._area is not None:
            self._area = SearchArea(
                center=self._area.center,
                radius_meters=self._radius,
                center_is_manual_override=self._area.center_is_manual_override,
            )
        return self._radius

    def set_manual_center(self, coord: GeoCoordinate) -> SearchArea:
        self._area = SearchArea(center=coord, radius_meters=self._radius, center_is_manual_override=True)
        return self._area

    def recompute_from_participants(
        self, items: Iterable[Union[Participant, GeoCoordinate]]
    ) -> SearchArea:
        """Re-anchor to the centroid of items, dropping any manual override"""
        center = compute_centroid(items)
        if self._area is not None and self._area.center_is_manual_override:
            logger.info("Participant set changed; discarding manual center override")
        self._area = SearchArea(center=center, radius_meters=self._radius, center_is_manual_override=False)
        return self._area

    def clear(self):
        self._area = None
