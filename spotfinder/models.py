import math
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple
import uuid


DEFAULT_PARTICIPANT_NAME = "Friend"


class RankingMode(str, Enum):
    DISTANCE = "distance"
    TRAFFIC_FAIRNESS = "traffic_fairness"

    @classmethod
    def parse(cls, value) -> "RankingMode":
        """Accept enum members, their values, or the UI aliases 'time'/'traffic'."""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        if text in ("time", "traffic", "fairness"):
            return cls.TRAFFIC_FAIRNESS
        return cls(text)


class CycleState(str, Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class GeoCoordinate:
    """A latitude/longitude pair in decimal degrees."""

    latitude: float
    longitude: float

    def __post_init__(self):
        lat = float(self.latitude)
        lng = float(self.longitude)
        if not -90.0 <= lat <= 90.0:
            raise ValueError(f"latitude out of range: {lat}")
        if not -180.0 <= lng <= 180.0:
            raise ValueError(f"longitude out of range: {lng}")
        object.__setattr__(self, "latitude", lat)
        object.__setattr__(self, "longitude", lng)

    def as_tuple(self) -> Tuple[float, float]:
        return (self.latitude, self.longitude)

    def to_dict(self) -> Dict:
        return {'lat': self.latitude, 'lng': self.longitude}


@dataclass(frozen=True)
class Participant:
    display_name: str
    location: GeoCoordinate
    raw_address: str = ""
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __post_init__(self):
        if self.location is None:
            raise ValueError("participant location must be resolved before it is added")
        if not (self.display_name or "").strip():
            object.__setattr__(self, "display_name", DEFAULT_PARTICIPANT_NAME)

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'name': self.display_name,
            'address': self.raw_address,
            'location': self.location.to_dict(),
        }


@dataclass(frozen=True)
class SearchArea:
    center: GeoCoordinate
    radius_meters: float
    center_is_manual_override: bool = False

    def to_dict(self) -> Dict:
        return {
            'center': self.center.to_dict(),
            'radius_m': self.radius_meters,
            'center_is_manual_override': self.center_is_manual_override,
        }


@dataclass(frozen=True)
class Venue:
    """Canonical venue produced by normalization. Never mutated; ranking uses replace()."""

    id: str
    name: str
    coordinate: GeoCoordinate
    category: str
    tags: Mapping[str, str] = field(default_factory=dict)
    fairness_score: Optional[float] = None
    average_travel_minutes: Optional[float] = None
    distance_meters: Optional[float] = None

    def __post_init__(self):
        # Read-only view so the instance stays effectively immutable
        object.__setattr__(self, "tags", MappingProxyType(dict(self.tags)))

    def with_updates(self, **changes) -> "Venue":
        return replace(self, **changes)

    @property
    def display_address(self) -> str:
        for key in ('addr:street', 'vicinity', 'full_address', 'address'):
            value = self.tags.get(key)
            if value:
                house = self.tags.get('addr:housenumber') if key == 'addr:street' else None
                return f"{value} {house}" if house else value
        return self.category

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'name': self.name,
            'lat': self.coordinate.latitude,
            'lng': self.coordinate.longitude,
            'category': self.category,
            'address': self.display_address,
            'distance_m': round(self.distance_meters, 1) if self.distance_meters is not None else None,
            # unreachable venues carry an infinite score, which JSON cannot represent
            'fairness_score': self.fairness_score if self.fairness_score is None or math.isfinite(self.fairness_score) else None,
            'avg_travel_minutes': self.average_travel_minutes,
            'tags': dict(self.tags),
        }


@dataclass(frozen=True)
class SearchFilters:
    category_class: str = "food_drink"
    require_alcohol: bool = False
    ranking_mode: RankingMode = RankingMode.DISTANCE

    def __post_init__(self):
        object.__setattr__(self, "ranking_mode", RankingMode.parse(self.ranking_mode))
        object.__setattr__(self, "require_alcohol", bool(self.require_alcohol))

    def to_dict(self) -> Dict:
        return {
            'category_class': self.category_class,
            'require_alcohol': self.require_alcohol,
            'ranking_mode': self.ranking_mode.value,
        }


@dataclass(frozen=True)
class GeocodeResult:
    display_name: str
    coordinate: GeoCoordinate

    def to_dict(self) -> Dict:
        return {'display_name': self.display_name, **self.coordinate.to_dict()}


@dataclass(frozen=True)
class MatrixCell:
    status: str
    duration_seconds: Optional[float] = None

    @property
    def is_valid(self) -> bool:
        return self.status == "OK" and self.duration_seconds is not None
