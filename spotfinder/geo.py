"""
Centroid and distance helpers.

The centroid is a planar mean of latitudes and longitudes. For the radii this
app deals with (a few km) the error against a true geodesic centroid is
negligible; it does degrade near the poles and across the +/-180 longitude seam,
which is not handled. Venue distances, on the other hand, always use geopy's
geodesic distance.
"""

from typing import Iterable, List, Union

from geopy.distance import geodesic

from .errors import InsufficientParticipants
from .models import GeoCoordinate, Participant


def _coordinate_of(item: Union[Participant, GeoCoordinate]) -> GeoCoordinate:
    if isinstance(item, Participant):
        return item.location
    return item


def compute_centroid(items: Iterable[Union[Participant, GeoCoordinate]]) -> GeoCoordinate:
    """
    Arithmetic mean of latitude and of longitude, computed independently.
    Accepts participants or bare coordinates. Raises InsufficientParticipants
    on an empty sequence.
    """
    coords: List[GeoCoordinate] = [_coordinate_of(i) for i in items]
    if not coords:
        raise InsufficientParticipants("cannot compute a centroid without participants")

    total_lat = 0.0
    total_lng = 0.0
    for c in coords:
        total_lat += c.latitude
        total_lng += c.longitude

    return GeoCoordinate(total_lat / len(coords), total_lng / len(coords))


def distance_meters(a: GeoCoordinate, b: GeoCoordinate) -> float:
    """Geodesic (WGS-84) distance in meters"""
    return geodesic(a.as_tuple(), b.as_tuple()).meters
