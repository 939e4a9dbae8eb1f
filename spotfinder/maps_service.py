import datetime as _dt
import logging
from typing import Dict, List, Sequence

import googlemaps
from googlemaps import exceptions as gm_exceptions

from .errors import MissingCredential, VenueSourceUnavailable
from .filters import CategoryClass
from .models import GeoCoordinate, GeocodeResult, MatrixCell
from .providers import MIN_QUERY_LENGTH, parse_matrix_element, usable_key

logger = logging.getLogger(__name__)


# --- Module-level constants ---
DISTANCE_MATRIX_MAX_DEST = 25   # conservative chunk size for DM requests
PLACES_PER_TYPE = 20
GOOGLE_ERRORS = (gm_exceptions.ApiError, gm_exceptions.TransportError, gm_exceptions.Timeout)


class GoogleMapsService:
    """Google Maps back end: geocoding, nearby places and the distance matrix"""

    name = "google"

    def __init__(self, api_key: str, timeout: float = 25, travel_mode: str = "driving"):
        if not usable_key(api_key):
            raise MissingCredential("Valid Google Maps API key is required")
        self.client = googlemaps.Client(key=api_key, timeout=timeout)
        self.travel_mode = travel_mode

    @property
    def has_credential(self) -> bool:
        return True

    def search(self, text: str, limit: int = 5) -> List[GeocodeResult]:
        """
        Geocode free text. Returns at most `limit` results, best first.
        """
        query = (text or "").strip()
        if len(query) < MIN_QUERY_LENGTH:
            return []
        try:
            result = self.client.geocode(query)
        except GOOGLE_ERRORS as e:
            raise VenueSourceUnavailable(f"Geocoding error: {e}", provider=self.name) from e

        out: List[GeocodeResult] = []
        for location in (result or [])[:limit]:
            try:
                point = location['geometry']['location']
                coord = GeoCoordinate(point['lat'], point['lng'])
            except (KeyError, TypeError, ValueError):
                continue
            out.append(GeocodeResult(display_name=location.get('formatted_address', query), coordinate=coord))
        return out

    def query_area(self, center: GeoCoordinate, radius_meters: float, category_class: CategoryClass) -> List[Dict]:
        """
        Nearby search, one request per Google place type in the class.
        Results are merged in request order and de-duplicated by place_id.
        """
        place_types = sorted(category_class.google_types) or sorted(category_class.members)
        seen = set()
        places: List[Dict] = []
        for place_type in place_types:
            try:
                places_result = self.client.places_nearby(
                    location=center.as_tuple(),
                    radius=int(round(radius_meters)),
                    type=place_type,
                )
            except GOOGLE_ERRORS as e:
                raise VenueSourceUnavailable(f"Places search error: {e}", provider=self.name) from e

            for place in places_result.get('results', [])[:PLACES_PER_TYPE]:
                place_id = place.get('place_id')
                if not place_id or place_id in seen:
                    continue
                seen.add(place_id)
                places.append(place)
        logger.info(f"Google Places returned {len(places)} place(s) for types {place_types}")
        return places

    def matrix(self, origins: Sequence[GeoCoordinate], destinations: Sequence[GeoCoordinate],
               departure_time=None) -> List[List[MatrixCell]]:
        """Batch travel durations using Distance Matrix API. Returns a rows x cols matrix
        where rows = len(origins) and cols = len(destinations).
        Chunks destinations to respect API limits.
        """
        rows = len(origins)
        cols = len(destinations)
        matrix: List[List[MatrixCell]] = [[MatrixCell('MISSING') for _ in range(cols)] for _ in range(rows)]
        if not rows or not cols:
            return matrix

        origin_pts = [o.as_tuple() for o in origins]
        departure_time = departure_time or _dt.datetime.now()

        # Process destinations in chunks
        for start in range(0, cols, DISTANCE_MATRIX_MAX_DEST):
            end = min(start + DISTANCE_MATRIX_MAX_DEST, cols)
            dest_chunk = [d.as_tuple() for d in destinations[start:end]]
            try:
                dm = self.client.distance_matrix(
                    origins=origin_pts,
                    destinations=dest_chunk,
                    mode=self.travel_mode,
                    departure_time=departure_time,
                )
            except GOOGLE_ERRORS as e:
                raise VenueSourceUnavailable(f"Distance Matrix error: {e}", provider=self.name) from e

            if not dm or dm.get('status', 'OK') != 'OK':
                raise VenueSourceUnavailable(
                    f"Distance Matrix status {dm.get('status') if dm else None}", provider=self.name
                )
            for i, row in enumerate(dm.get('rows', [])[:rows]):
                for j, el in enumerate(row.get('elements', [])[: end - start]):
                    matrix[i][start + j] = parse_matrix_element(el)
        return matrix
