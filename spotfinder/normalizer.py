"""
Raw POI record -> Venue.

Three provider payload shapes are recognised structurally:

  * OpenStreetMap Overpass elements ('out center' output):
        {'type': 'way', 'id': 1, 'center': {'lat': .., 'lon': ..}, 'tags': {'name': .., 'amenity': ..}}
  * Mapbox Search Box features (GeoJSON):
        {'type': 'Feature', 'geometry': {'coordinates': [lng, lat]}, 'properties': {'name': .., 'maki': ..}}
  * Google Places nearby results:
        {'place_id': .., 'name': .., 'geometry': {'location': {'lat': .., 'lng': ..}}, 'types': [..]}

Records without a name or a usable coordinate are dropped; nothing here raises
for a malformed record.
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from .models import GeoCoordinate, Venue

logger = logging.getLogger(__name__)


# Google 'types' that carry no categorical meaning on their own
GENERIC_GOOGLE_TYPES = {'point_of_interest', 'establishment', 'food', 'store'}


def _non_empty(*values) -> Optional[str]:
    for v in values:
        if isinstance(v, str) and v.strip():
            return v.strip()
    return None


def _coordinate(lat, lng) -> Optional[GeoCoordinate]:
    if lat is None or lng is None or isinstance(lat, bool) or isinstance(lng, bool):
        return None
    try:
        return GeoCoordinate(float(lat), float(lng))
    except (TypeError, ValueError):
        return None


def _bbox_center(bbox) -> Optional[GeoCoordinate]:
    """GeoJSON bbox [min_lng, min_lat, max_lng, max_lat] midpoint"""
    if not isinstance(bbox, (list, tuple)) or len(bbox) != 4:
        return None
    try:
        min_lng, min_lat, max_lng, max_lat = (float(x) for x in bbox)
    except (TypeError, ValueError):
        return None
    return _coordinate((min_lat + max_lat) / 2, (min_lng + max_lng) / 2)


def _viewport_center(viewport) -> Optional[GeoCoordinate]:
    if not isinstance(viewport, dict):
        return None
    ne = viewport.get('northeast') or {}
    sw = viewport.get('southwest') or {}
    try:
        return _coordinate((ne['lat'] + sw['lat']) / 2, (ne['lng'] + sw['lng']) / 2)
    except (KeyError, TypeError):
        return None


def _string_tags(raw: Dict) -> Dict[str, str]:
    """Keep scalar attributes as strings; nested structures are not tags"""
    tags: Dict[str, str] = {}
    for key, value in (raw or {}).items():
        if isinstance(value, bool):
            tags[str(key)] = 'yes' if value else 'no'
        elif isinstance(value, (str, int, float)):
            tags[str(key)] = str(value)
    return tags


class VenueNormalizer:
    """Maps heterogeneous provider records into canonical Venue objects"""

    def normalize(self, raw) -> Optional[Venue]:
        if not isinstance(raw, dict):
            return None
        try:
            if raw.get('type') == 'Feature' or ('properties' in raw and 'geometry' in raw):
                parsed = self._from_geojson(raw)
            elif 'place_id' in raw:
                parsed = self._from_google(raw)
            elif 'tags' in raw or raw.get('type') in ('node', 'way', 'relation'):
                parsed = self._from_overpass(raw)
            else:
                logger.debug(f"Unrecognised POI record shape: {sorted(raw.keys())}")
                return None
        except (AttributeError, TypeError) as e:
            logger.debug(f"Dropping malformed POI record: {e}")
            return None

        if parsed is None:
            return None
        venue_id, name, coord, category, tags = parsed
        if not name or coord is None:
            return None
        return Venue(id=venue_id, name=name, coordinate=coord, category=category, tags=tags)

    def normalize_all(self, raws: Iterable) -> List[Venue]:
        """Normalize a batch, dropping unusable records and duplicate ids"""
        venues: List[Venue] = []
        seen = set()
        dropped = 0
        for raw in raws or []:
            venue = self.normalize(raw)
            if venue is None:
                dropped += 1
                continue
            if venue.id in seen:
                continue
            seen.add(venue.id)
            venues.append(venue)
        if dropped:
            logger.debug(f"Normalizer dropped {dropped} record(s) without name or coordinate")
        return venues

    # --- Provider shapes ---
    def _from_overpass(self, el: Dict) -> Optional[Tuple]:
        tags = el.get('tags') or {}
        name = _non_empty(tags.get('name'))
        coord = _coordinate(el.get('lat'), el.get('lon'))
        if coord is None:
            center = el.get('center') or {}
            coord = _coordinate(center.get('lat'), center.get('lon'))
        if coord is None and isinstance(el.get('bounds'), dict):
            b = el['bounds']
            try:
                coord = _coordinate((b['minlat'] + b['maxlat']) / 2, (b['minlon'] + b['maxlon']) / 2)
            except (KeyError, TypeError):
                coord = None
        category = (_non_empty(tags.get('amenity'), tags.get('shop'), tags.get('leisure')) or '').lower()
        venue_id = f"{el.get('type', 'node')}/{el.get('id')}"
        return venue_id, name, coord, category, _string_tags(tags)

    def _from_geojson(self, feature: Dict) -> Optional[Tuple]:
        props = feature.get('properties') or {}
        geometry = feature.get('geometry') or {}
        name = _non_empty(props.get('name'), feature.get('text'))

        coord = None
        coords = geometry.get('coordinates')
        if geometry.get('type', 'Point') == 'Point' and isinstance(coords, (list, tuple)) and len(coords) >= 2:
            coord = _coordinate(coords[1], coords[0])
        if coord is None:
            point = props.get('coordinates') or {}
            coord = _coordinate(point.get('latitude'), point.get('longitude'))
        if coord is None:
            coord = _bbox_center(feature.get('bbox') or props.get('bbox'))

        poi_categories = props.get('poi_category_ids') or props.get('poi_category') or []
        first_category = poi_categories[0] if isinstance(poi_categories, list) and poi_categories else None
        category = (_non_empty(props.get('maki'), first_category, props.get('category')) or '').lower()
        venue_id = str(feature.get('id') or props.get('mapbox_id') or name)
        return venue_id, name, coord, category, _string_tags(props)

    def _from_google(self, place: Dict) -> Optional[Tuple]:
        name = _non_empty(place.get('name'))
        geometry = place.get('geometry') or {}
        location = geometry.get('location') or {}
        coord = _coordinate(location.get('lat'), location.get('lng'))
        if coord is None:
            coord = _viewport_center(geometry.get('viewport'))

        types = [t for t in (place.get('types') or []) if isinstance(t, str)]
        specific = [t for t in types if t not in GENERIC_GOOGLE_TYPES]
        category = (specific[0] if specific else (types[0] if types else '')).lower()
        tags = _string_tags(place)
        opening = place.get('opening_hours')
        if isinstance(opening, dict) and 'open_now' in opening:
            tags['open_now'] = 'yes' if opening['open_now'] else 'no'
        return str(place['place_id']), name, coord, category, tags
