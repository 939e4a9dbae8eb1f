import pytest

from spotfinder.models import GeoCoordinate
from spotfinder.normalizer import VenueNormalizer

from .helpers import osm_element


normalizer = VenueNormalizer()


def test_overpass_node():
    venue = normalizer.normalize(osm_element(42, "Kneipe", 52.5, 13.4, amenity="Pub", outdoor_seating="yes"))
    assert venue.id == "node/42"
    assert venue.name == "Kneipe"
    assert venue.coordinate == GeoCoordinate(52.5, 13.4)
    assert venue.category == "pub"
    assert venue.tags["outdoor_seating"] == "yes"


def test_overpass_way_uses_center():
    raw = {
        "type": "way",
        "id": 7,
        "center": {"lat": 48.1, "lon": 11.5},
        "tags": {"name": "Biergarten am See", "amenity": "biergarten"},
    }
    venue = normalizer.normalize(raw)
    assert venue.coordinate == GeoCoordinate(48.1, 11.5)
    assert venue.id == "way/7"


def test_unnamed_record_is_dropped():
    assert normalizer.normalize(osm_element(1, None, 1.0, 1.0)) is None
    assert normalizer.normalize(osm_element(2, "   ", 1.0, 1.0)) is None


def test_record_without_coordinate_is_dropped():
    raw = {"type": "way", "id": 3, "tags": {"name": "Nowhere", "amenity": "cafe"}}
    assert normalizer.normalize(raw) is None


def test_out_of_range_coordinate_is_dropped():
    assert normalizer.normalize(osm_element(4, "Bad", 123.0, 0.0)) is None


def test_mapbox_feature():
    feature = {
        "type": "Feature",
        "geometry": {"type": "Point", "coordinates": [-73.98, 40.75]},
        "properties": {
            "name": "Corner Bistro",
            "mapbox_id": "dXJu",
            "maki": "restaurant",
            "full_address": "331 W 4th St, New York",
            "poi_category": ["restaurant", "food"],
        },
    }
    venue = normalizer.normalize(feature)
    assert venue.id == "dXJu"
    assert venue.coordinate == GeoCoordinate(40.75, -73.98)
    assert venue.category == "restaurant"
    assert venue.display_address == "331 W 4th St, New York"
    # list-valued properties are not tags
    assert "poi_category" not in venue.tags


def test_mapbox_feature_falls_back_to_bbox_center():
    feature = {
        "type": "Feature",
        "geometry": {"type": "Polygon", "coordinates": [[]]},
        "bbox": [10.0, 50.0, 10.2, 50.2],
        "properties": {"name": "Food Hall", "maki": "restaurant"},
    }
    venue = normalizer.normalize(feature)
    assert venue.coordinate.latitude == pytest.approx(50.1)
    assert venue.coordinate.longitude == pytest.approx(10.1)


def test_google_place():
    place = {
        "place_id": "ChIJ123",
        "name": "Joe's Bar",
        "geometry": {"location": {"lat": 37.77, "lng": -122.42}},
        "types": ["point_of_interest", "bar", "establishment"],
        "vicinity": "1 Market St",
        "rating": 4.5,
        "opening_hours": {"open_now": True},
    }
    venue = normalizer.normalize(place)
    assert venue.id == "ChIJ123"
    assert venue.category == "bar"
    assert venue.tags["rating"] == "4.5"
    assert venue.tags["open_now"] == "yes"
    assert venue.display_address == "1 Market St"


def test_normalize_all_drops_bad_records_and_duplicate_ids():
    raws = [
        osm_element(1, "A", 1.0, 1.0),
        osm_element(1, "A again", 1.0, 1.0),
        osm_element(2, None, 1.0, 1.0),
        "not a record",
        {"unexpected": "shape"},
        osm_element(3, "C", 1.1, 1.1, amenity="bar"),
    ]
    venues = normalizer.normalize_all(raws)
    assert [v.name for v in venues] == ["A", "C"]


def test_venue_tags_are_read_only():
    venue = normalizer.normalize(osm_element(5, "E", 1.0, 1.0))
    try:
        venue.tags["alcohol"] = "yes"
    except TypeError:
        pass
    assert "alcohol" not in venue.tags
