import pytest
from googlemaps import exceptions as gm_exceptions

from spotfinder import maps_service
from spotfinder.errors import MissingCredential, VenueSourceUnavailable
from spotfinder.filters import DEFAULT_CATEGORY_CLASSES
from spotfinder.models import GeoCoordinate


class DummyClient:
    def __init__(self, key=None, timeout=None):
        self.key = key
        self.timeout = timeout
        self.calls = []
        self.places = {}
        self.error = None

    def geocode(self, address):
        self.calls.append(("geocode", address))
        return [
            {"formatted_address": "Times Square, New York", "geometry": {"location": {"lat": 40.758, "lng": -73.9855}}},
            {"formatted_address": "no geometry"},
        ]

    def places_nearby(self, location=None, radius=None, type=None):
        self.calls.append(("places_nearby", location, radius, type))
        if self.error is not None:
            raise self.error
        return {"status": "OK", "results": self.places.get(type, [])}

    def distance_matrix(self, origins=None, destinations=None, mode=None, departure_time=None):
        self.calls.append(("distance_matrix", len(origins), len(destinations), mode))
        rows = []
        for _ in origins:
            rows.append({"elements": [{"status": "OK", "duration": {"value": 60 * (j + 1)}}
                                      for j in range(len(destinations))]})
        return {"status": "OK", "rows": rows}


@pytest.fixture
def service(monkeypatch):
    monkeypatch.setattr(maps_service.googlemaps, "Client", DummyClient)
    return maps_service.GoogleMapsService("AIza-test")


def test_requires_key():
    with pytest.raises(MissingCredential):
        maps_service.GoogleMapsService("your_api_key_here")


def test_geocode_search(service):
    results = service.search("Times Square")
    assert len(results) == 1
    assert results[0].display_name == "Times Square, New York"
    assert results[0].coordinate == GeoCoordinate(40.758, -73.9855)


def test_query_area_merges_types_and_dedupes(service):
    service.client.places = {
        "bar": [{"place_id": "1", "name": "Bar"}, {"place_id": "2", "name": "Both"}],
        "night_club": [{"place_id": "2", "name": "Both"}, {"place_id": "3", "name": "Club"}],
    }
    places = service.query_area(GeoCoordinate(1, 2), 1500.4, DEFAULT_CATEGORY_CLASSES["bar"])
    assert [p["place_id"] for p in places] == ["1", "2", "3"]
    assert service.client.calls[0] == ("places_nearby", (1.0, 2.0), 1500, "bar")


def test_query_area_api_error(service):
    service.client.error = gm_exceptions.ApiError("OVER_QUERY_LIMIT")
    with pytest.raises(VenueSourceUnavailable):
        service.query_area(GeoCoordinate(1, 2), 1000, DEFAULT_CATEGORY_CLASSES["bar"])


def test_matrix_chunks_destinations(service):
    origins = [GeoCoordinate(0, 0), GeoCoordinate(1, 1)]
    destinations = [GeoCoordinate(0, i * 0.01) for i in range(30)]
    matrix = service.matrix(origins, destinations)

    dm_calls = [c for c in service.client.calls if c[0] == "distance_matrix"]
    assert [c[2] for c in dm_calls] == [25, 5]
    assert dm_calls[0][3] == "driving"
    assert len(matrix) == 2 and len(matrix[0]) == 30
    assert matrix[1][24].duration_seconds == 25 * 60
    assert matrix[1][25].duration_seconds == 60
