from spotfinder.models import GeoCoordinate, MatrixCell, Participant, Venue


def osm_element(element_id, name, lat, lon, amenity="restaurant", **tags):
    element_tags = {"amenity": amenity, **tags}
    if name is not None:
        element_tags["name"] = name
    return {"type": "node", "id": element_id, "lat": lat, "lon": lon, "tags": element_tags}


def make_venue(venue_id, category="restaurant", lat=0.0, lng=0.0, distance=None, **tags):
    return Venue(
        id=str(venue_id),
        name=f"Venue {venue_id}",
        coordinate=GeoCoordinate(lat, lng),
        category=category,
        tags=tags,
        distance_meters=distance,
    )


def make_participant(name, lat, lng):
    return Participant(display_name=name, location=GeoCoordinate(lat, lng), raw_address=f"{name}'s place")


class DummyPoiProvider:
    name = "dummy-poi"

    def __init__(self, elements=None, error=None):
        self.elements = elements or []
        self.error = error
        self.calls = []

    def query_area(self, center, radius_meters, category_class):
        self.calls.append((center, radius_meters, category_class.name))
        if self.error is not None:
            raise self.error
        return list(self.elements)


class DummyTravelProvider:
    """Returns preset durations (seconds) keyed by destination coordinate"""

    name = "dummy-travel"
    has_credential = True

    def __init__(self, durations_by_destination=None, error=None):
        self.durations = durations_by_destination or {}
        self.error = error
        self.calls = []

    def matrix(self, origins, destinations):
        self.calls.append((list(origins), list(destinations)))
        if self.error is not None:
            raise self.error
        rows = []
        for i, _ in enumerate(origins):
            row = []
            for dest in destinations:
                times = self.durations.get(dest.as_tuple())
                value = times[i] if times is not None and i < len(times) else None
                row.append(MatrixCell("OK", value) if value is not None else MatrixCell("ZERO_RESULTS"))
            rows.append(row)
        return rows


