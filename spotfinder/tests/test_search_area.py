import pytest

from spotfinder.errors import InvalidRadius
from spotfinder.models import GeoCoordinate
from spotfinder.search_area import SearchAreaModel


def test_no_area_before_participants():
    model = SearchAreaModel()
    assert model.snapshot() is None
    assert model.has_center is False


@pytest.mark.parametrize("bad", [0, -5, "abc", None])
def test_set_radius_rejects_non_positive_or_non_numeric(bad):
    model = SearchAreaModel()
    with pytest.raises(InvalidRadius):
        model.set_radius(bad)
    assert model.radius_meters == 2000.0


def test_set_radius_clamps_into_bounds():
    model = SearchAreaModel(min_radius_m=200, max_radius_m=10000)
    assert model.set_radius(50) == 200
    assert model.set_radius(50000) == 10000
    assert model.set_radius(1500) == 1500


def test_manual_center_sets_override_and_keeps_radius():
    model = SearchAreaModel(radius_meters=3000)
    area = model.set_manual_center(GeoCoordinate(1, 2))
    assert area.center_is_manual_override is True
    assert area.radius_meters == 3000


def test_recompute_clears_override():
    model = SearchAreaModel()
    model.set_manual_center(GeoCoordinate(1, 2))
    area = model.recompute_from_participants([GeoCoordinate(0, 0), GeoCoordinate(2, 2)])
    assert area.center == GeoCoordinate(1, 1)
    assert area.center_is_manual_override is False


def test_set_radius_replaces_snapshot_without_touching_previous_value():
    model = SearchAreaModel()
    first = model.recompute_from_participants([GeoCoordinate(0, 0)])
    model.set_radius(5000)
    assert first.radius_meters == 2000
    assert model.snapshot().radius_meters == 5000
    assert model.snapshot().center == first.center
