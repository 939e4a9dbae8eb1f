import pytest

from spotfinder import config
from spotfinder.config import Settings, get_settings
from spotfinder.providers import DistanceMatrixAiProvider, NominatimGeocoder, OverpassPoiProvider
from spotfinder.services import build_geocoder, build_orchestrator, build_poi_provider, build_travel_provider


ENV_VARS = [
    "SPOTFINDER_POI_PROVIDER", "SPOTFINDER_GEOCODER", "SPOTFINDER_TRAVEL_PROVIDER",
    "GOOGLE_MAPS_API_KEY", "DISTANCEMATRIX_API_KEY", "SPOTFINDER_DEFAULT_RADIUS_M",
    "SPOTFINDER_MAX_RESULTS", "SPOTFINDER_DEBOUNCE_S", "PORT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # keep a developer's .env out of the picture
    monkeypatch.setattr(config, "load_dotenv", lambda *args, **kwargs: False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_defaults():
    settings = get_settings()
    assert settings.poi_provider == "overpass"
    assert settings.default_radius_m == 2000.0
    assert settings.max_results == 50
    assert settings.fairness_candidates == 5
    assert settings.port == 5001
    assert settings.distancematrix_api_key is None


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("SPOTFINDER_DEFAULT_RADIUS_M", "3500")
    monkeypatch.setenv("SPOTFINDER_MAX_RESULTS", "20")
    monkeypatch.setenv("SPOTFINDER_POI_PROVIDER", " Google ")
    monkeypatch.setenv("PORT", "8080")
    settings = get_settings()
    assert settings.default_radius_m == 3500.0
    assert settings.max_results == 20
    assert settings.poi_provider == "google"
    assert settings.port == 8080


def test_bad_numbers_fall_back_to_defaults(monkeypatch):
    monkeypatch.setenv("SPOTFINDER_DEBOUNCE_S", "soon")
    assert get_settings().debounce_s == 0.3


def test_placeholder_keys_are_ignored(monkeypatch):
    monkeypatch.setenv("DISTANCEMATRIX_API_KEY", "your_api_key_here")
    assert get_settings().distancematrix_api_key is None


def test_settings_are_cached():
    assert get_settings() is get_settings()


def test_default_providers_are_openstreetmap_backed():
    settings = Settings()
    assert isinstance(build_geocoder(settings), NominatimGeocoder)
    assert isinstance(build_poi_provider(settings), OverpassPoiProvider)
    assert build_travel_provider(settings) is None


def test_google_without_key_falls_back():
    settings = Settings(poi_provider="google", geocoder="google", travel_provider="google")
    assert isinstance(build_poi_provider(settings), OverpassPoiProvider)
    assert isinstance(build_geocoder(settings), NominatimGeocoder)
    assert build_travel_provider(settings) is None


def test_travel_provider_with_key():
    provider = build_travel_provider(Settings(distancematrix_api_key="secret"))
    assert isinstance(provider, DistanceMatrixAiProvider)
    assert provider.has_credential


def test_orchestrator_uses_settings():
    orchestrator = build_orchestrator(Settings(default_radius_m=800, max_results=7, debounce_s=0.1))
    assert orchestrator.session.area_model.radius_meters == 800.0
    assert orchestrator.pipeline.max_results == 7
    assert orchestrator.debounce_s == 0.1
    assert orchestrator.traffic_ranking_available is False
