import logging
from typing import Optional

from .config import Settings, get_settings
from .errors import MissingCredential
from .filters import VenueFilterPipeline
from .maps_service import GoogleMapsService
from .orchestrator import SearchOrchestrator
from .providers import DistanceMatrixAiProvider, NominatimGeocoder, OverpassPoiProvider
from .search_area import SearchAreaModel
from .session import SessionContext

logger = logging.getLogger(__name__)


def _google(settings: Settings) -> Optional[GoogleMapsService]:
    try:
        return GoogleMapsService(
            settings.google_maps_api_key,
            timeout=settings.http_timeout_s,
            travel_mode=settings.google_travel_mode,
        )
    except (MissingCredential, ValueError) as e:
        logger.error(f"Error initializing Google Maps service: {e}")
        return None


def build_geocoder(settings: Settings):
    if settings.geocoder == "google":
        service = _google(settings)
        if service is not None:
            return service
        logger.warning("Falling back to Nominatim geocoding")
    return NominatimGeocoder(url=settings.nominatim_url, timeout=min(settings.http_timeout_s, 10))


def build_poi_provider(settings: Settings):
    if settings.poi_provider == "google":
        service = _google(settings)
        if service is not None:
            return service
        logger.warning("Falling back to Overpass place search")
    return OverpassPoiProvider(url=settings.overpass_url, timeout=settings.http_timeout_s)


def build_travel_provider(settings: Settings):
    """None when no credential is configured; traffic ranking is then unavailable"""
    if settings.travel_provider == "google":
        return _google(settings)
    provider = DistanceMatrixAiProvider(settings.distancematrix_api_key, timeout=settings.http_timeout_s)
    return provider if provider.has_credential else None


def build_orchestrator(settings: Optional[Settings] = None) -> SearchOrchestrator:
    settings = settings or get_settings()
    area_model = SearchAreaModel(
        radius_meters=settings.default_radius_m,
        min_radius_m=settings.min_radius_m,
        max_radius_m=settings.max_radius_m,
    )
    orchestrator = SearchOrchestrator(
        poi_provider=build_poi_provider(settings),
        travel_provider=build_travel_provider(settings),
        session=SessionContext(area_model=area_model),
        pipeline=VenueFilterPipeline(max_results=settings.max_results),
        debounce_s=settings.debounce_s,
        call_timeout_s=settings.http_timeout_s + 5,
        fairness_candidates=settings.fairness_candidates,
    )
    logger.info(
        "Search orchestrator ready: poi=%s travel=%s",
        getattr(orchestrator.poi_provider, 'name', '?'),
        getattr(orchestrator.travel_provider, 'name', None) or 'disabled',
    )
    return orchestrator
