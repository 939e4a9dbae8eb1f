"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

from .providers import NOMINATIM_URL, OVERPASS_URL, usable_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    poi_provider: str = "overpass"
    geocoder: str = "nominatim"
    travel_provider: str = "distancematrix"
    google_maps_api_key: Optional[str] = None
    distancematrix_api_key: Optional[str] = None
    default_radius_m: float = 2000.0
    min_radius_m: float = 200.0
    max_radius_m: float = 10000.0
    max_results: int = 50
    fairness_candidates: int = 5
    debounce_s: float = 0.3
    http_timeout_s: float = 25.0
    google_travel_mode: str = "driving"
    overpass_url: str = OVERPASS_URL
    nominatim_url: str = NOMINATIM_URL
    host: str = "0.0.0.0"
    port: int = 5001


def _float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"{name}={raw!r} is not a number; using {default}")
        return default


def _int(name: str, default: int) -> int:
    return int(_float(name, default))


def _key(name: str) -> Optional[str]:
    value = (os.getenv(name) or "").strip()
    return value if usable_key(value) else None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    settings = Settings(
        poi_provider=os.getenv("SPOTFINDER_POI_PROVIDER", "overpass").strip().lower(),
        geocoder=os.getenv("SPOTFINDER_GEOCODER", "nominatim").strip().lower(),
        travel_provider=os.getenv("SPOTFINDER_TRAVEL_PROVIDER", "distancematrix").strip().lower(),
        google_maps_api_key=_key("GOOGLE_MAPS_API_KEY"),
        distancematrix_api_key=_key("DISTANCEMATRIX_API_KEY"),
        default_radius_m=_float("SPOTFINDER_DEFAULT_RADIUS_M", 2000.0),
        min_radius_m=_float("SPOTFINDER_MIN_RADIUS_M", 200.0),
        max_radius_m=_float("SPOTFINDER_MAX_RADIUS_M", 10000.0),
        max_results=_int("SPOTFINDER_MAX_RESULTS", 50),
        fairness_candidates=_int("SPOTFINDER_FAIRNESS_CANDIDATES", 5),
        debounce_s=_float("SPOTFINDER_DEBOUNCE_S", 0.3),
        http_timeout_s=_float("SPOTFINDER_HTTP_TIMEOUT_S", 25.0),
        google_travel_mode=os.getenv("SPOTFINDER_GOOGLE_TRAVEL_MODE", "driving").strip().lower(),
        overpass_url=os.getenv("OVERPASS_URL", OVERPASS_URL),
        nominatim_url=os.getenv("NOMINATIM_URL", NOMINATIM_URL),
        host=os.getenv("HOST", "0.0.0.0"),
        port=_int("PORT", 5001),
    )

    needs_google = "google" in (settings.poi_provider, settings.geocoder, settings.travel_provider)
    if needs_google and not settings.google_maps_api_key:
        logger.warning("GOOGLE_MAPS_API_KEY is not configured; Google-backed providers are disabled.")
    if settings.travel_provider == "distancematrix" and not settings.distancematrix_api_key:
        logger.warning("DISTANCEMATRIX_API_KEY is not configured; traffic-based ranking is disabled.")

    return settings
