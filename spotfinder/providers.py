"""
Keyless OpenStreetMap-based providers plus the async bridge used for all
provider calls.

Providers are plain blocking objects (requests based). The orchestrator runs
them on a thread pool through call_provider(), which also enforces the
timeout and turns every failure into VenueSourceUnavailable.
"""

import asyncio
import concurrent.futures
import functools
import inspect
import logging
from typing import Dict, List, Optional, Sequence

import requests

from .errors import MissingCredential, VenueSourceUnavailable
from .filters import CategoryClass
from .models import GeoCoordinate, GeocodeResult, MatrixCell

logger = logging.getLogger(__name__)


# --- Module-level constants ---
OVERPASS_URL = "https://overpass-api.de/api/interpreter"
NOMINATIM_URL = "https://nominatim.openstreetmap.org/search"
DISTANCEMATRIX_URL = "https://api.distancematrix.ai/maps/api/distancematrix/json"
USER_AGENT = "SpotFinder/1.0 (meeting venue finder)"
DEFAULT_TIMEOUT_S = 25
MIN_QUERY_LENGTH = 3
PLACEHOLDER_KEYS = {"", "your_api_key_here"}

_SESSION = requests.Session()
_SESSION.headers.update({'User-Agent': USER_AGENT, 'Accept': 'application/json'})

_EXECUTOR = concurrent.futures.ThreadPoolExecutor(max_workers=10, thread_name_prefix="spotfinder-provider")


def usable_key(key: Optional[str]) -> bool:
    return bool(key) and key.strip() not in PLACEHOLDER_KEYS


def _fmt(point: GeoCoordinate) -> str:
    return f"{point.latitude},{point.longitude}"


async def call_provider(fn, *args, timeout: float = DEFAULT_TIMEOUT_S, provider: str = None, executor=None):
    """
    Await a provider call with a bounded timeout.
    Coroutine functions are awaited directly; blocking callables run on the
    provider thread pool. Cancelling the awaiting task abandons the thread's
    result.
    """
    label = provider or getattr(fn, '__qualname__', repr(fn))
    if inspect.iscoroutinefunction(fn):
        pending = fn(*args)
    else:
        loop = asyncio.get_running_loop()
        pending = loop.run_in_executor(executor or _EXECUTOR, functools.partial(fn, *args))
    try:
        return await asyncio.wait_for(pending, timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"{label} timed out after {timeout}s")
        raise VenueSourceUnavailable(f"{label} timed out after {timeout}s", provider=label)
    except (VenueSourceUnavailable, MissingCredential):
        raise
    except Exception as e:
        logger.warning(f"{label} failed: {e}")
        raise VenueSourceUnavailable(f"{label} failed: {e}", provider=label) from e


def _get_json(url: str, params: Dict = None, data: Dict = None, timeout: float = DEFAULT_TIMEOUT_S, label: str = None):
    try:
        if data is not None:
            response = _SESSION.post(url, data=data, timeout=timeout)
        else:
            response = _SESSION.get(url, params=params, timeout=timeout)
        response.raise_for_status()
        return response.json()
    except requests.RequestException as e:
        raise VenueSourceUnavailable(f"{label or url} request failed: {e}", provider=label) from e
    except ValueError as e:
        raise VenueSourceUnavailable(f"{label or url} returned invalid JSON: {e}", provider=label) from e


class NominatimGeocoder:
    """OpenStreetMap Nominatim address search (no key required)"""

    name = "nominatim"

    def __init__(self, url: str = NOMINATIM_URL, timeout: float = 10):
        self.url = url
        self.timeout = timeout

    def search(self, text: str, limit: int = 5) -> List[GeocodeResult]:
        query = (text or "").strip()
        if len(query) < MIN_QUERY_LENGTH:
            return []
        data = _get_json(
            self.url,
            params={'format': 'json', 'q': query, 'limit': limit},
            timeout=self.timeout,
            label=self.name,
        )
        if not isinstance(data, list):
            raise VenueSourceUnavailable("nominatim returned an unexpected payload", provider=self.name)

        results = []
        for place in data:
            try:
                coord = GeoCoordinate(float(place['lat']), float(place['lon']))
            except (KeyError, TypeError, ValueError):
                continue
            results.append(GeocodeResult(display_name=place.get('display_name', query), coordinate=coord))
        return results


class OverpassPoiProvider:
    """Overpass API amenity search around a point"""

    name = "overpass"

    def __init__(self, url: str = OVERPASS_URL, timeout: float = DEFAULT_TIMEOUT_S):
        self.url = url
        self.timeout = timeout

    def build_query(self, center: GeoCoordinate, radius_meters: float, category_class: CategoryClass) -> str:
        amenities = "|".join(sorted(category_class.members))
        return (
            f"[out:json][timeout:{int(self.timeout)}];\n"
            f"(\n"
            f"  nwr[\"amenity\"~\"^({amenities})$\"](around:{int(round(radius_meters))},"
            f"{center.latitude},{center.longitude});\n"
            f");\n"
            f"out center;"
        )

    def query_area(self, center: GeoCoordinate, radius_meters: float, category_class: CategoryClass) -> List[Dict]:
        query = self.build_query(center, radius_meters, category_class)
        data = _get_json(self.url, data={'data': query}, timeout=self.timeout + 5, label=self.name)
        elements = data.get('elements') if isinstance(data, dict) else None
        if not isinstance(elements, list):
            raise VenueSourceUnavailable("overpass response has no elements list", provider=self.name)
        if data.get('remark'):
            logger.warning(f"Overpass remark: {data['remark']}")
        logger.info(f"Overpass returned {len(elements)} element(s) within {radius_meters:.0f} m")
        return elements


class DistanceMatrixAiProvider:
    """distancematrix.ai travel times with live traffic (departure_time=now)"""

    name = "distancematrix.ai"

    def __init__(self, api_key: Optional[str], url: str = DISTANCEMATRIX_URL, timeout: float = DEFAULT_TIMEOUT_S):
        self.api_key = api_key if usable_key(api_key) else None
        self.url = url
        self.timeout = timeout

    @property
    def has_credential(self) -> bool:
        return self.api_key is not None

    def matrix(self, origins: Sequence[GeoCoordinate], destinations: Sequence[GeoCoordinate]) -> List[List[MatrixCell]]:
        """
        Rows = origins, columns = destinations. Cells the provider did not
        return are filled with status 'MISSING'.
        """
        if not self.has_credential:
            raise MissingCredential("distancematrix.ai key is not configured")
        rows = len(origins)
        cols = len(destinations)
        matrix = [[MatrixCell('MISSING') for _ in range(cols)] for _ in range(rows)]
        if not rows or not cols:
            return matrix

        data = _get_json(
            self.url,
            params={
                'origins': "|".join(_fmt(o) for o in origins),
                'destinations': "|".join(_fmt(d) for d in destinations),
                'departure_time': 'now',
                'key': self.api_key,
            },
            timeout=self.timeout,
            label=self.name,
        )
        if not isinstance(data, dict) or data.get('status') != 'OK':
            status = data.get('status') if isinstance(data, dict) else type(data).__name__
            raise VenueSourceUnavailable(f"distancematrix.ai status {status}", provider=self.name)

        for i, row in enumerate((data.get('rows') or [])[:rows]):
            elements = (row.get('elements') or []) if isinstance(row, dict) else []
            for j, el in enumerate(elements[:cols]):
                matrix[i][j] = parse_matrix_element(el)
        return matrix


def parse_matrix_element(el) -> MatrixCell:
    """Prefer duration_in_traffic over duration"""
    if not isinstance(el, dict):
        return MatrixCell('INVALID')
    status = el.get('status', 'INVALID')
    if status != 'OK':
        return MatrixCell(status)
    duration = el.get('duration_in_traffic') or el.get('duration') or {}
    value = duration.get('value') if isinstance(duration, dict) else None
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return MatrixCell('INVALID')
    return MatrixCell('OK', float(value))
