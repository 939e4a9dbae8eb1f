"""
Venue ranking strategies.

DistanceRanking keeps the nearest-first order produced by the filter pipeline.
TrafficFairnessRanking looks up travel times from every participant to the few
nearest venues and orders them by the population variance of those times: the
venue where everybody travels roughly equally long comes first, regardless of
how long that is.
"""

import logging
import math
from typing import List, Optional, Sequence, Tuple

from .errors import MissingCredential, VenueSourceUnavailable
from .models import MatrixCell, Participant, RankingMode, Venue
from .providers import DEFAULT_TIMEOUT_S, call_provider

logger = logging.getLogger(__name__)


# --- Module-level constants ---
FAIRNESS_CANDIDATES = 5


def _by_distance(venues: Sequence[Venue]) -> List[Venue]:
    # Venues without a distance keep their relative order after those with one
    return sorted(venues, key=lambda v: v.distance_meters if v.distance_meters is not None else math.inf)


def travel_time_stats(times: Sequence[Optional[float]]) -> Tuple[Optional[float], float]:
    """
    Mean and population variance over the valid (non-None) times.
    No valid times -> (None, inf).
    """
    valid = [t for t in times if t is not None]
    if not valid:
        return None, math.inf
    mean = sum(valid) / len(valid)
    variance = sum((t - mean) ** 2 for t in valid) / len(valid)
    return mean, variance


def score_candidates(candidates: Sequence[Venue], matrix: Sequence[Sequence[MatrixCell]]) -> List[Venue]:
    """
    Attach fairness_score / average_travel_minutes from a participants x candidates
    matrix and sort ascending by variance. Ties keep candidate order.
    """
    scored: List[Venue] = []
    for col, venue in enumerate(candidates):
        times = []
        for row in matrix:
            cell = row[col] if col < len(row) else None
            times.append(cell.duration_seconds if cell is not None and cell.is_valid else None)
        mean, variance = travel_time_stats(times)
        scored.append(venue.with_updates(
            fairness_score=variance,
            # halves round up
            average_travel_minutes=float(math.floor(mean / 60 + 0.5)) if mean is not None else None,
        ))
    scored.sort(key=lambda v: v.fairness_score)
    return scored


class DistanceRanking:
    mode = RankingMode.DISTANCE

    async def rank(self, venues: Sequence[Venue], participants: Sequence[Participant]) -> List[Venue]:
        return _by_distance(venues)


class TrafficFairnessRanking:
    """Ranks the top-N nearest venues by fairness of participants' travel times"""

    mode = RankingMode.TRAFFIC_FAIRNESS

    def __init__(self, travel_provider, candidates: int = FAIRNESS_CANDIDATES, timeout: float = DEFAULT_TIMEOUT_S):
        if travel_provider is None or not getattr(travel_provider, 'has_credential', False):
            raise MissingCredential("A travel-time provider key is required for traffic-based ranking")
        self.travel_provider = travel_provider
        self.candidates = candidates
        self.timeout = timeout

    async def rank(self, venues: Sequence[Venue], participants: Sequence[Participant]) -> List[Venue]:
        ordered = _by_distance(venues)
        if not ordered or not participants:
            return ordered

        candidates = ordered[: self.candidates]
        origins = [p.location for p in participants]
        destinations = [v.coordinate for v in candidates]
        try:
            matrix = await call_provider(
                self.travel_provider.matrix, origins, destinations,
                timeout=self.timeout, provider=getattr(self.travel_provider, 'name', None),
            )
            ranked = score_candidates(candidates, matrix)
        except (VenueSourceUnavailable, MissingCredential, IndexError, TypeError, AttributeError) as e:
            # Fail open: keep distance order rather than surfacing an error
            logger.warning(f"Traffic ranking failed, falling back to distance order: {e}")
            return ordered

        logger.info(
            "Fairness ranking over %d participant(s) x %d candidate(s); best=%s",
            len(origins), len(candidates), ranked[0].name if ranked else None,
        )
        return ranked
