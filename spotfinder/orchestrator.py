"""
Search orchestration.

Every parameter change (participants, radius, center, filters) schedules a
search cycle. Triggers arriving within the debounce window collapse into one
cycle. Each cycle carries a generation number; when a cycle finishes after a
newer one was started, its result is dropped. Observers receive immutable
SearchSnapshot values, so they only ever see a complete previous state or a
complete next state.

All trigger methods must be called from the event loop thread.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from .errors import InsufficientParticipants, MissingCredential, SpotFinderError, VenueSourceUnavailable
from .filters import VenueFilterPipeline
from .models import (
    CycleState,
    GeoCoordinate,
    Participant,
    RankingMode,
    SearchArea,
    SearchFilters,
    Venue,
)
from .normalizer import VenueNormalizer
from .providers import DEFAULT_TIMEOUT_S, call_provider
from .ranking import FAIRNESS_CANDIDATES, DistanceRanking, TrafficFairnessRanking
from .session import SessionContext

logger = logging.getLogger(__name__)


# --- Module-level constants ---
DEBOUNCE_S = 0.3
MISSING_CREDENTIAL_NOTICE = "Traffic-based ranking needs a travel-time API key; showing results by distance."
SOURCE_UNAVAILABLE_NOTICE = "Failed to fetch places. Try again."


@dataclass(frozen=True)
class SearchSnapshot:
    state: CycleState = CycleState.IDLE
    area: Optional[SearchArea] = None
    venues: Tuple[Venue, ...] = ()
    filters: SearchFilters = field(default_factory=SearchFilters)
    participants: Tuple[Participant, ...] = ()
    generation: int = 0
    notice: Optional[str] = None
    error: Optional[str] = None
    updated_at: float = field(default_factory=time.time)

    def to_dict(self):
        return {
            'state': self.state.value,
            'area': self.area.to_dict() if self.area else None,
            'venues': [v.to_dict() for v in self.venues],
            'filters': self.filters.to_dict(),
            'participants': [p.to_dict() for p in self.participants],
            'generation': self.generation,
            'notice': self.notice,
            'error': self.error,
        }


class SearchOrchestrator:
    """Owns the session and drives debounced, superseding search cycles"""

    def __init__(
        self,
        poi_provider,
        travel_provider=None,
        session: Optional[SessionContext] = None,
        normalizer: Optional[VenueNormalizer] = None,
        pipeline: Optional[VenueFilterPipeline] = None,
        debounce_s: float = DEBOUNCE_S,
        call_timeout_s: float = DEFAULT_TIMEOUT_S,
        fairness_candidates: int = FAIRNESS_CANDIDATES,
    ):
        self.poi_provider = poi_provider
        self.travel_provider = travel_provider
        self.session = session or SessionContext()
        self.normalizer = normalizer or VenueNormalizer()
        self.pipeline = pipeline or VenueFilterPipeline()
        self.debounce_s = debounce_s
        self.call_timeout_s = call_timeout_s
        self.fairness_candidates = fairness_candidates

        self._generation = 0
        self._timer: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task] = None
        self._observers: List[Callable[[SearchSnapshot], None]] = []
        self._notice: Optional[str] = None
        self._snapshot = SearchSnapshot(filters=self.session.filters)

    # --- Read side ---
    @property
    def snapshot(self) -> SearchSnapshot:
        return self._snapshot

    @property
    def state(self) -> CycleState:
        return self._snapshot.state

    @property
    def venues(self) -> Tuple[Venue, ...]:
        return self._snapshot.venues

    @property
    def search_area(self) -> Optional[SearchArea]:
        return self.session.area_model.snapshot()

    @property
    def traffic_ranking_available(self) -> bool:
        return self.travel_provider is not None and getattr(self.travel_provider, 'has_credential', False)

    def subscribe(self, callback: Callable[[SearchSnapshot], None]) -> Callable[[], None]:
        """Register an observer; returns a function that unregisters it"""
        self._observers.append(callback)

        def unsubscribe():
            if callback in self._observers:
                self._observers.remove(callback)
        return unsubscribe

    def _publish(self, **changes):
        base = dict(
            state=self._snapshot.state,
            # the area only moves together with the venues it produced
            area=self._snapshot.area,
            venues=self._snapshot.venues,
            filters=self.session.filters,
            participants=self.session.participants,
            generation=self._generation,
            notice=self._notice,
            error=None,
        )
        base.update(changes)
        self._snapshot = SearchSnapshot(**base)
        for callback in list(self._observers):
            try:
                callback(self._snapshot)
            except Exception:
                logger.exception("Search observer raised")

    # --- Triggers ---
    def add_participant(self, participant: Participant) -> Participant:
        self.session.add_participant(participant)
        logger.info(f"Participant added: {participant.display_name} ({participant.id})")
        self._participants_changed()
        return participant

    def remove_participant(self, participant_id: str) -> Participant:
        removed = self.session.remove_participant(participant_id)
        logger.info(f"Participant removed: {removed.display_name} ({removed.id})")
        self._participants_changed()
        return removed

    def _participants_changed(self):
        # Re-anchors on the new centroid, which also drops a manual center
        area = self.session.recenter()
        if area is None:
            self._invalidate()
            self._task = None
            self._publish(state=CycleState.IDLE, area=None, venues=())
            return
        self._publish()
        self._schedule()

    def set_radius(self, meters: float) -> float:
        radius = self.session.area_model.set_radius(meters)
        self._schedule()
        return radius

    def set_manual_center(self, coord: GeoCoordinate) -> SearchArea:
        if not self.session.participants:
            raise InsufficientParticipants("add a participant before moving the search center")
        area = self.session.area_model.set_manual_center(coord)
        self._schedule()
        return area

    def set_filters(self, filters: SearchFilters) -> SearchFilters:
        """
        Apply new filters. Selecting traffic ranking without a travel-time
        credential falls back to distance ranking and sets a notice.
        """
        self.pipeline.category_class(filters.category_class)
        self._notice = None
        if filters.ranking_mode == RankingMode.TRAFFIC_FAIRNESS and not self.traffic_ranking_available:
            logger.warning("Traffic ranking requested without a travel-time credential")
            self._notice = MISSING_CREDENTIAL_NOTICE
            filters = SearchFilters(
                category_class=filters.category_class,
                require_alcohol=filters.require_alcohol,
                ranking_mode=RankingMode.DISTANCE,
            )
        self.session.filters = filters
        self._publish()
        self._schedule()
        return filters

    def refresh(self):
        """Start a cycle now, skipping the debounce window"""
        self._start_cycle(self._invalidate())

    # --- Cycle control ---
    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _cancel_pending(self):
        self._cancel_timer()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def _invalidate(self) -> int:
        """New generation; whatever is in flight can no longer publish"""
        self._cancel_timer()
        self._generation += 1
        if self._task is not None and not self._task.done():
            logger.info(f"Generation {self._generation} supersedes an in-flight cycle")
            self._task.cancel()
        return self._generation

    def _schedule(self):
        """Single pending slot: a new trigger replaces the waiting one"""
        loop = asyncio.get_running_loop()
        generation = self._invalidate()
        if self._snapshot.state == CycleState.FAILED:
            self._publish(state=CycleState.IDLE)
        self._timer = loop.call_later(self.debounce_s, self._start_cycle, generation)

    def _start_cycle(self, generation: int):
        self._timer = None
        if generation != self._generation:
            return

        area = self.session.area_model.snapshot()
        if area is None:
            self._task = None
            self._publish(state=CycleState.IDLE, area=None, venues=())
            return

        self._publish(state=CycleState.SEARCHING, area=area)
        self._task = asyncio.get_running_loop().create_task(
            self._run_cycle(generation, area, self.session.filters, self.session.participants)
        )

    def _ranking_for(self, mode: RankingMode):
        if mode == RankingMode.TRAFFIC_FAIRNESS:
            return TrafficFairnessRanking(
                self.travel_provider,
                candidates=self.fairness_candidates,
                timeout=self.call_timeout_s,
            )
        return DistanceRanking()

    async def _search(self, area: SearchArea, filters: SearchFilters, participants) -> Tuple[List[Venue], bool]:
        """Ranked venues, and whether traffic ranking had to fall back to distance"""
        category_class = self.pipeline.category_class(filters.category_class)
        raws = await call_provider(
            self.poi_provider.query_area, area.center, area.radius_meters, category_class,
            timeout=self.call_timeout_s, provider=getattr(self.poi_provider, 'name', None),
        )
        venues = self.normalizer.normalize_all(raws)
        venues = self.pipeline.apply(venues, filters, area)
        downgraded = False
        try:
            ranking = self._ranking_for(filters.ranking_mode)
        except MissingCredential as e:
            logger.warning(f"{e}; ranking by distance")
            downgraded = True
            ranking = DistanceRanking()
        return await ranking.rank(venues, participants), downgraded

    async def _run_cycle(self, generation: int, area: SearchArea, filters: SearchFilters, participants):
        started = time.perf_counter()
        logger.info(
            "Cycle %d: searching %.0f m around (%.5f, %.5f) class=%s alcohol=%s mode=%s",
            generation, area.radius_meters, area.center.latitude, area.center.longitude,
            filters.category_class, filters.require_alcohol, filters.ranking_mode.value,
        )
        try:
            ranked, downgraded = await self._search(area, filters, participants)
        except asyncio.CancelledError:
            logger.info(f"Cycle {generation} cancelled")
            raise
        except Exception as e:
            if not isinstance(e, SpotFinderError):
                logger.error(f"Cycle {generation} failed unexpectedly: {e}", exc_info=True)
                e = VenueSourceUnavailable(str(e))
            if generation != self._generation:
                logger.info(f"Cycle {generation} failed after being superseded; ignoring")
                return
            logger.warning(f"Cycle {generation} failed: {e}")
            # Previous venues stay visible
            self._publish(state=CycleState.FAILED, error=str(e), notice=SOURCE_UNAVAILABLE_NOTICE)
            return

        if generation != self._generation:
            logger.info(f"Discarding result of superseded cycle {generation} (current {self._generation})")
            return

        if downgraded:
            self._notice = MISSING_CREDENTIAL_NOTICE
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        logger.info(f"Cycle {generation} ready: {len(ranked)} venue(s) in {elapsed_ms:.1f} ms")
        self._publish(state=CycleState.READY, area=area, venues=tuple(ranked))

    async def wait_until_settled(self) -> SearchSnapshot:
        """Wait for the pending debounce timer and any in-flight cycle"""
        while True:
            if self._timer is not None:
                await asyncio.sleep(min(self.debounce_s, 0.05) or 0.01)
                continue
            task = self._task
            if task is None or task.done():
                return self._snapshot
            await asyncio.wait({task})

    def close(self):
        self._cancel_pending()
        self._observers.clear()
