from collections import OrderedDict
from typing import Optional, Tuple

from .errors import UnknownParticipant
from .models import Participant, SearchFilters
from .search_area import SearchAreaModel


class SessionContext:
    """
    Everything one user session owns: participants in insertion order, the
    current filters and the search area model. Lives only as long as the process.
    """

    def __init__(self, area_model: Optional[SearchAreaModel] = None, filters: Optional[SearchFilters] = None):
        self.area_model = area_model or SearchAreaModel()
        self.filters = filters or SearchFilters()
        self._participants = OrderedDict()

    @property
    def participants(self) -> Tuple[Participant, ...]:
        return tuple(self._participants.values())

    def add_participant(self, participant: Participant) -> Participant:
        if participant.id in self._participants:
            raise ValueError(f"participant {participant.id} already exists")
        self._participants[participant.id] = participant
        return participant

    def remove_participant(self, participant_id: str) -> Participant:
        try:
            return self._participants.pop(participant_id)
        except KeyError:
            raise UnknownParticipant(f"no participant with id {participant_id!r}")

    def recenter(self):
        """Re-anchor the search area on the participants' centroid (or clear it)"""
        if self._participants:
            return self.area_model.recompute_from_participants(self.participants)
        self.area_model.clear()
        return None
