class SpotFinderError(Exception):
    """Base class for all errors raised by the venue search engine"""


class InsufficientParticipants(SpotFinderError):
    """Centroid requested for an empty participant set"""


class InvalidRadius(SpotFinderError, ValueError):
    """Non-positive search radius"""


class VenueSourceUnavailable(SpotFinderError):
    """A POI, geocoding or travel-time provider failed, timed out or returned malformed data"""

    def __init__(self, message: str, provider: str = None):
        super().__init__(message)
        self.provider = provider


class MissingCredential(SpotFinderError):
    """Traffic-fairness ranking selected without a travel-time provider key"""


class UnknownParticipant(SpotFinderError, KeyError):
    pass


class UnknownCategoryClass(SpotFinderError, ValueError):
    pass
