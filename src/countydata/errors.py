"""
Pipeline Error Taxonomy

Exceptions raised inside the acquisition pipeline. Everything except
ConcurrencyConflict is absorbed close to where it is raised and shows up
only as reduced counts, lower confidence or an entry in an errors list.
"""


class CountyDataError(Exception):
    """Base class for pipeline errors."""
    pass


class SourceUnreachable(CountyDataError):
    """Network failure, timeout or non-2xx response from a source."""

    def __init__(self, url: str, reason: str, status: int = None):
        self.url = url
        self.reason = reason
        self.status = status
        super().__init__(f"{url}: {reason}")


class ContentMismatch(CountyDataError):
    """Source reachable but its content carries no property-data signals."""
    pass


class NormalizationFailure(CountyDataError):
    """Candidate does not meet the minimum property schema."""
    pass


class EnrichmentFailure(CountyDataError):
    """Reference data service returned an error or unusable payload."""
    pass


class PipelineStageFailure(CountyDataError):
    """Unexpected failure inside a processing stage or phase."""
    pass


class ConcurrencyConflict(CountyDataError):
    """Caller contract violation around single-flight operations."""
    pass


class IntegrationAlreadyRunning(ConcurrencyConflict):
    """start_integration() called while a run is active."""

    def __init__(self):
        super().__init__("Integration is already running")
