class RaceError(Exception):
    """Base class for all stakerace failures."""


class QueryError(RaceError):
    """Remote query failed or the service answered with an error payload."""


class DiscoveryError(RaceError):
    """Entity discovery (or its metadata lookup) failed; initialization aborts."""


class AggregationError(RaceError):
    """A history page failed; no partial history is kept."""


class EmptyTimelineError(RaceError):
    """Setup succeeded but produced no dated observations."""


class MetadataParseError(RaceError):
    """Per-entity metadata payload is malformed. Always recovered locally."""
