"""stakerace: ranking-history reconstruction and playback for staking operators."""

from .config import RaceConfig
from .errors import (
    RaceError,
    QueryError,
    DiscoveryError,
    AggregationError,
    EmptyTimelineError,
    MetadataParseError,
)
from .data.query import Query
from .data.schema import TableSchema
from .data.panel import Observation, ObservationPanel
from .data.registry import Entity, EntityRegistry
from .data.subgraph import SubgraphDataSource

from .discovery import discover_entities, sampling_checkpoints
from .metadata import parse_metadata, color_token, resolve_metadata
from .history import aggregate_history
from .timeline import Metric, RankedEntry, Frame, Timeline, build_timeline
from .playback import (
    PlaybackState,
    Player,
    AsyncioTickScheduler,
    ThreadingTickScheduler,
)
from .scale import BarLayout, nice_step, marker_positions, layout_bars
from .session import RaceSession

__all__ = [
    "RaceConfig",
    "RaceError",
    "QueryError",
    "DiscoveryError",
    "AggregationError",
    "EmptyTimelineError",
    "MetadataParseError",
    "Query",
    "TableSchema",
    "Observation",
    "ObservationPanel",
    "Entity",
    "EntityRegistry",
    "SubgraphDataSource",
    "discover_entities",
    "sampling_checkpoints",
    "parse_metadata",
    "color_token",
    "resolve_metadata",
    "aggregate_history",
    "Metric",
    "RankedEntry",
    "Frame",
    "Timeline",
    "build_timeline",
    "PlaybackState",
    "Player",
    "AsyncioTickScheduler",
    "ThreadingTickScheduler",
    "BarLayout",
    "nice_step",
    "marker_positions",
    "layout_bars",
    "RaceSession",
]
