from .query import Query
from .schema import TableSchema, DAILY_BUCKETS, OPERATORS
from .panel import Observation, ObservationPanel
from .registry import Entity, EntityRegistry
from .subgraph import SubgraphDataSource

__all__ = [
    "Query",
    "TableSchema",
    "DAILY_BUCKETS",
    "OPERATORS",
    "Observation",
    "ObservationPanel",
    "Entity",
    "EntityRegistry",
    "SubgraphDataSource",
]
