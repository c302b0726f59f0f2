from typing import Mapping, Protocol
import pandas as pd

from .query import Query
from .schema import TableSchema


class DataSource(Protocol):
    name: str

    def schemas(self) -> dict[str, TableSchema]: ...

    def fetch(self, q: Query) -> pd.DataFrame:
        """Return a long DataFrame with `entity_id` (+ `date`) and requested columns.

        Must apply pushdowns: columns, date range / cursor, entities, order, limit.
        Raises QueryError on transport failures and error payloads.
        """
        ...

    def fetch_batch(self, queries: Mapping[str, Query]) -> dict[str, pd.DataFrame]:
        """Run several queries in one round-trip, keyed by alias."""
        ...
