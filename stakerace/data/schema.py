from dataclasses import dataclass
from typing import Mapping, Optional, Sequence


@dataclass(frozen=True)
class TableSchema:
    name: str
    # remote collection name and remote->canonical column mapping
    remote_name: str
    columns: Mapping[str, str]
    time_column: Optional[str] = "date"
    # remote field used for the entity filter (e.g. "operator_in")
    entity_filter: str = "id_in"
    # dotted remote path of the entity id
    entity_path: Sequence[str] = ("id",)


DAILY_BUCKETS = TableSchema(
    name="daily_buckets",
    remote_name="operatorDailyBuckets",
    columns={
        "date": "date",
        "stake": "valueWithoutEarnings",
        "earnings": "cumulativeEarningsWei",
    },
    entity_filter="operator_in",
    entity_path=("operator", "id"),
)

OPERATORS = TableSchema(
    name="operators",
    remote_name="operators",
    columns={
        "stake": "valueWithoutEarnings",
        "metadata": "metadataJsonString",
    },
    time_column=None,
)

SCHEMAS = {s.name: s for s in (DAILY_BUCKETS, OPERATORS)}
