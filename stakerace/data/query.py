from dataclasses import dataclass
from typing import Optional, Sequence, Literal


OrderDirection = Literal["asc", "desc"]


def _lower_ids(x: Optional[Sequence[str]]) -> Optional[tuple[str, ...]]:
    if x is None:
        return None
    return tuple(str(e).lower() for e in x)


@dataclass(frozen=True)
class Query:
    table: str
    columns: Sequence[str]

    # epoch seconds; start is inclusive, end is exclusive
    start: Optional[int] = None
    end: Optional[int] = None
    # strict lower bound, used as the pagination cursor
    after: Optional[int] = None
    entities: Optional[Sequence[str]] = None

    order_by: Optional[str] = None
    order_direction: OrderDirection = "asc"
    limit: Optional[int] = None

    def __post_init__(self) -> None:
        # ids are case-insensitive; keep them lower-case everywhere
        object.__setattr__(self, "entities", _lower_ids(self.entities))
        object.__setattr__(self, "columns", tuple(self.columns))
        if self.order_direction not in ("asc", "desc"):
            raise ValueError(f"Unknown order_direction={self.order_direction}")
