from __future__ import annotations

import logging
import time
from typing import Optional

from .config import RaceConfig
from .data.query import Query
from .data.source import DataSource
from .errors import DiscoveryError, QueryError

logger = logging.getLogger(__name__)

DAY_S = 24 * 60 * 60
CURRENT_TOP = "currentTop"


def sampling_checkpoints(start: int, now: int, interval_s: int) -> list[int]:
    """Checkpoints every `interval_s` from `start` up to `now`, plus `now` itself."""
    if interval_s <= 0:
        raise ValueError("interval_s must be positive")
    return list(range(int(start), int(now) + 1, int(interval_s))) + [int(now)]


def discovery_queries(config: RaceConfig, now: int) -> dict[str, Query]:
    """One top-N bucket query per checkpoint day plus the current top-N operators.

    Operators that rose and fell entirely between two checkpoints are not seen;
    sampling trades completeness for a bounded number of selections.
    """
    queries = {}
    checkpoints = sampling_checkpoints(config.start_date, now, config.snapshot_interval_s)
    for idx, ts in enumerate(checkpoints):
        queries[f"t{idx}"] = Query(
            table="daily_buckets",
            columns=["stake"],
            start=ts,
            end=ts + DAY_S,
            order_by="stake",
            order_direction="desc",
            limit=config.discovery_top_n,
        )
    queries[CURRENT_TOP] = Query(
        table="operators",
        columns=["stake"],
        order_by="stake",
        order_direction="desc",
        limit=config.discovery_top_n,
    )
    return queries


def discover_entities(
    source: DataSource, config: RaceConfig, now: Optional[int] = None
) -> list[str]:
    """Return the candidate operator ids, de-duplicated in first-seen order."""
    now = int(time.time()) if now is None else int(now)
    queries = discovery_queries(config, now)
    logger.info(f"Scanning history ({len(queries) - 1} snapshots)")

    try:
        results = source.fetch_batch(queries)
    except QueryError as exc:
        raise DiscoveryError(f"Operator discovery failed: {exc}") from exc

    seen: dict[str, None] = {}
    for alias in queries:
        df = results.get(alias)
        if df is None:
            raise DiscoveryError(f"Operator discovery returned no {alias!r} selection")
        for entity_id in df["entity_id"].tolist() if not df.empty else []:
            seen.setdefault(str(entity_id).lower(), None)

    logger.info(f"Found {len(seen)} distinct operators")
    return list(seen)
