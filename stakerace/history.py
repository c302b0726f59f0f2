from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

from .config import RaceConfig
from .data.panel import ObservationPanel
from .data.query import Query
from .data.source import DataSource
from .errors import AggregationError, QueryError

logger = logging.getLogger(__name__)

PageCallback = Callable[[int, int], None]


def aggregate_history(
    source: DataSource,
    entity_ids: Sequence[str],
    config: RaceConfig,
    on_page: Optional[PageCallback] = None,
) -> ObservationPanel:
    """Page through all daily buckets of `entity_ids` after `config.start_date`.

    The cursor is the last date of the previous page and the next page asks for
    strictly later dates. Pages are fetched one at a time.
    """
    pages: list[ObservationPanel] = []
    cursor = config.start_date
    rows = 0

    while True:
        q = Query(
            table="daily_buckets",
            columns=["stake", "earnings"],
            entities=list(entity_ids),
            after=cursor,
            order_by="date",
            order_direction="asc",
            limit=config.page_size,
        )
        try:
            df = source.fetch(q)
            page = ObservationPanel.from_long(df)
        except (QueryError, ValueError) as exc:
            raise AggregationError(f"History error: {exc}") from exc

        if len(page) == 0:
            break
        pages.append(page)
        rows += len(page)
        if on_page is not None:
            on_page(len(pages), rows)

        last = page.max_date()
        if last is None or last <= cursor:
            raise AggregationError(f"History cursor did not advance past {cursor}")
        cursor = last
        if len(page) < config.page_size:
            break

    logger.debug(f"aggregated {rows} observations in {len(pages)} pages")
    return ObservationPanel.concat(pages)
