from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Sequence

import pandas as pd

from .config import RaceConfig
from .data.panel import DATE, ENTITY, ObservationPanel
from .data.registry import EntityRegistry
from .errors import EmptyTimelineError

logger = logging.getLogger(__name__)


class Metric(str, Enum):
    STAKE = "stake"
    EARNINGS = "earnings"


@dataclass(frozen=True)
class RankedEntry:
    entity_id: str
    name: str
    color_token: str
    raw_value: str
    numeric_value: float


@dataclass(frozen=True)
class Frame:
    """One fully ranked snapshot. `rankings` maps each Metric to its top-K tuple."""

    date: int
    formatted_date: str
    rankings: Mapping[Metric, tuple[RankedEntry, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "rankings", MappingProxyType(dict(self.rankings)))

    def ranking(self, metric: Metric | str) -> tuple[RankedEntry, ...]:
        return self.rankings[Metric(metric)]

    @property
    def timestamp(self) -> pd.Timestamp:
        return pd.Timestamp(self.date, unit="s", tz="UTC")

    @property
    def year_label(self) -> str:
        return str(self.timestamp.year)

    @property
    def day_label(self) -> str:
        ts = self.timestamp
        return f"{ts:%b} {ts.day}"


@dataclass(frozen=True)
class Timeline:
    """Frames in strictly increasing date order."""

    frames: tuple[Frame, ...]

    def __len__(self) -> int:
        return len(self.frames)

    @property
    def last_index(self) -> int:
        return len(self.frames) - 1

    @property
    def dates(self) -> list[int]:
        return [f.date for f in self.frames]

    def clamp(self, index: int) -> int:
        return max(0, min(int(index), self.last_index))

    def frame(self, index: int) -> Frame:
        return self.frames[self.clamp(index)]


def format_date(date: int) -> str:
    """'Nov 25 2023' style label for an epoch-seconds date (UTC)."""
    ts = pd.Timestamp(date, unit="s", tz="UTC")
    return f"{ts:%b} {ts.day} {ts.year}"


def to_float(raw) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return 0.0
    return value if math.isfinite(value) else 0.0


def eligible_entities(
    entity_ids: Sequence[str],
    registry: EntityRegistry,
    filter_deprecated: bool,
    deprecated_words: Sequence[str],
) -> list[str]:
    """Discovered ids with metadata, minus deprecated-looking names when filtering."""
    words = [w.lower() for w in deprecated_words]
    out = []
    for entity_id in entity_ids:
        entity = registry.get(entity_id)
        if entity is None:
            continue
        if filter_deprecated:
            name = entity.name.lower()
            if any(w in name for w in words):
                continue
        out.append(entity.id)
    return out


def last_known_values(
    panel: ObservationPanel, entity_ids: Sequence[str], metric: Metric | str
) -> pd.DataFrame:
    """Forward-filled metric table: index=date, columns=entity_id, values=decimal str.

    Entities without any observation yet hold "0". A row that does not report
    the metric leaves the previous value in place.
    """
    metric = Metric(metric).value
    ids = [str(e).lower() for e in entity_ids]
    df = panel.df[panel.df[ENTITY].isin(ids)]
    dates = sorted(df[DATE].unique().tolist())

    # last reported value per (date, entity); None means not reported
    per_day = df.groupby([DATE, ENTITY], sort=True)[metric].last()
    wide = per_day.unstack(ENTITY) if len(per_day) else pd.DataFrame(index=dates)
    wide = wide.reindex(index=dates, columns=ids)
    return wide.ffill().fillna("0").astype(object)


def _rank(
    values: pd.Series, candidates: Sequence[str], registry: EntityRegistry, k: int
) -> tuple[RankedEntry, ...]:
    entries = []
    for entity_id in candidates:
        entity = registry.get(entity_id)
        raw = str(values[entity_id])
        entries.append(
            RankedEntry(
                entity_id=entity_id,
                name=entity.name,
                color_token=entity.color_token,
                raw_value=raw,
                numeric_value=to_float(raw),
            )
        )
    # sorted() is stable with reverse=True, ties keep discovery order
    entries = sorted(entries, key=lambda e: e.numeric_value, reverse=True)
    return tuple(entries[:k])


def build_timeline(
    panel: ObservationPanel,
    entity_ids: Sequence[str],
    registry: EntityRegistry,
    config: RaceConfig,
    filter_deprecated: bool = False,
) -> Timeline:
    """Rebuild the full ranked timeline from raw observations.

    Both metrics are ranked for every date so switching metric needs no rebuild.
    """
    ids = list(dict.fromkeys(str(e).lower() for e in entity_ids))
    tables = {m: last_known_values(panel, ids, m) for m in Metric}
    dates = tables[Metric.STAKE].index.tolist()
    if not dates:
        raise EmptyTimelineError("No data found")

    candidates = eligible_entities(
        ids, registry, filter_deprecated, config.deprecated_words
    )
    logger.debug(
        f"build_timeline: {len(dates)} dates, {len(candidates)}/{len(ids)} candidates"
    )

    frames = []
    for date in dates:
        rankings = {
            m: _rank(tables[m].loc[date], candidates, registry, config.display_count)
            for m in Metric
        }
        frames.append(
            Frame(date=int(date), formatted_date=format_date(int(date)), rankings=rankings)
        )
    return Timeline(frames=tuple(frames))
