"""Bar projection for the renderer: widths and round-number scale markers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

import numpy as np

from .timeline import RankedEntry

DEFAULT_SLOTS = 16
FALLBACK_STEP = 1000.0
MAX_MARKERS = 100
MARKER_LIMIT_PCT = 99.0
MIN_WIDTH_PCT = 0.5


def nice_step(max_value: float, slots: int = DEFAULT_SLOTS) -> float:
    """Round step (1, 2 or 5 times a power of ten) giving about `slots` markers."""
    if not max_value or max_value <= 0 or not np.isfinite(max_value):
        return FALLBACK_STEP
    rough = max_value / slots
    magnitude = 10.0 ** np.floor(np.log10(rough))
    normalized = rough / magnitude
    if normalized < 1.5:
        snapped = 1
    elif normalized < 3:
        snapped = 2
    elif normalized < 7:
        snapped = 5
    else:
        snapped = 10
    return float(snapped * magnitude)


def marker_positions(value: float, step: float) -> tuple[float, ...]:
    """Percent offsets of every multiple of `step` inside a bar of `value`."""
    if value <= 0 or step <= 0:
        return ()
    count = min(int(np.floor(value / step)), MAX_MARKERS)
    if count < 1:
        return ()
    pos = np.arange(1, count + 1) * step / value * 100.0
    return tuple(float(p) for p in pos[pos < MARKER_LIMIT_PCT])


@dataclass(frozen=True)
class BarLayout:
    rank: int
    entity_id: str
    name: str
    color_token: str
    raw_value: str
    width_pct: float
    markers: tuple[float, ...]


def layout_bars(
    entries: Sequence[RankedEntry],
    unit: float = 1e18,
    slots: int = DEFAULT_SLOTS,
) -> tuple[BarLayout, ...]:
    """Project a ranking into bar rows. Values are scaled by `unit` for the axis."""
    if not entries:
        return ()
    top = entries[0].numeric_value
    max_raw = top if top > 0 else 1.0
    step = nice_step(top / unit, slots)

    bars = []
    for rank, e in enumerate(entries):
        width = max(e.numeric_value / max_raw * 100.0, MIN_WIDTH_PCT)
        bars.append(
            BarLayout(
                rank=rank,
                entity_id=e.entity_id,
                name=e.name,
                color_token=e.color_token,
                raw_value=e.raw_value,
                width_pct=float(width),
                markers=marker_positions(e.numeric_value / unit, step),
            )
        )
    return tuple(bars)


def diff_membership(
    previous_ids: Iterable[str], bars: Sequence[BarLayout]
) -> tuple[list[str], list[str]]:
    """(entered, exited) ids between the previous frame's bars and `bars`.

    Rows present in both are moved, not recreated.
    """
    prev = list(dict.fromkeys(previous_ids))
    current = [b.entity_id for b in bars]
    prev_set, cur_set = set(prev), set(current)
    entered = [i for i in current if i not in prev_set]
    exited = [i for i in prev if i not in cur_set]
    return entered, exited
