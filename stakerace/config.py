from __future__ import annotations

import numbers
import os
from dataclasses import dataclass, field
from typing import Optional, Sequence

import pandas as pd
from dotenv import load_dotenv


GATEWAY_URL = "https://gateway.thegraph.com/api/{api_key}/subgraphs/id/{subgraph_id}"

BAR_COLORS = (
    "bg-red-600",
    "bg-orange-500",
    "bg-yellow-400",
    "bg-lime-600",
    "bg-green-600",
    "bg-emerald-500",
    "bg-teal-600",
    "bg-cyan-500",
    "bg-sky-600",
    "bg-blue-600",
    "bg-indigo-600",
    "bg-purple-600",
    "bg-fuchsia-600",
    "bg-pink-500",
    "bg-rose-600",
    "bg-amber-500",
    "bg-slate-600",
    "bg-stone-600",
)

DEPRECATED_WORDS = ("old", "testnet", "deprecated")


def _epoch_seconds(x: pd.Timestamp | str | int) -> int:
    if isinstance(x, numbers.Integral):
        return int(x)
    ts = pd.Timestamp(x)
    if ts.tzinfo is None:
        ts = ts.tz_localize("UTC")
    return int(ts.tz_convert("UTC").timestamp())


@dataclass(frozen=True)
class RaceConfig:
    """All tunables of the race pipeline. Timestamps are epoch seconds (UTC)."""

    graph_url: Optional[str] = None
    start_date: int = _epoch_seconds("2023-11-25")

    # discovery
    snapshot_interval_days: int = 15
    discovery_top_n: int = 75

    # metadata / history
    metadata_chunk_size: int = 100
    page_size: int = 1000
    request_timeout_s: float = 30.0

    # ranking
    display_count: int = 50
    deprecated_words: Sequence[str] = DEPRECATED_WORDS
    palette: Sequence[str] = BAR_COLORS

    # playback
    normal_speed_ms: int = 100
    fast_speed_ms: int = 30

    # axis
    marker_slots: int = 16
    wei_per_token: float = 1e18

    extra_headers: dict = field(default_factory=dict)

    def __post_init__(self) -> None:
        # accept date-like start values
        object.__setattr__(self, "start_date", _epoch_seconds(self.start_date))
        if self.display_count <= 0:
            raise ValueError("display_count must be positive")
        if self.page_size <= 0 or self.metadata_chunk_size <= 0:
            raise ValueError("page_size and metadata_chunk_size must be positive")
        if self.snapshot_interval_days <= 0:
            raise ValueError("snapshot_interval_days must be positive")
        if not self.palette:
            raise ValueError("palette must not be empty")

    @property
    def snapshot_interval_s(self) -> int:
        return self.snapshot_interval_days * 24 * 60 * 60

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None, **overrides) -> "RaceConfig":
        """Build a config from STAKERACE_* environment variables.

        A .env file (``dotenv_path`` or the nearest one found) is loaded first;
        variables already set in the process environment take precedence.
        STAKERACE_GRAPH_URL wins; otherwise the gateway URL is assembled from
        STAKERACE_GRAPH_API_KEY and STAKERACE_SUBGRAPH_ID.
        """
        load_dotenv(dotenv_path, override=False)
        url = os.environ.get("STAKERACE_GRAPH_URL")
        if not url:
            api_key = os.environ.get("STAKERACE_GRAPH_API_KEY")
            subgraph_id = os.environ.get("STAKERACE_SUBGRAPH_ID")
            if api_key and subgraph_id:
                url = GATEWAY_URL.format(api_key=api_key, subgraph_id=subgraph_id)
        kwargs = {"graph_url": url}
        start = os.environ.get("STAKERACE_START_DATE")
        if start:
            kwargs["start_date"] = start
        kwargs.update(overrides)
        return cls(**kwargs)
