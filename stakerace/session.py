from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .config import RaceConfig
from .data.panel import ObservationPanel
from .data.registry import EntityRegistry
from .data.source import DataSource
from .discovery import discover_entities
from .errors import RaceError
from .history import aggregate_history
from .metadata import resolve_metadata
from .playback import PlaybackState, Player, RenderCallback, TickScheduler
from .scale import BarLayout, layout_bars
from .timeline import Frame, Metric, Timeline, build_timeline

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int], None]


@dataclass(frozen=True)
class RaceData:
    """Everything fetched for one session; the raw panel is kept for rebuilds."""

    entity_ids: tuple[str, ...]
    registry: EntityRegistry
    observations: ObservationPanel


class RaceSession:
    """Runs discovery -> metadata -> history -> timeline and owns playback.

    `epoch` increases on every reset; a load whose epoch went stale while it
    was fetching drops its results.
    """

    def __init__(
        self,
        source: DataSource,
        scheduler: TickScheduler,
        config: Optional[RaceConfig] = None,
        on_render: Optional[RenderCallback] = None,
        on_progress: Optional[ProgressCallback] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.source = source
        self.scheduler = scheduler
        self.config = config or RaceConfig()
        self._on_render = on_render
        self._on_progress = on_progress
        self._clock = clock

        self.epoch = 0
        self.data: Optional[RaceData] = None
        self.player: Optional[Player] = None
        self.error: Optional[RaceError] = None
        self._filter_deprecated = False

    # -- lifecycle --------------------------------------------------------

    def _progress(self, epoch: int, message: str, pct: int) -> None:
        if epoch == self.epoch and self._on_progress is not None:
            self._on_progress(message, pct)

    def reset(self) -> int:
        if self.player is not None:
            self.player.close()
        self.epoch += 1
        self.data = None
        self.player = None
        self.error = None
        return self.epoch

    def close(self) -> None:
        self.reset()

    def load(self) -> bool:
        """Fetch everything and build the timeline.

        Returns False when the session was reset meanwhile. Setup failures are
        logged, stored on `error` and re-raised.
        """
        epoch = self.reset()
        try:
            result = self._run_pipeline(epoch)
        except RaceError as exc:
            if epoch == self.epoch:
                logger.exception("race setup failed")
                self.error = exc
                raise
            return False
        if result is None or epoch != self.epoch:
            logger.debug(f"discarding stale load (epoch {epoch} != {self.epoch})")
            return False

        data, timeline = result
        self.data = data
        state = PlaybackState(
            speed_ms=self.config.normal_speed_ms,
            filter_deprecated=self._filter_deprecated,
        )
        self.player = Player(
            timeline, self.scheduler, self._on_render, self.config, state
        )
        self._progress(epoch, "Ready", 100)
        self.player.render()
        return True

    def retry(self) -> bool:
        return self.load()

    def _run_pipeline(self, epoch: int) -> Optional[tuple[RaceData, Timeline]]:
        cfg = self.config
        self._progress(epoch, "Discovering operators...", 0)
        ids = discover_entities(self.source, cfg, now=int(self._clock()))
        if epoch != self.epoch:
            return None

        self._progress(epoch, "Fetching details...", 50)
        registry = resolve_metadata(self.source, ids, cfg)
        if epoch != self.epoch:
            return None

        self._progress(epoch, "Reconstructing timeline...", 50)
        progress = {"pct": 50}

        def on_page(page: int, rows: int) -> None:
            progress["pct"] = min(progress["pct"] + 5, 95)
            self._progress(epoch, f"Loaded {rows} snapshots", progress["pct"])

        panel = aggregate_history(self.source, ids, cfg, on_page=on_page)
        data = RaceData(tuple(ids), registry, panel)
        timeline = build_timeline(
            panel, ids, registry, cfg, filter_deprecated=self._filter_deprecated
        )
        return data, timeline

    # -- renderer pull interface -----------------------------------------

    @property
    def ready(self) -> bool:
        return self.player is not None

    @property
    def state(self) -> Optional[PlaybackState]:
        return self.player.state if self.player is not None else None

    def frame_count(self) -> int:
        return len(self.player.timeline) if self.player is not None else 0

    def get_frame(self, index: int) -> Optional[Frame]:
        if self.player is None:
            return None
        return self.player.timeline.frame(index)

    def current_bars(self) -> tuple[BarLayout, ...]:
        if self.player is None:
            return ()
        frame = self.player.current_frame
        entries = frame.ranking(self.player.state.active_metric)
        return layout_bars(entries, self.config.wei_per_token, self.config.marker_slots)

    # -- user controls -----------------------------------------------------

    def toggle_play(self) -> None:
        if self.player is not None:
            self.player.toggle_play()

    def toggle_speed(self) -> None:
        if self.player is not None:
            self.player.toggle_speed()

    def set_metric(self, metric: Metric | str) -> None:
        if self.player is not None:
            self.player.set_metric(metric)

    def seek(self, index: int) -> None:
        if self.player is not None:
            self.player.seek(index)

    def set_filter_deprecated(self, enabled: bool) -> None:
        """Rebuild rankings from the stored raw observations with the filter set."""
        self._filter_deprecated = bool(enabled)
        if self.player is None or self.data is None:
            return
        self.player.state.filter_deprecated = self._filter_deprecated
        timeline = build_timeline(
            self.data.observations,
            self.data.entity_ids,
            self.data.registry,
            self.config,
            filter_deprecated=self._filter_deprecated,
        )
        self.player.replace_timeline(timeline)

    def toggle_filter(self) -> None:
        self.set_filter_deprecated(not self._filter_deprecated)
