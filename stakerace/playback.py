from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from .config import RaceConfig
from .timeline import Frame, Metric, Timeline

logger = logging.getLogger(__name__)


class TickHandle(Protocol):
    def cancel(self) -> None: ...


class TickScheduler(Protocol):
    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TickHandle: ...


class AsyncioTickScheduler:
    """Schedules ticks on an asyncio loop (the running loop by default)."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TickHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay_s, callback)


class ThreadingTickScheduler:
    """Schedules ticks with threading.Timer; callbacks run on the timer thread."""

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TickHandle:
        timer = threading.Timer(delay_s, callback)
        timer.daemon = True
        timer.start()
        return timer


@dataclass
class PlaybackState:
    current_index: int = 0
    is_playing: bool = False
    speed_ms: int = 100
    active_metric: Metric = Metric.STAKE
    filter_deprecated: bool = False


RenderCallback = Callable[[int, Frame, Metric], None]


class Player:
    """Stopped/Playing state machine over a Timeline.

    At most one tick is pending. pause() and seek() cancel it before anything
    else and bump a sequence token. Every transition holds the player lock, and
    a tick re-checks the token after rendering, so a timer that fired on another
    thread can neither advance nor reschedule after a newer manual action.
    """

    def __init__(
        self,
        timeline: Timeline,
        scheduler: TickScheduler,
        on_render: Optional[RenderCallback] = None,
        config: Optional[RaceConfig] = None,
        state: Optional[PlaybackState] = None,
    ):
        self.config = config or RaceConfig()
        self.timeline = timeline
        self._scheduler = scheduler
        self._on_render = on_render
        self._pending: Optional[TickHandle] = None
        self._seq = 0
        self._lock = threading.RLock()
        self.state = state or PlaybackState(speed_ms=self.config.normal_speed_ms)
        # opens on the most recent snapshot
        self.state.current_index = timeline.last_index
        self.state.is_playing = False

    @property
    def last_index(self) -> int:
        return self.timeline.last_index

    @property
    def current_frame(self) -> Frame:
        with self._lock:
            return self.timeline.frame(self.state.current_index)

    @property
    def has_pending_tick(self) -> bool:
        return self._pending is not None

    # -- scheduling -------------------------------------------------------

    def _cancel(self) -> None:
        self._seq += 1
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _schedule(self) -> None:
        self._cancel()
        seq = self._seq
        delay = self.state.speed_ms / 1000.0
        self._pending = self._scheduler.call_later(delay, lambda: self._fire(seq))

    def _fire(self, seq: int) -> None:
        with self._lock:
            if seq != self._seq:
                logger.debug("dropping stale tick")
                return
            self._pending = None
        self._advance(seq)

    def _emit(self, idx: int, frame: Frame, metric: Metric) -> None:
        if self._on_render is not None:
            self._on_render(idx, frame, metric)

    def _advance(self, seq: int) -> None:
        with self._lock:
            if seq != self._seq or not self.state.is_playing:
                return
            idx = self.state.current_index
            frame = self.timeline.frame(idx)
            metric = self.state.active_metric

        # rendered outside the lock so a manual action is never blocked by it
        self._emit(idx, frame, metric)

        with self._lock:
            if seq != self._seq or not self.state.is_playing:
                logger.debug("tick superseded while rendering")
                return
            if idx >= self.last_index:
                self.state.is_playing = False
                self._pending = None
                return
            self.state.current_index = idx + 1
            self._schedule()

    def render(self) -> None:
        with self._lock:
            idx = self.state.current_index
            self._emit(idx, self.timeline.frame(idx), self.state.active_metric)

    # -- transitions ------------------------------------------------------

    def play(self) -> None:
        with self._lock:
            if self.state.is_playing:
                return
            if self.state.current_index >= self.last_index:
                self.state.current_index = 0
            self.state.is_playing = True
            self._schedule()

    def tick(self) -> None:
        with self._lock:
            seq = self._seq
        self._advance(seq)

    def pause(self) -> None:
        with self._lock:
            self._cancel()
            self.state.is_playing = False

    def toggle_play(self) -> None:
        with self._lock:
            if self.state.is_playing:
                self.pause()
            else:
                self.play()

    def seek(self, index: int) -> None:
        with self._lock:
            self._cancel()
            self.state.is_playing = False
            self.state.current_index = self.timeline.clamp(index)
            self.render()

    def set_speed(self, speed_ms: int) -> None:
        """Delay for future ticks; an already pending tick keeps its delay."""
        with self._lock:
            self.state.speed_ms = max(1, int(speed_ms))

    def toggle_speed(self) -> None:
        normal, fast = self.config.normal_speed_ms, self.config.fast_speed_ms
        with self._lock:
            self.set_speed(fast if self.state.speed_ms == normal else normal)

    def set_metric(self, metric: Metric | str) -> None:
        with self._lock:
            self.state.active_metric = Metric(metric)
            self.render()

    def replace_timeline(self, timeline: Timeline) -> None:
        """Swap in a rebuilt timeline, keeping position and play state."""
        with self._lock:
            self.timeline = timeline
            self.state.current_index = timeline.clamp(self.state.current_index)
            self.render()

    def close(self) -> None:
        self.pause()
