import asyncio
import logging
import sys

from stakerace.config import RaceConfig
from stakerace.data.subgraph import SubgraphDataSource
from stakerace.playback import AsyncioTickScheduler
from stakerace.session import RaceSession

from examples.dummy_source import DummySource


def print_frame(idx, frame, metric):
    top = frame.ranking(metric)[:5]
    line = " | ".join(f"{e.name} {e.numeric_value / 1e18:,.0f}" for e in top)
    print(f"[{idx:4d}] {frame.formatted_date:>12} {metric.value:>8}: {line}")


async def main(live: bool = False):
    logging.basicConfig(level=logging.INFO)
    if live:
        config = RaceConfig.from_env()
        source = SubgraphDataSource.from_config(config)
    else:
        config = RaceConfig(normal_speed_ms=20, fast_speed_ms=5)
        source = DummySource(start=config.start_date + 86400)

    session = RaceSession(
        source,
        AsyncioTickScheduler(asyncio.get_running_loop()),
        config,
        on_render=print_frame,
        on_progress=lambda msg, pct: print(f"{pct:3d}% {msg}"),
    )
    # network I/O runs off the loop thread; ticks stay on the loop
    await asyncio.to_thread(session.load)

    print("Frames:", session.frame_count())
    session.toggle_play()
    while session.state.is_playing:
        await asyncio.sleep(0.05)

    session.set_metric("earnings")
    session.toggle_filter()
    print("Bars:", [(b.name, round(b.width_pct, 1)) for b in session.current_bars()[:3]])
    session.close()


if __name__ == "__main__":
    asyncio.run(main(live="--live" in sys.argv))
