"""
Simulation controller.

Drives one map surface: scenario selection, the fixed-interval tick loop and
teardown. Two modes:
- generated: the scenario's generator output is advanced by the motion
  integrator every tick
- replay: a SimulationFeed supplies one timestep per tick; its messages go to
  the message log
"""

import asyncio
import logging
from enum import Enum
from typing import Callable, Optional, Union

from .config import SimConfig
from .entities import TrackPoint
from .feed import MessageLog, SimulationFeed
from .generator import EntityGenerator
from .heat import HeatLayerRenderer
from .markers import IconRegistry, MarkerRenderer, default_icon_registry
from .motion import MotionIntegrator
from .scenarios import Scenario, ScenarioCatalog
from .surface import MapSurface

logger = logging.getLogger(__name__)


class SimulationMode(Enum):
    GENERATED = "generated"
    REPLAY = "replay"


class Simulation:
    """Owns the snapshot and everything drawn from it."""

    def __init__(
        self,
        catalog: ScenarioCatalog,
        surface: Optional[MapSurface] = None,
        config: Optional[SimConfig] = None,
        feed: Optional[SimulationFeed] = None,
        icons: Optional[IconRegistry] = None,
        message_log: Optional[MessageLog] = None,
    ):
        self.catalog = catalog
        self.config = config or SimConfig()
        first = catalog.get(0)
        self.surface = surface or MapSurface(
            first.center,
            first.zoom,
            bounds=catalog.bounds,
            min_zoom=catalog.min_zoom,
            ready_timeout=self.config.ready_timeout,
        )
        self.feed = feed
        self.message_log = message_log or MessageLog()

        self.integrator = MotionIntegrator(settings=self.config.motion, rng_seed=self.config.rng_seed)
        self.heat = HeatLayerRenderer(self.surface, self.config.heat)
        self.markers = MarkerRenderer(
            self.surface, icons or default_icon_registry(), in_place=self.config.in_place_markers
        )

        self.scenario: Optional[Scenario] = None
        self.snapshot: tuple[TrackPoint, ...] = ()
        self.tick_count = 0
        self._task: Optional[asyncio.Task] = None

        # Called after every render with the new snapshot
        self.on_tick: Optional[Callable[[tuple[TrackPoint, ...]], None]] = None

    @property
    def mode(self) -> SimulationMode:
        return SimulationMode.REPLAY if self.feed is not None else SimulationMode.GENERATED

    @property
    def interval(self) -> float:
        if self.mode == SimulationMode.REPLAY:
            return self.config.feed_interval
        return self.config.tick_interval

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # Scenario selection

    def select_scenario(self, key: Union[int, str]) -> tuple[TrackPoint, ...]:
        """Switch scenario: tear down layers, rebuild entities and motion state."""
        scenario = self.catalog.get(key)
        self._clear_layers()
        self.scenario = scenario
        self.tick_count = 0
        self.surface.set_view(scenario.center, scenario.zoom)

        if self.mode == SimulationMode.REPLAY:
            self.feed.reset()
            self.integrator.reset(())
            self._apply_timestep()
        else:
            seed = scenario.seed if scenario.seed is not None else self.config.rng_seed
            entities = scenario.build_entities(EntityGenerator(seed))
            self.snapshot = self.integrator.reset(entities, scenario.motion)

        logger.info(
            f"Scenario selected: {scenario.name} ({len(self.snapshot)} tracks, "
            f"{scenario.motion.value} motion, {self.mode.value} mode)"
        )
        self._render()
        return self.snapshot

    # Ticking

    def tick(self) -> tuple[TrackPoint, ...]:
        """Advance one tick, then render the new snapshot."""
        if self.scenario is None:
            raise RuntimeError("No scenario selected")

        if self.mode == SimulationMode.REPLAY:
            self._apply_timestep()
        else:
            self.snapshot = self.integrator.step()
        self.tick_count += 1

        self._render()
        return self.snapshot

    def _apply_timestep(self):
        step = self.feed.next()
        if step is None:
            return
        self.snapshot = tuple(step.entities)
        if step.message is not None:
            self.message_log.append(step.message)

    def _render(self):
        self.heat.render(self.snapshot)
        self.markers.render(self.snapshot)
        if self.on_tick:
            self.on_tick(self.snapshot)

    async def run(self, max_ticks: Optional[int] = None):
        """Tick until cancelled, the feed runs out, or ``max_ticks`` is reached."""
        if self.scenario is None:
            self.select_scenario(0)

        ready = await self.surface.wait_until_ready()
        if not ready:
            logger.info("Rendering without a readiness signal")
        self.heat.flush()

        while max_ticks is None or self.tick_count < max_ticks:
            if self.feed is not None and self.feed.exhausted:
                logger.info(f"Simulation feed exhausted after {self.tick_count} ticks")
                break
            try:
                self.tick()
            except Exception:
                logger.exception(f"Tick {self.tick_count + 1} failed")
            await asyncio.sleep(self.interval)

    def start(self, max_ticks: Optional[int] = None) -> asyncio.Task:
        """Schedule ``run`` on the current event loop."""
        if self.running:
            return self._task
        self._task = asyncio.get_running_loop().create_task(self.run(max_ticks))
        return self._task

    async def stop(self):
        """Cancel the tick task, remove every layer and style, drop entity state."""
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.exception("Simulation task ended with an error")
            self._task = None

        self._clear_layers()
        self.markers.detach()

        self.snapshot = ()
        self.integrator.reset(())
        self.scenario = None
        self.tick_count = 0
        logger.info("Simulation stopped")

    def _clear_layers(self):
        self.heat.clear()
        self.heat.pending = None
        self.markers.clear()
