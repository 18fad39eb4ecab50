"""
Batch runner for the airspace heatmap simulation.

Runs a scenario headless for a fixed number of ticks and writes an HTML
replay of the heat overlays, markers and transmission log.
"""

import asyncio
import json
import logging
from pathlib import Path
from datetime import datetime
from typing import Optional

from dotenv import load_dotenv

load_dotenv(Path(__file__).parent / ".env")

from tracksim import (
    Allegiance, ScenarioCatalog, SimConfig, Simulation, SimulationFeed, track_to_dict,
)
from heatmap_export import HeatmapCollector

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class HeatmapSimulation:
    """Headless simulation orchestrator."""

    def __init__(
        self,
        data_path: str = "data",
        replay_file: Optional[str] = None,
        log_dir: str = "logs",
        frame_every: int = 2,
    ):
        self.data_path = Path(data_path)
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(exist_ok=True)

        logger.info("Loading configuration...")
        self.config = SimConfig.load(self.data_path)

        logger.info("Loading scenarios...")
        self.catalog = ScenarioCatalog(self.data_path)

        feed = None
        if replay_file:
            logger.info(f"Loading simulation file {replay_file}...")
            feed = SimulationFeed.load(replay_file, loop=False)

        self.sim = Simulation(self.catalog, config=self.config, feed=feed)
        # Headless: nobody will signal the surface, so open the gate now
        self.sim.surface.mark_ready()

        self.collector = HeatmapCollector(self.sim, every=frame_every)
        self.sim.on_tick = self.collector.snapshot_tick

        self.run_log: list[dict] = []
        self.start_time: Optional[datetime] = None

    def run_scenario(self, key, ticks: int) -> dict:
        """Run one scenario for ``ticks`` ticks without sleeping."""
        self.sim.select_scenario(key)
        self.collector.snapshot_initial_state()
        scenario = self.sim.scenario

        logger.info(f"\n{'='*60}")
        logger.info(f"SCENARIO {scenario.name}")
        logger.info(f"{'='*60}")

        for _ in range(ticks):
            if self.sim.feed is not None and self.sim.feed.exhausted:
                break
            self.sim.tick()

        summary = self._summarize()
        self._log_event("scenario_complete", summary)

        logger.info(f"  Ticks: {summary['ticks']}")
        logger.info(f"  Tracks: {summary['friendly']} friendly, {summary['enemy']} enemy")
        logger.info(f"  Heat overlays: {summary['heat_overlays']}, markers: {summary['markers']}")
        return summary

    async def run_live(self, key, ticks: int) -> dict:
        """Run one scenario on the real tick interval."""
        self.sim.select_scenario(key)
        self.collector.snapshot_initial_state()
        await self.sim.run(max_ticks=ticks)
        summary = self._summarize()
        await self.sim.stop()
        return summary

    def run(self, scenarios: list, ticks: int, realtime: bool = False) -> dict:
        self.start_time = datetime.now()
        summaries = []
        for key in scenarios:
            if realtime:
                summaries.append(asyncio.run(self.run_live(key, ticks)))
            else:
                summaries.append(self.run_scenario(key, ticks))

        results = {
            "scenarios": summaries,
            "messages": len(self.sim.message_log),
            "duration": str(datetime.now() - self.start_time),
        }
        self._log_event("run_end", results)
        self._save_run_log()

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        replay_path = self.collector.generate(self.log_dir / f"heatmap_{timestamp}.html")
        results["replay"] = str(replay_path)
        logger.info(f"Replay file saved to: {replay_path}")
        return results

    def _summarize(self) -> dict:
        snapshot = self.sim.snapshot
        return {
            "scenario": self.sim.scenario.name if self.sim.scenario else None,
            "mode": self.sim.mode.value,
            "ticks": self.sim.tick_count,
            "friendly": sum(1 for p in snapshot if p.allegiance == Allegiance.FRIENDLY),
            "enemy": sum(1 for p in snapshot if p.allegiance == Allegiance.ENEMY),
            "heat_overlays": len(self.sim.heat.active),
            "markers": len(self.sim.markers.markers),
            "tracks": [track_to_dict(p) for p in snapshot],
        }

    def _log_event(self, event_type: str, data: dict):
        self.run_log.append({
            "timestamp": datetime.now().isoformat(),
            "event": event_type,
            "data": data,
        })

    def _save_run_log(self):
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_path = self.log_dir / f"run_{timestamp}.json"

        with open(log_path, "w") as f:
            json.dump(self.run_log, f, indent=2, default=str)

        logger.info(f"Run log saved to: {log_path}")


def main():
    """Run the heatmap simulation headless."""
    import argparse

    parser = argparse.ArgumentParser(description="Airspace heatmap simulation")
    parser.add_argument("--scenario", action="append", default=None,
                        help="Scenario name or index (repeatable; default: all)")
    parser.add_argument("--ticks", type=int, default=200, help="Ticks per scenario")
    parser.add_argument("--replay", default=None, help="Timestep file to replay")
    parser.add_argument("--realtime", action="store_true", help="Sleep for the tick interval between ticks")
    parser.add_argument("--every", type=int, default=2, help="Record every Nth tick")
    parser.add_argument("--data", default="data", help="Data directory path")
    parser.add_argument("--logs", default="logs", help="Log directory path")

    args = parser.parse_args()

    sim = HeatmapSimulation(
        data_path=args.data,
        replay_file=args.replay,
        log_dir=args.logs,
        frame_every=args.every,
    )
    scenarios = args.scenario or sim.catalog.names()
    scenarios = [int(s) if isinstance(s, str) and s.isdigit() else s for s in scenarios]

    results = sim.run(scenarios, args.ticks, realtime=args.realtime)

    print("\n" + "="*60)
    print("FINAL RESULTS")
    print("="*60)
    for summary in results["scenarios"]:
        print(f"{summary['scenario']}: {summary['ticks']} ticks, "
              f"{summary['friendly']} friendly / {summary['enemy']} enemy, "
              f"{summary['markers']} markers")
    print(f"Transmissions: {results['messages']}")
    print(f"Replay: {results['replay']}")
    print(f"Duration: {results['duration']}")


if __name__ == "__main__":
    main()
