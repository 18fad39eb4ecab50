"""
WebSocket feed server for the airspace heatmap.

Serves the live viewer on GET / and runs one simulation per WebSocket
connection. Server -> client envelopes:
- scenario_init: scenario list plus the first frame after a switch
- frame: map surface state (heat overlays, markers, styles)
- message: one transmission for the log
- chat_reply: analyst answer
- error
Client -> server requests: ready, select_scenario, chat.
"""

import json
import asyncio
import logging
import argparse
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv(Path(__file__).parent / ".env")

import websockets
from websockets.http11 import Response
from websockets.datastructures import Headers

from tracksim import (
    ScenarioCatalog, Simulation, SimConfig, SimulationFeed, FeedError, FeedMessage,
)
from analyst import AnalystConfig, CommandAnalyst
from heatmap_export import live_viewer

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DATA_PATH = Path("data")
SIMULATION_FILE = "entity_simulation.json"


class FeedSession:
    """Wraps one simulation and analyst for a single viewer connection."""

    def __init__(
        self,
        config: SimConfig,
        catalog: ScenarioCatalog,
        replay_file: Optional[Path] = None,
        message_file: Optional[Path] = None,
        analyst: Optional[CommandAnalyst] = None,
    ):
        self.config = config
        self.catalog = catalog
        feed = SimulationFeed.load(replay_file, loop=config.loop_feed) if replay_file else None
        self.sim = Simulation(catalog, config=config, feed=feed)
        self.analyst = analyst or CommandAnalyst(AnalystConfig(model=config.analyst_model))
        self.outbox: asyncio.Queue = asyncio.Queue()
        self.sim.message_log.on_message = self._queue_message

        # Timestep messages replayed alongside generated motion
        self.message_feed = None
        if feed is None and message_file and message_file.exists():
            try:
                self.message_feed = SimulationFeed.load(message_file, loop=config.loop_feed)
            except FeedError as e:
                logger.error(f"Message file unusable: {e}")

    def _queue_message(self, message: FeedMessage):
        self.outbox.put_nowait({"type": "message", **message.to_dict()})

    def build_frame(self) -> dict:
        frame = self.sim.surface.to_dict()
        frame["tick"] = self.sim.tick_count
        frame["scenario"] = self.sim.scenario.name if self.sim.scenario else None
        return frame

    def select(self, key) -> dict:
        """Switch scenario and return the scenario_init payload."""
        self.sim.select_scenario(key)
        return {
            "scenario": self.sim.scenario.to_dict(),
            "scenarios": self.catalog.names(),
            "frame": self.build_frame(),
        }

    def chat(self, text: str) -> str:
        return self.analyst.respond(
            text,
            snapshot=self.sim.snapshot,
            messages=self.sim.message_log.messages,
            scenario=self.sim.scenario.name if self.sim.scenario else None,
        )

    async def play_messages(self):
        """Emit one timestep message per feed interval until the file runs out."""
        while self.message_feed is not None:
            step = self.message_feed.next()
            if step is None:
                return
            if step.message is not None:
                self.sim.message_log.append(step.message)
            await asyncio.sleep(self.config.feed_interval)

    async def stop(self):
        await self.sim.stop()


# ── WebSocket Feed Server ──


async def handle_websocket(websocket, config: SimConfig, catalog: ScenarioCatalog,
                           replay_file: Optional[Path] = None, data_path: Path = DATA_PATH):
    """Handle a single WebSocket connection (one simulation session)."""
    session = FeedSession(config, catalog, replay_file, data_path / SIMULATION_FILE)
    tasks = []

    async def send_json(msg_type: str, data: dict):
        await websocket.send(json.dumps({"type": msg_type, **data}, default=str))

    async def pump():
        # Frames every N ticks, queued messages as they arrive
        period = session.sim.interval * config.frame_every
        while True:
            while not session.outbox.empty():
                await websocket.send(json.dumps(session.outbox.get_nowait(), default=str))
            if session.sim.running:
                await send_json("frame", {"frame": session.build_frame()})
            await asyncio.sleep(period)

    try:
        await send_json("scenario_init", session.select(0))
        session.sim.start()
        tasks = [asyncio.create_task(pump()), asyncio.create_task(session.play_messages())]

        async for raw in websocket:
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                await send_json("error", {"message": "Invalid JSON"})
                continue

            msg_type = msg.get("type", "")

            if msg_type == "ready":
                session.sim.surface.mark_ready()

            elif msg_type == "select_scenario":
                key = msg.get("scenario", 0)
                try:
                    payload = session.select(key)
                except (KeyError, IndexError):
                    await send_json("error", {"message": f"Unknown scenario: {key}"})
                    continue
                logger.info(f"Client switched to {payload['scenario']['name']}")
                if not session.sim.running:
                    session.sim.start()
                await send_json("scenario_init", payload)

            elif msg_type == "chat":
                text = str(msg.get("text", "")).strip()
                if not text:
                    continue
                loop = asyncio.get_running_loop()
                reply = await loop.run_in_executor(None, session.chat, text)
                await send_json("chat_reply", {"text": reply})

            else:
                await send_json("error", {"message": f"Unknown message type: {msg_type}"})

    except websockets.exceptions.ConnectionClosed:
        logger.info("Client disconnected")
    finally:
        for task in tasks:
            task.cancel()
        await session.stop()


def make_http_handler(catalog: ScenarioCatalog):
    """Serve the live viewer on GET / (websockets process_request)."""
    page = live_viewer(catalog).encode("utf-8")

    def http_handler(connection, request):
        if request.headers.get("Upgrade", "").lower() == "websocket":
            return None  # Let websockets handle WebSocket upgrade
        if request.path == "/" or request.path == "":
            return Response(
                200,
                "OK",
                Headers([
                    ("Content-Type", "text/html; charset=utf-8"),
                    ("Content-Length", str(len(page))),
                ]),
                page,
            )
        return None

    return http_handler


async def serve(config: SimConfig, catalog: ScenarioCatalog, replay_file: Optional[Path] = None,
                data_path: Path = DATA_PATH):
    logger.info(f"Starting feed server on ws://{config.host}:{config.port}")
    logger.info(f"Open http://localhost:{config.port} in your browser")

    async def handler(websocket):
        await handle_websocket(websocket, config, catalog, replay_file, data_path)

    async with websockets.serve(
        handler,
        config.host,
        config.port,
        process_request=make_http_handler(catalog),
        max_size=10 * 1024 * 1024,  # 10MB max message
    ):
        await asyncio.Future()  # run forever


def main():
    parser = argparse.ArgumentParser(description="Airspace heatmap feed server")
    parser.add_argument("--data", default="data", help="Data directory path")
    parser.add_argument("--replay", default=None, help="Timestep file to replay instead of generating tracks")
    args = parser.parse_args()

    config = SimConfig.load(args.data)
    catalog = ScenarioCatalog(args.data)
    replay_file = Path(args.replay) if args.replay else None
    asyncio.run(serve(config, catalog, replay_file, Path(args.data)))


if __name__ == "__main__":
    main()
