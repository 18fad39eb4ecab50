"""
Runtime configuration.

data/config.yaml supplies the file values; environment variables (optionally
from a .env file) override the few settings an operator changes per run.
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv

from .heat import HeatLayerOptions
from .motion import MotionSettings

logger = logging.getLogger(__name__)


@dataclass
class SimConfig:
    """Settings for one simulation process."""
    tick_interval: float = 0.05  # seconds between motion ticks
    ready_timeout: float = 0.5  # fallback when the map never signals ready
    feed_interval: float = 1.0  # seconds between static-feed timesteps
    loop_feed: bool = True
    in_place_markers: bool = True
    rng_seed: Optional[int] = None
    motion: MotionSettings = field(default_factory=MotionSettings)
    heat: HeatLayerOptions = field(default_factory=HeatLayerOptions)
    host: str = "0.0.0.0"
    port: int = 8765
    frame_every: int = 2  # push every Nth tick to socket clients
    analyst_model: str = "gpt-4o"
    openai_api_key: Optional[str] = None

    @classmethod
    def load(cls, data_path: Path | str = "data", env_file: Optional[Path | str] = None) -> "SimConfig":
        """Load data/config.yaml, then apply environment overrides."""
        if env_file is not None:
            load_dotenv(env_file)
        else:
            load_dotenv()

        config = cls()
        path = Path(data_path) / "config.yaml"
        if path.exists():
            with open(path) as f:
                data = yaml.safe_load(f) or {}
            config._apply_file(data)
            logger.info(f"Loaded configuration from {path}")

        config._apply_env(os.environ)
        return config

    def _apply_file(self, data: dict):
        sim = data.get("simulation", {})
        if "tick_ms" in sim:
            self.tick_interval = sim["tick_ms"] / 1000.0
        if "ready_timeout_ms" in sim:
            self.ready_timeout = sim["ready_timeout_ms"] / 1000.0
        if "feed_interval_ms" in sim:
            self.feed_interval = sim["feed_interval_ms"] / 1000.0
        self.loop_feed = sim.get("loop_feed", self.loop_feed)
        self.in_place_markers = sim.get("in_place_markers", self.in_place_markers)
        self.rng_seed = sim.get("seed", self.rng_seed)

        self.motion = _merge(self.motion, data.get("motion", {}))
        self.heat = _merge(self.heat, data.get("heat", {}))

        server = data.get("server", {})
        self.host = server.get("host", self.host)
        self.port = int(server.get("port", self.port))
        self.frame_every = max(1, int(server.get("frame_every", self.frame_every)))

        analyst = data.get("analyst", {})
        self.analyst_model = analyst.get("model", self.analyst_model)

    def _apply_env(self, env):
        if env.get("HOST"):
            self.host = env["HOST"]
        if env.get("PORT"):
            self.port = int(env["PORT"])
        if env.get("TICK_MS"):
            self.tick_interval = int(env["TICK_MS"]) / 1000.0
        if env.get("ANALYST_MODEL"):
            self.analyst_model = env["ANALYST_MODEL"]
        self.openai_api_key = env.get("OPENAI_API_KEY") or self.openai_api_key


def _merge(target, values: dict):
    """Copy known keys from a YAML section onto a settings dataclass."""
    known = {f.name for f in fields(target)}
    for key, value in values.items():
        if key in known:
            setattr(target, key, value)
        else:
            logger.warning(f"Ignoring unknown {type(target).__name__} setting: {key}")
    return target
