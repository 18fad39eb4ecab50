"""
Entity and message feeds.

- SimulationFeed: static timestep file, one timestep per tick
- FeedMessage / MessageLog: live JSON transmissions, malformed ones dropped
- FeedClient: WebSocket consumer with status reporting, no auto-reconnect
- DEMO_MESSAGES: played when the socket is down and the log is empty
"""

import asyncio
import itertools
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

import websockets

from .entities import TrackPoint, track_from_record

logger = logging.getLogger(__name__)


class FeedError(ValueError):
    """A feed payload that cannot be turned into a message or timestep."""


class MessageCategory(Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"

    @classmethod
    def parse(cls, value) -> "MessageCategory":
        key = str(value or "").strip().lower()
        if key in ("positive", "good"):
            return cls.POSITIVE
        if key in ("negative", "bad"):
            return cls.NEGATIVE
        return cls.NEUTRAL


@dataclass
class InfluenceEntry:
    """Influence analysis for one action."""
    top_features: list[str] = field(default_factory=list)
    influence_scores: dict[str, float] = field(default_factory=dict)
    visibility: dict[str, float] = field(default_factory=dict)
    mission_impact: dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "InfluenceEntry":
        if not isinstance(data, dict):
            raise FeedError(f"Influence entry must be an object, got {type(data).__name__}")
        try:
            return cls(
                top_features=[str(f) for f in data.get("top_features", [])],
                influence_scores={str(k): float(v) for k, v in data.get("influence_scores", {}).items()},
                visibility={str(k): float(v) for k, v in data.get("visibility", {}).items()},
                mission_impact=_score_map(data.get("mission_impact", {})),
            )
        except (TypeError, ValueError, AttributeError) as e:
            raise FeedError(f"Bad influence analysis: {e}") from e


def _score_map(value) -> dict[str, float]:
    # Some feeds send a single overall impact number
    if isinstance(value, (int, float)):
        return {"overall": float(value)}
    return {str(k): float(v) for k, v in value.items()}


_message_ids = itertools.count(1)


@dataclass
class FeedMessage:
    """One transmission in the log."""
    action: str
    vehicle: str
    call_sign: str
    explanation: str
    category: MessageCategory
    enemy_type: Optional[str] = None
    enemy_callsign: Optional[str] = None
    influence: dict[str, InfluenceEntry] = field(default_factory=dict)
    id: int = field(default_factory=lambda: next(_message_ids))

    @property
    def enemy(self) -> Optional[str]:
        """Display form of the enemy, e.g. "J-20:SATAN"."""
        if self.enemy_type and self.enemy_callsign:
            return f"{self.enemy_type}:{self.enemy_callsign}"
        return self.enemy_type or self.enemy_callsign

    @classmethod
    def from_payload(cls, payload: dict) -> "FeedMessage":
        """Accept both the snake_case and camelCase field spellings."""
        if not isinstance(payload, dict):
            raise FeedError(f"Message must be a JSON object, got {type(payload).__name__}")

        vehicle = payload.get("vehicle", payload.get("vehicle_type"))
        call_sign = payload.get("call_sign", payload.get("callSign"))
        action = payload.get("action")
        missing = [name for name, value in
                   (("action", action), ("vehicle", vehicle), ("call_sign", call_sign))
                   if not value]
        if missing:
            raise FeedError(f"Message missing fields: {', '.join(missing)}")

        influence_raw = payload.get("influence_analysis") or {}
        if not isinstance(influence_raw, dict):
            raise FeedError("influence_analysis must be an object keyed by action")

        kwargs = {}
        if "id" in payload:
            kwargs["id"] = payload["id"]

        return cls(
            action=str(action),
            vehicle=str(vehicle),
            call_sign=str(call_sign),
            explanation=str(payload.get("explanation", "")),
            category=MessageCategory.parse(payload.get("category")),
            enemy_type=payload.get("enemy_type", payload.get("enemy")),
            enemy_callsign=payload.get("enemy_callsign"),
            influence={str(k): InfluenceEntry.from_dict(v) for k, v in influence_raw.items()},
            **kwargs,
        )

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "action": self.action,
            "vehicle": self.vehicle,
            "call_sign": self.call_sign,
            "explanation": self.explanation,
            "category": self.category.value,
        }
        if self.enemy_type:
            data["enemy_type"] = self.enemy_type
        if self.enemy_callsign:
            data["enemy_callsign"] = self.enemy_callsign
        if self.influence:
            data["influence_analysis"] = {
                action: {
                    "top_features": entry.top_features,
                    "influence_scores": entry.influence_scores,
                    "visibility": entry.visibility,
                    "mission_impact": entry.mission_impact,
                }
                for action, entry in self.influence.items()
            }
        return data


def parse_message(raw) -> FeedMessage:
    """Decode one raw socket payload."""
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        raise FeedError(f"Invalid JSON: {e}") from e
    return FeedMessage.from_payload(payload)


class MessageLog:
    """Append-only transmission log."""

    def __init__(self, on_message: Optional[Callable[[FeedMessage], None]] = None):
        self.messages: list[FeedMessage] = []
        self.dropped = 0
        self.on_message = on_message

    def __len__(self) -> int:
        return len(self.messages)

    def append(self, message: FeedMessage):
        self.messages.append(message)
        if self.on_message:
            self.on_message(message)

    def ingest(self, raw) -> Optional[FeedMessage]:
        """Parse and append; malformed payloads are logged and dropped."""
        try:
            message = parse_message(raw)
        except FeedError as e:
            self.dropped += 1
            logger.error(f"Failed to parse message: {e}")
            return None
        self.append(message)
        return message


DEMO_MESSAGES = [
    {
        "action": "Spotted enemy tank",
        "vehicle": "Drone",
        "callSign": "Eagle-Eye",
        "enemy": "T-90 Tank",
        "explanation": "Enemy tank moving south along ridge line",
        "category": "neutral",
    },
    {
        "action": "Engaging target",
        "vehicle": "Artillery",
        "callSign": "Thunder-1",
        "enemy": "Infantry Squad",
        "explanation": "Firing on enemy position with HE rounds",
        "category": "positive",
    },
    {
        "action": "Under fire",
        "vehicle": "Humvee",
        "callSign": "Road-Runner",
        "enemy": "Sniper",
        "explanation": "Taking small arms fire from northern tree line",
        "category": "negative",
    },
]


async def play_demo(log: MessageLog, interval: float = 1.5,
                    messages: Optional[list[dict]] = None) -> int:
    """Append demo messages one per interval; returns how many were added."""
    added = 0
    for payload in messages if messages is not None else DEMO_MESSAGES:
        log.append(FeedMessage.from_payload(payload))
        added += 1
        await asyncio.sleep(interval)
    return added


class ConnectionStatus(Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    ERROR = "error"
    CLOSED = "closed"


# Envelope types the feed server sends alongside plain transmissions
CONTROL_TYPES = ("frame", "scenario_init", "chat_reply", "error", "message")


class FeedClient:
    """Consumes a WebSocket feed into a MessageLog.

    Reports open/error/close transitions through ``on_status``; a dropped
    connection is not retried.
    """

    def __init__(
        self,
        uri: str,
        log: MessageLog,
        on_status: Optional[Callable[[ConnectionStatus], None]] = None,
        on_control: Optional[Callable[[dict], None]] = None,
    ):
        self.uri = uri
        self.log = log
        self.on_status = on_status
        self.on_control = on_control
        self.status = ConnectionStatus.CLOSED

    @property
    def connected(self) -> bool:
        return self.status == ConnectionStatus.OPEN

    def _set_status(self, status: ConnectionStatus):
        self.status = status
        if self.on_status:
            self.on_status(status)

    def handle(self, raw) -> Optional[FeedMessage]:
        """Route one payload: server envelopes to ``on_control``, the rest to the log."""
        try:
            payload = json.loads(raw)
        except (json.JSONDecodeError, TypeError, UnicodeDecodeError) as e:
            self.log.dropped += 1
            logger.error(f"Failed to parse message: {e}")
            return None

        if isinstance(payload, dict) and payload.get("type") in CONTROL_TYPES:
            msg_type = payload.pop("type")
            if msg_type == "message":
                return self._append(payload)
            if self.on_control:
                self.on_control({"type": msg_type, **payload})
            return None
        return self._append(payload)

    def _append(self, payload) -> Optional[FeedMessage]:
        try:
            message = FeedMessage.from_payload(payload)
        except FeedError as e:
            self.log.dropped += 1
            logger.error(f"Failed to parse message: {e}")
            return None
        self.log.append(message)
        return message

    async def run(self):
        """Connect once and consume until the socket closes."""
        self._set_status(ConnectionStatus.CONNECTING)
        try:
            async with websockets.connect(self.uri) as ws:
                logger.info(f"Connected to WebSocket server {self.uri}")
                self._set_status(ConnectionStatus.OPEN)
                async for raw in ws:
                    self.handle(raw)
        except websockets.exceptions.ConnectionClosedError as e:
            logger.error(f"WebSocket error: {e}")
            self._set_status(ConnectionStatus.ERROR)
            return
        except (OSError, websockets.exceptions.WebSocketException) as e:
            logger.error(f"WebSocket connection failed: {e}")
            self._set_status(ConnectionStatus.ERROR)
            return
        logger.info("Disconnected from WebSocket server")
        self._set_status(ConnectionStatus.CLOSED)


@dataclass
class Timestep:
    """One step of a static simulation file."""
    index: int
    entities: list[TrackPoint]
    message: Optional[FeedMessage] = None


class SimulationFeed:
    """Replays a static timestep sequence, one timestep per tick."""

    def __init__(self, timesteps: list[Timestep], loop: bool = False):
        self.timesteps = timesteps
        self.loop = loop
        self.position = 0

    @classmethod
    def from_dict(cls, data: dict, loop: bool = False) -> "SimulationFeed":
        raw_steps = data.get("Timesteps", data.get("timesteps"))
        if not isinstance(raw_steps, list):
            raise FeedError("Simulation file has no Timesteps list")

        timesteps = []
        for index, raw in enumerate(raw_steps):
            if not isinstance(raw, dict):
                raise FeedError(f"Timestep {index} must be an object, got {type(raw).__name__}")
            try:
                entities = [track_from_record(r) for r in raw.get("entities", [])]
            except (KeyError, TypeError, ValueError) as e:
                raise FeedError(f"Bad entity record in timestep {index}: {e}") from e
            ids = [e.id for e in entities]
            if len(ids) != len(set(ids)):
                raise FeedError(f"Duplicate entity ids in timestep {index}")
            message = None
            if raw.get("message"):
                message = FeedMessage.from_payload(raw["message"])
            timesteps.append(Timestep(index, entities, message))
        return cls(timesteps, loop=loop)

    @classmethod
    def load(cls, path: Path | str, loop: bool = False) -> "SimulationFeed":
        path = Path(path)
        with open(path) as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise FeedError(f"Invalid simulation file {path}: {e}") from e
        feed = cls.from_dict(data, loop=loop)
        logger.info(f"Loaded {len(feed)} timesteps from {path}")
        return feed

    def __len__(self) -> int:
        return len(self.timesteps)

    @property
    def exhausted(self) -> bool:
        return not self.loop and self.position >= len(self.timesteps)

    def reset(self):
        self.position = 0

    def next(self) -> Optional[Timestep]:
        """The next timestep, or None once exhausted (unless looping)."""
        if not self.timesteps:
            return None
        if self.position >= len(self.timesteps):
            if not self.loop:
                return None
            self.position = 0
        step = self.timesteps[self.position]
        self.position += 1
        return step
