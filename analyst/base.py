"""
Command-center analyst using OpenAI (gpt-4o).

Answers operator chat about the current air picture. Without an API key, or
when the API call fails, the analyst answers from a fixed set of canned
command-center responses.
"""

import logging
import os
import re
from dataclasses import dataclass
from typing import Optional, Sequence

from openai import OpenAI, OpenAIError

from tracksim.entities import Allegiance, TrackPoint, is_jet
from tracksim.feed import FeedMessage
from tracksim.styling import classify

logger = logging.getLogger(__name__)


@dataclass
class AnalystConfig:
    """Configuration for the command-center analyst."""
    model: str = "gpt-4o"
    temperature: float = 0.4
    max_tokens: int = 512
    history_limit: int = 20  # user + assistant turns kept for context
    briefing_tracks: int = 12
    briefing_messages: int = 5


# (keywords, reply), checked in order
CANNED_RESPONSES = [
    (("hello", "hi"), "Hello Commander, how may I assist you today?"),
    (("status", "update"),
     "All units are operational. Northern sector is currently engaged with enemy "
     "forces. Southern perimeter remains secure."),
    (("enemy", "threat"),
     "Enemy forces detected in grid coordinates A5 through C7. Reconnaissance "
     "reports show armored vehicles and infantry units moving towards our eastern flank."),
    (("air support", "reinforcement"),
     "Air support is available. Two F-16 jets are on standby. Reinforcements can "
     "be deployed within 20 minutes to your position."),
]

DEFAULT_RESPONSE = (
    "Acknowledged, Commander. I've logged your message and forwarded it to the "
    "appropriate units. Do you need any specific intelligence or support?"
)


def simulated_response(text: str) -> str:
    """Canned reply keyed on words in the operator's message."""
    lowered = text.lower()
    for keywords, reply in CANNED_RESPONSES:
        for keyword in keywords:
            if re.search(rf"\b{re.escape(keyword)}", lowered):
                return reply
    return DEFAULT_RESPONSE


class CommandAnalyst:
    """LLM-backed chat assistant for the command center."""

    def __init__(self, config: Optional[AnalystConfig] = None, client=None):
        self.config = config or AnalystConfig()
        if client is None and os.environ.get("OPENAI_API_KEY"):
            client = OpenAI()  # Uses OPENAI_API_KEY env var
        self.client = client
        self.conversation_history: list[dict] = []

    @property
    def online(self) -> bool:
        return self.client is not None

    @property
    def system_prompt(self) -> str:
        return """You are the air-defense watch officer in a simulated command center.
You brief the commander on the air picture over the Taiwan theatre.

Rules:
- Answer in two to four short sentences, in the voice of a military radio operator.
- Use only the tracks and transmissions given in the briefing; never invent units.
- Refer to aircraft by type and call sign, and say whether they are friendly or enemy.
- Flag enemy tracks with attribution of 80% or more as critical.
- This is a training simulation; say so if asked for real-world guidance."""

    def build_briefing(
        self,
        snapshot: Sequence[TrackPoint] = (),
        messages: Sequence[FeedMessage] = (),
        scenario: Optional[str] = None,
    ) -> str:
        """Summarize the current picture for the model."""
        friendly = [p for p in snapshot if p.allegiance == Allegiance.FRIENDLY]
        enemy = [p for p in snapshot if p.allegiance == Allegiance.ENEMY]

        briefing = "## AIR PICTURE\n"
        if scenario:
            briefing += f"Scenario: {scenario}\n"
        briefing += f"Tracks: {len(friendly)} friendly, {len(enemy)} enemy\n"

        # Most threatening first
        ranked = sorted(
            snapshot,
            key=lambda p: (p.allegiance != Allegiance.ENEMY, -(p.attribution or 0), -p.strategic_value),
        )
        for point in ranked[:self.config.briefing_tracks]:
            style = classify(point)
            if is_jet(point):
                label = f"{point.type} {point.callsign or point.id}"
            else:
                label = point.id
            line = (
                f"  - {label} [{point.allegiance.value}] at ({point.lat:.3f}, {point.lng:.3f}) "
                f"hdg {point.heading:.0f}, value {point.strategic_value:.1f}"
            )
            if style.bucket is not None:
                line += f", {style.bucket.value}"
            if point.attribution is not None:
                line += f", attribution {point.attribution * 100:.0f}%"
            briefing += line + "\n"

        recent = list(messages)[-self.config.briefing_messages:]
        if recent:
            briefing += "\n## RECENT TRANSMISSIONS\n"
            for msg in recent:
                briefing += f"  - {msg.call_sign} ({msg.vehicle}): {msg.action}"
                if msg.enemy:
                    briefing += f" vs {msg.enemy}"
                briefing += f" [{msg.category.value}]\n"

        return briefing

    def respond(
        self,
        text: str,
        snapshot: Sequence[TrackPoint] = (),
        messages: Sequence[FeedMessage] = (),
        scenario: Optional[str] = None,
    ) -> str:
        """Answer one operator message."""
        self.conversation_history.append({"role": "user", "content": text})

        if self.client is None:
            reply = simulated_response(text)
        else:
            briefing = self.build_briefing(snapshot, messages, scenario)
            try:
                response = self.client.chat.completions.create(
                    model=self.config.model,
                    messages=[
                        {"role": "system", "content": self.system_prompt},
                        {"role": "system", "content": briefing},
                        *self.conversation_history,
                    ],
                    temperature=self.config.temperature,
                    max_tokens=self.config.max_tokens,
                )
                reply = (response.choices[0].message.content or "").strip() or DEFAULT_RESPONSE
            except OpenAIError as e:
                logger.error(f"Analyst error: {e}")
                reply = simulated_response(text)

        self.conversation_history.append({"role": "assistant", "content": reply})
        self._trim_history()
        return reply

    def _trim_history(self):
        limit = self.config.history_limit
        if len(self.conversation_history) > limit:
            self.conversation_history = self.conversation_history[-limit:]

    def reset(self):
        """Forget the conversation."""
        self.conversation_history = []
