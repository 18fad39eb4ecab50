from types import SimpleNamespace

import openai
import pytest

from analyst import AnalystConfig, CommandAnalyst, simulated_response
from analyst.base import DEFAULT_RESPONSE
from tracksim.feed import DEMO_MESSAGES, FeedMessage
from tracksim.generator import EntityGenerator


class FakeCompletions:
    def __init__(self, reply="Two bandits inbound, Commander.", error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        message = SimpleNamespace(content=self.reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _client(completions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


def _snapshot():
    return EntityGenerator(rng_seed=3).fixed_layout((25.047, 121.532), 0.06)


@pytest.mark.parametrize("text, fragment", [
    ("Hello there", "how may I assist"),
    ("status update please", "All units are operational"),
    ("any threat to the east?", "Enemy forces detected"),
    ("request air support", "Air support is available"),
    ("what is this", "Acknowledged, Commander"),
])
def test_canned_responses(text, fragment):
    assert fragment in simulated_response(text)


def test_offline_without_api_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    analyst = CommandAnalyst()
    assert not analyst.online
    assert "All units are operational" in analyst.respond("status?")


def test_online_reply_includes_briefing():
    completions = FakeCompletions()
    analyst = CommandAnalyst(client=_client(completions))
    messages = [FeedMessage.from_payload(DEMO_MESSAGES[0])]

    reply = analyst.respond("What's out there?", _snapshot(), messages, "Northern Taiwan")

    assert reply == "Two bandits inbound, Commander."
    sent = completions.calls[0]
    assert sent["model"] == "gpt-4o"
    briefing = sent["messages"][1]["content"]
    assert "Scenario: Northern Taiwan" in briefing
    assert "Tracks: 6 friendly, 6 enemy" in briefing
    assert "Eagle-Eye (Drone)" in briefing
    assert sent["messages"][-1] == {"role": "user", "content": "What's out there?"}


def test_api_error_falls_back_to_canned(caplog):
    completions = FakeCompletions(error=openai.OpenAIError("quota"))
    analyst = CommandAnalyst(client=_client(completions))
    assert "how may I assist" in analyst.respond("hi")
    assert "Analyst error" in caplog.text


def test_empty_completion_uses_default():
    analyst = CommandAnalyst(client=_client(FakeCompletions(reply="")))
    assert analyst.respond("report") == DEFAULT_RESPONSE


def test_history_is_trimmed_and_reset():
    analyst = CommandAnalyst(AnalystConfig(history_limit=4), client=_client(FakeCompletions()))
    for i in range(5):
        analyst.respond(f"question {i}")
    assert len(analyst.conversation_history) == 4
    assert analyst.conversation_history[-2]["content"] == "question 4"
    analyst.reset()
    assert analyst.conversation_history == []


def test_briefing_lists_enemies_first():
    analyst = CommandAnalyst(client=_client(FakeCompletions()))
    briefing = analyst.build_briefing(_snapshot())
    track_lines = [line for line in briefing.splitlines() if line.startswith("  - ")]
    assert "[enemy]" in track_lines[0]
    assert "[friendly]" in track_lines[-1]
