import asyncio

from message_log import format_card, run
from tracksim.feed import DEMO_MESSAGES, FeedMessage


def test_card_shows_category_enemy_and_explanation():
    card = format_card(FeedMessage.from_payload(DEMO_MESSAGES[2]))
    assert card.startswith("🔴 Road-Runner (Humvee): Under fire")
    assert "→ Sniper" in card
    assert "northern tree line" in card


def test_card_lists_top_features():
    message = FeedMessage.from_payload({
        "action": "Intercept", "vehicle": "F-16V", "call_sign": "BONG", "category": "Good",
        "influence_analysis": {"Intercept": {"top_features": ["range", "altitude", "speed", "fuel"]}},
    })
    card = format_card(message)
    assert card.startswith("🟢")
    assert "Intercept: range, altitude, speed" in card
    assert "fuel" not in card


def test_demo_played_when_server_unreachable(capsys):
    message_log = asyncio.run(run("ws://127.0.0.1:9", demo_interval=0))
    assert len(message_log) == len(DEMO_MESSAGES)
    out = capsys.readouterr().out
    assert "Not connected to server" in out
    assert "DEMO TRANSMISSIONS" in out
