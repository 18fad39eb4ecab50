#!/usr/bin/env python3
"""
Live transmission log - streams feed messages as they arrive.

Connects to the feed server; if the connection cannot be opened and nothing
has been received yet, the demo transmissions are played instead.
"""

import sys
import asyncio
import argparse
from pathlib import Path

# Load .env from project root (same as server.py)
from dotenv import load_dotenv
load_dotenv(Path(__file__).parent / ".env")
from tracksim.feed import (
    ConnectionStatus, FeedClient, FeedMessage, MessageCategory, MessageLog, play_demo,
)
from analyst import CommandAnalyst

DEFAULT_URI = "ws://localhost:8765"

CATEGORY_PREFIX = {
    MessageCategory.POSITIVE: "🟢",
    MessageCategory.NEGATIVE: "🔴",
    MessageCategory.NEUTRAL: "⚪",
}

STATUS_TEXT = {
    ConnectionStatus.CONNECTING: "📡 Connecting to server...",
    ConnectionStatus.OPEN: "🟢 Connected to server",
    ConnectionStatus.ERROR: "🔴 Not connected to server",
    ConnectionStatus.CLOSED: "⚫ Disconnected from server",
}


def format_card(message: FeedMessage) -> str:
    """One colour-coded transmission card."""
    prefix = CATEGORY_PREFIX[message.category]
    line = f"{prefix} {message.call_sign} ({message.vehicle}): {message.action}"
    if message.enemy:
        line += f" → {message.enemy}"
    if message.explanation:
        line += f"\n     └─ {message.explanation}"
    for action, entry in message.influence.items():
        if entry.top_features:
            line += f"\n     └─ {action}: {', '.join(entry.top_features[:3])}"
    return line


def log(text: str):
    print(text)
    sys.stdout.flush()


def log_header(text: str):
    """Print a header."""
    print(f"\n{'='*70}")
    print(f"  {text}")
    print(f"{'='*70}\n")
    sys.stdout.flush()


async def run(uri: str, demo_interval: float = 1.5) -> MessageLog:
    message_log = MessageLog(on_message=lambda m: log(format_card(m)))
    client = FeedClient(uri, message_log, on_status=lambda s: log(STATUS_TEXT[s]))

    await client.run()

    if client.status == ConnectionStatus.ERROR and len(message_log) == 0:
        log_header("DEMO TRANSMISSIONS")
        await play_demo(message_log, interval=demo_interval)
    return message_log


def chat_loop():
    """Read operator lines from stdin and answer them."""
    analyst = CommandAnalyst()
    mode = "online" if analyst.online else "offline (canned responses)"
    log_header(f"COMMAND CHAT - {mode}")
    for line in sys.stdin:
        text = line.strip()
        if not text:
            continue
        log(f"🎖️  {analyst.respond(text)}")


def main():
    parser = argparse.ArgumentParser(description="Live transmission log")
    parser.add_argument("--uri", default=DEFAULT_URI, help="Feed server WebSocket URI")
    parser.add_argument("--chat", action="store_true", help="Chat with the command analyst instead")
    args = parser.parse_args()

    if args.chat:
        chat_loop()
        return

    log_header("BATTLEFIELD UPDATES")
    message_log = asyncio.run(run(args.uri))
    print(f"\n📊 {len(message_log)} transmissions, {message_log.dropped} dropped")


if __name__ == "__main__":
    main()
