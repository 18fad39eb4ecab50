"""
Command-center chat analyst.

Uses OpenAI (gpt-4o) when an API key is configured, canned responses otherwise.
"""

from .base import AnalystConfig, CommandAnalyst, simulated_response

__all__ = ["AnalystConfig", "CommandAnalyst", "simulated_response"]
