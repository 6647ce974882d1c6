"""
Agent orchestration: prompts and the turn-based tool loop.
"""

from .loop import AgentLoop, AgentOutcome, AgentTurn
from .prompts import build_initial_message, build_system_prompt

__all__ = [
    "AgentLoop",
    "AgentOutcome",
    "AgentTurn",
    "build_initial_message",
    "build_system_prompt",
]
