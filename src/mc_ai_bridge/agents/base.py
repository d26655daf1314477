"""Contracts for the agent that drives each conversation turn."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol


@dataclass(slots=True)
class AgentTurn:
    """One agent response: optional reply text plus commands to run in the game."""

    text: str | None = None
    commands: list[str] = field(default_factory=list)
    new_session: bool = False


class Agent(Protocol):
    """Produces turns from player chat and from the results of earlier commands."""

    async def process_user_message(self, text: str) -> AgentTurn:
        """Return the turn answering a player chat line."""

    async def process_command_results(self, results: Sequence[str]) -> AgentTurn:
        """Return the next turn given the results of the previous turn's commands."""
