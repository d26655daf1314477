"""Local agent used when no real agent backend is configured."""

from __future__ import annotations

from collections.abc import Sequence

from .base import AgentTurn

COMMAND_MARKER = "!run "


class EchoAgent:
    """Echoes chat back and runs anything after ``!run`` as game commands.

    Several commands can be given separated by ``;``. Command results are
    echoed once and end the chain.
    """

    def __init__(self, command_marker: str = COMMAND_MARKER) -> None:
        self._command_marker = command_marker

    async def process_user_message(self, text: str) -> AgentTurn:
        _, marker, tail = text.partition(self._command_marker)
        if not marker:
            return AgentTurn(text=f"heard: {text}")

        commands = [command.strip() for command in tail.split(";") if command.strip()]
        if not commands:
            return AgentTurn(text="nothing to run")
        return AgentTurn(text=f"running {len(commands)} command(s)", commands=commands)

    async def process_command_results(self, results: Sequence[str]) -> AgentTurn:
        if not results:
            return AgentTurn(text="no results")
        return AgentTurn(text="results: " + " | ".join(results))
