"""Turn orchestration between player chat, the agent and command batches."""

from __future__ import annotations

import logging
from typing import Protocol

from mc_ai_bridge.agents import Agent, AgentTurn
from mc_ai_bridge.batch_tracker import BatchTimeoutError, BatchTracker
from mc_ai_bridge.filters import CooldownLedger, MessageFilter
from mc_ai_bridge.telemetry import StatusEvent, Telemetry

REPLY_PREFIX = "§e<AI> §r"
NEW_SESSION_NOTICE = "§eNew conversation started"
COOLDOWN_NOTICE = "§e<AI> §c{sender} is on cooldown for {seconds}s"
BATCH_FAILED_NOTICE = "§cCommand batch failed: {error}"
AGENT_FAILED_NOTICE = "§cAI request failed: {error}"


class ChatOutbox(Protocol):
    """Delivers chat text to the game, split into as many frames as needed."""

    async def send_message(self, text: str) -> int:
        """Send ``text`` and return how many chunks were sent."""


class TurnProcessor:
    """Runs chains of agent turns, feeding each batch's results into the next turn."""

    def __init__(
        self,
        agent: Agent,
        tracker: BatchTracker,
        outbox: ChatOutbox,
        *,
        message_filter: MessageFilter | None = None,
        cooldown: CooldownLedger | None = None,
        telemetry: Telemetry | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._agent = agent
        self._tracker = tracker
        self._outbox = outbox
        self._message_filter = message_filter or MessageFilter()
        self._cooldown = cooldown if cooldown is not None else CooldownLedger(cooldown_seconds=0)
        self._telemetry = telemetry
        self._logger = logger or logging.getLogger("mc_ai_bridge.turns")

    async def handle_chat(self, sender: str, message: str) -> bool:
        """Serve one chat line; ``True`` when it reached the agent.

        The cooldown is checked before the filters, so every chat line from a
        sender restarts their window, including lines the filters then drop.
        """
        wait_seconds = self._cooldown.check(sender)
        if wait_seconds:
            self._logger.info("chat_on_cooldown", extra={"sender": sender, "wait_seconds": wait_seconds})
            await self._outbox.send_message(COOLDOWN_NOTICE.format(sender=sender, seconds=wait_seconds))
            return False

        if not self._message_filter.accepts(sender, message):
            return False

        self._logger.info("chat_accepted", extra={"sender": sender})
        try:
            turn = await self._agent.process_user_message(f"<{sender}> {message}")
        except Exception as exc:  # noqa: BLE001 - agent failures end this chat only.
            self._logger.exception("agent_message_failed", extra={"sender": sender})
            await self._outbox.send_message(AGENT_FAILED_NOTICE.format(error=exc))
            return True

        await self.run_turns(turn)
        return True

    async def run_turns(self, turn: AgentTurn) -> int:
        """Process ``turn`` and every follow-up turn; return how many turns ran.

        The chain ends at the first turn without commands, or at the first
        failure, which is reported and never retried.
        """
        processed = 0
        current: AgentTurn | None = turn
        while current is not None:
            processed += 1
            if current.new_session:
                await self._outbox.send_message(NEW_SESSION_NOTICE)
            if current.text:
                await self._outbox.send_message(f"{REPLY_PREFIX}{current.text}")
            if not current.commands:
                break

            current = await self._run_commands(current.commands)
        return processed

    async def _run_commands(self, commands: list[str]) -> AgentTurn | None:
        self._logger.info("turn_batch_started", extra={"command_count": len(commands)})
        try:
            results = await self._tracker.run_batch(commands)
            self._logger.info("turn_batch_finished", extra={"result_count": len(results)})
            return await self._agent.process_command_results(results)
        except BatchTimeoutError as exc:
            self._logger.warning("turn_batch_timeout", extra={"timeout_seconds": exc.timeout_seconds})
            if self._telemetry is not None:
                self._telemetry.emit(
                    StatusEvent.BATCH_TIMEOUT,
                    {"command_count": len(commands), "timeout_seconds": exc.timeout_seconds},
                )
            await self._outbox.send_message(BATCH_FAILED_NOTICE.format(error=exc))
        except Exception as exc:  # noqa: BLE001 - a failed batch truncates this chain only.
            self._logger.exception("turn_batch_failed", extra={"command_count": len(commands)})
            await self._outbox.send_message(BATCH_FAILED_NOTICE.format(error=exc))
        return None
