"""Per-peer session: frame dispatch, outbound commands and chat delivery."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from mc_ai_bridge.agents import Agent
from mc_ai_bridge.batch_tracker import BatchTracker
from mc_ai_bridge.chunking import ChunkPacker, ChunkTooLargeError, tellraw_frame_size
from mc_ai_bridge.filters import CooldownLedger, MessageFilter
from mc_ai_bridge.protocol import (
    DEFAULT_PROTOCOL_VERSION,
    PLAYER_MESSAGE_EVENT,
    ChatEvent,
    CommandResponse,
    command_request,
    frame_size,
    parse_frame,
    subscribe_request,
    tellraw_command,
)
from mc_ai_bridge.request_ids import RequestIdGenerator
from mc_ai_bridge.telemetry import StatusEvent, Telemetry
from mc_ai_bridge.turns import TurnProcessor

GREETING = "§l§b- WebSocket connected!"
COMMAND_ECHO = "§e[runCommand] §r: {command}"
OVERSIZED_NOTICE = "§c[runCommand] command too long to run"
MESSAGE_TOO_LONG_NOTICE = "§c[sendMessage] message could not be split to fit a frame"
REJECTED_RESULT = "Command too long to run"


class PayloadTooLargeError(ValueError):
    """Raised when an outbound frame is larger than the peer accepts."""

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"Payload of {size} bytes exceeds the {limit} byte limit")
        self.size = size
        self.limit = limit


class PeerDisconnectedError(RuntimeError):
    """Fails pending batches when their peer goes away."""


class BridgeSession:
    """State tied to one accepted peer; built on connect and closed on disconnect."""

    def __init__(
        self,
        send: Callable[[str], Awaitable[bool]],
        agent: Agent,
        *,
        telemetry: Telemetry,
        message_filter: MessageFilter | None = None,
        cooldown: CooldownLedger | None = None,
        packer: ChunkPacker | None = None,
        timeout_seconds: float = 60.0,
        max_payload_bytes: int = 661,
        protocol_version: int = DEFAULT_PROTOCOL_VERSION,
        echo_commands: bool = True,
        request_ids: Callable[[], str] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._send = send
        self._telemetry = telemetry
        self._max_payload_bytes = max_payload_bytes
        self._protocol_version = protocol_version
        self._echo_commands = echo_commands
        self._next_request_id = request_ids or RequestIdGenerator()
        self._packer = packer or ChunkPacker(
            max_payload_bytes=max_payload_bytes,
            frame_size=tellraw_frame_size(protocol_version),
        )
        self._logger = logger or logging.getLogger("mc_ai_bridge.session")
        self._closed = False
        self._tasks: set[asyncio.Task[bool]] = set()

        self.tracker = BatchTracker(
            self._dispatch_tracked,
            timeout_seconds=timeout_seconds,
            request_ids=self._next_request_id,
        )
        self.turns = TurnProcessor(
            agent,
            self.tracker,
            self,
            message_filter=message_filter,
            cooldown=cooldown,
            telemetry=telemetry,
        )

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def active_turns(self) -> int:
        return len(self._tasks)

    async def open(self) -> None:
        await self.send_message(GREETING)
        await self.subscribe(PLAYER_MESSAGE_EVENT)

    def close(self, *, fail_pending: bool = False) -> None:
        """Stop sending for this peer; pending batches expire unless ``fail_pending``."""
        self._closed = True
        if fail_pending:
            self.tracker.fail_all(PeerDisconnectedError("Peer disconnected before all results arrived"))

    async def shutdown(self) -> None:
        """Close the session and cancel every running turn chain."""
        self.close()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def handle_frame(self, raw: str | bytes) -> None:
        try:
            frame = parse_frame(raw)
        except ValueError as exc:
            self._logger.warning("frame_malformed", extra={"error": str(exc)})
            return

        if isinstance(frame, CommandResponse):
            self.tracker.record_result(frame.request_id, frame.status_message)
        elif isinstance(frame, ChatEvent):
            self._start_turn(frame)

    async def send_message(self, text: str) -> int:
        """Deliver chat text as one tellraw command per chunk."""
        sent = 0
        try:
            for chunk in self._packer.iter_chunks(text):
                await self.run_command(tellraw_command(chunk))
                sent += 1
        except ChunkTooLargeError as exc:
            self._logger.warning("message_rejected", extra={"error": str(exc), "chunks_sent": sent})
            self._telemetry.emit(StatusEvent.PAYLOAD_REJECTED, {"error": str(exc)})
            if text != MESSAGE_TOO_LONG_NOTICE:
                await self.send_message(MESSAGE_TOO_LONG_NOTICE)
        return sent

    async def run_command(self, command: str) -> bool:
        """Send an untracked command; its response, if any, is discarded."""
        try:
            frame = self._encode_command(command, self._next_request_id())
        except PayloadTooLargeError as exc:
            await self._reject_payload(command, exc)
            return False
        return await self._deliver(frame)

    async def subscribe(self, event_name: str) -> bool:
        sent = await self._deliver(
            subscribe_request(event_name, self._next_request_id(), version=self._protocol_version)
        )
        if sent:
            self._logger.info("event_subscribed", extra={"event_name": event_name})
        return sent

    async def _dispatch_tracked(self, command: str, request_id: str) -> None:
        try:
            frame = self._encode_command(command, request_id)
        except PayloadTooLargeError as exc:
            await self._reject_payload(command, exc)
            # Fill the slot so the rest of the batch can still complete.
            self.tracker.record_result(request_id, REJECTED_RESULT)
            return

        if self._echo_commands:
            await self.send_message(COMMAND_ECHO.format(command=command))
        self._logger.info("command_dispatched", extra={"request_id": request_id[:5], "command": command})
        await self._deliver(frame)

    def _encode_command(self, command: str, request_id: str) -> str:
        frame = command_request(command, request_id, version=self._protocol_version)
        size = frame_size(frame)
        if size > self._max_payload_bytes:
            raise PayloadTooLargeError(size, self._max_payload_bytes)
        return frame

    async def _reject_payload(self, command: str, exc: PayloadTooLargeError) -> None:
        self._logger.warning(
            "payload_rejected",
            extra={"size": exc.size, "limit": exc.limit, "command": command[:80]},
        )
        self._telemetry.emit(StatusEvent.PAYLOAD_REJECTED, {"size": exc.size, "limit": exc.limit})
        if command != tellraw_command(OVERSIZED_NOTICE):
            await self.send_message(OVERSIZED_NOTICE)

    async def _deliver(self, frame: str) -> bool:
        if self._closed:
            self._logger.debug("frame_dropped", extra={"reason": "session closed"})
            return False
        return await self._send(frame)

    def _start_turn(self, event: ChatEvent) -> None:
        task = asyncio.create_task(
            self.turns.handle_chat(event.sender, event.message),
            name=f"turn-{event.sender}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._turn_finished)

    def _turn_finished(self, task: asyncio.Task[bool]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._logger.error("turn_crashed", exc_info=exc)
