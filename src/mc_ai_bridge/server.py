"""Top-level bridge: owns the peer link and the session of the connected peer."""

from __future__ import annotations

import logging

from mc_ai_bridge.agents import Agent
from mc_ai_bridge.config import Settings
from mc_ai_bridge.filters import CooldownLedger, MessageFilter, MessageFilterConfig
from mc_ai_bridge.peer_link import PeerLink
from mc_ai_bridge.session import BridgeSession
from mc_ai_bridge.telemetry import LoggingTelemetry, StatusEvent, Telemetry


class BridgeServer:
    """Accepts the game peer and routes its traffic through a fresh session per connection.

    The cooldown ledger outlives sessions so reconnecting does not reset it.
    """

    def __init__(
        self,
        agent: Agent,
        *,
        host: str = "0.0.0.0",
        port: int = 8080,
        message_filter: MessageFilter | None = None,
        cooldown: CooldownLedger | None = None,
        telemetry: Telemetry | None = None,
        request_timeout_seconds: float = 60.0,
        max_payload_bytes: int = 661,
        protocol_version: int | None = None,
        echo_commands: bool = True,
        fail_pending_on_disconnect: bool = False,
        peer_link: PeerLink | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._agent = agent
        self._host = host
        self._port = port
        self._message_filter = message_filter or MessageFilter()
        self._cooldown = cooldown if cooldown is not None else CooldownLedger()
        self._telemetry = telemetry or LoggingTelemetry()
        self._session_options = {
            "timeout_seconds": request_timeout_seconds,
            "max_payload_bytes": max_payload_bytes,
            "echo_commands": echo_commands,
        }
        if protocol_version is not None:
            self._session_options["protocol_version"] = protocol_version
        self._fail_pending_on_disconnect = fail_pending_on_disconnect
        self._link = peer_link or PeerLink(self)
        self._logger = logger or logging.getLogger("mc_ai_bridge.server")

        self._session: BridgeSession | None = None
        self._retired: list[BridgeSession] = []

    @classmethod
    def from_settings(cls, settings: Settings, agent: Agent, **overrides) -> BridgeServer:
        options = {
            "host": settings.host,
            "port": settings.port,
            "message_filter": MessageFilter(
                MessageFilterConfig(player_regex=settings.player_regex, wake_word=settings.wake_word)
            ),
            "cooldown": CooldownLedger(cooldown_seconds=settings.cooldown_seconds),
            "request_timeout_seconds": settings.request_timeout_seconds,
            "max_payload_bytes": settings.max_payload_bytes,
            "protocol_version": settings.protocol_version,
            "echo_commands": settings.echo_commands,
            "fail_pending_on_disconnect": settings.fail_pending_on_disconnect,
        }
        options.update(overrides)
        return cls(agent, **options)

    @property
    def session(self) -> BridgeSession | None:
        return self._session

    @property
    def peer_link(self) -> PeerLink:
        return self._link

    async def serve_forever(self) -> None:
        await self._link.start(self._host, self._port)
        self._telemetry.emit(
            StatusEvent.LISTENING,
            {"host": self._host, "port": self._port, "hint": f"/wsserver localhost:{self._port}"},
        )
        await self._link.serve_forever()

    async def stop(self) -> None:
        await self._link.stop()
        sessions = [*self._retired, *([self._session] if self._session else [])]
        self._session = None
        self._retired.clear()
        for session in sessions:
            await session.shutdown()
        self._telemetry.emit(StatusEvent.STOPPED, {})

    async def on_peer_open(self, remote_address: str) -> None:
        if self._session is not None:
            self._retire(self._session)
            self._session = None

        self._session = BridgeSession(
            self._link.send,
            self._agent,
            telemetry=self._telemetry,
            message_filter=self._message_filter,
            cooldown=self._cooldown,
            **self._session_options,
        )
        self._telemetry.emit(StatusEvent.CONNECTED, {"remote_address": remote_address})
        await self._session.open()

    async def on_peer_message(self, text: str | bytes) -> None:
        if self._session is None:
            self._logger.debug("frame_without_session")
            return
        await self._session.handle_frame(text)

    async def on_peer_close(self, code: int | None, reason: str) -> None:
        self._telemetry.emit(StatusEvent.DISCONNECTED, {"code": code, "reason": reason})
        if self._session is not None:
            self._retire(self._session)
            self._session = None

    async def on_peer_error(self, exc: BaseException) -> None:
        self._telemetry.emit(StatusEvent.ERROR, {"error": str(exc) or type(exc).__name__})

    def _retire(self, session: BridgeSession) -> None:
        session.close(fail_pending=self._fail_pending_on_disconnect)
        self._retired = [retired for retired in self._retired if retired.active_turns]
        if session.active_turns:
            self._retired.append(session)
