from __future__ import annotations

import asyncio
import json
from collections.abc import Sequence

from mc_ai_bridge.agents import AgentTurn
from mc_ai_bridge.config import Settings
from mc_ai_bridge.server import BridgeServer
from mc_ai_bridge.telemetry import StatusEvent

from test_peer_link import QueueConnection


class QuietAgent:
    async def process_user_message(self, text: str) -> AgentTurn:
        return AgentTurn(text="hello")

    async def process_command_results(self, results: Sequence[str]) -> AgentTurn:
        return AgentTurn()


class RecordingTelemetry:
    def __init__(self) -> None:
        self.events: list[StatusEvent] = []

    def emit(self, event_name: StatusEvent, payload: dict) -> None:
        self.events.append(event_name)


def test_peer_connection_builds_and_retires_session() -> None:
    telemetry = RecordingTelemetry()
    server = BridgeServer(QuietAgent(), telemetry=telemetry)

    async def _run() -> tuple[QueueConnection, bool]:
        connection = QueueConnection()
        handler = asyncio.create_task(server.peer_link.handle_connection(connection))
        await asyncio.sleep(0.01)
        had_session = server.session is not None
        connection.feed(None)
        await handler
        return connection, had_session

    connection, had_session = asyncio.run(_run())
    frames = [json.loads(raw) for raw in connection.sent]
    assert had_session is True
    assert server.session is None
    assert telemetry.events == [StatusEvent.CONNECTED, StatusEvent.DISCONNECTED]
    assert frames[0]["header"]["messagePurpose"] == "commandRequest"
    assert frames[-1]["header"]["messagePurpose"] == "subscribe"


def test_from_settings_applies_filters_and_limits() -> None:
    settings = Settings(wake_word="AI", player_regex="^Steve$", cooldown_seconds=0, max_payload_bytes=700)
    telemetry = RecordingTelemetry()
    server = BridgeServer.from_settings(settings, QuietAgent(), telemetry=telemetry)

    async def _run() -> list[str]:
        connection = QueueConnection()
        handler = asyncio.create_task(server.peer_link.handle_connection(connection))
        await asyncio.sleep(0.01)
        greeting_frames = len(connection.sent)
        for sender, message in (("Alex", "AI hi"), ("Steve", "hi"), ("Steve", "AI hi")):
            connection.feed(
                json.dumps(
                    {
                        "header": {"eventName": "PlayerMessage"},
                        "body": {"type": "chat", "sender": sender, "message": message},
                    }
                )
            )
        await asyncio.sleep(0.05)
        connection.feed(None)
        await handler
        return connection.sent[greeting_frames:]

    replies = asyncio.run(_run())
    assert len(replies) == 1
    assert "hello" in json.loads(replies[0])["body"]["commandLine"]


def test_stop_reports_stopped_status() -> None:
    telemetry = RecordingTelemetry()
    server = BridgeServer(QuietAgent(), telemetry=telemetry)

    asyncio.run(server.stop())
    assert telemetry.events == [StatusEvent.STOPPED]


def _chat_frame(sender: str, message: str) -> str:
    return json.dumps(
        {"header": {"eventName": "PlayerMessage"}, "body": {"type": "chat", "sender": sender, "message": message}}
    )


def test_configured_cooldown_limits_repeated_wake_word_chat() -> None:
    settings = Settings(wake_word="AI", cooldown_seconds=10)
    server = BridgeServer.from_settings(settings, QuietAgent(), telemetry=RecordingTelemetry())

    async def _run() -> list[str]:
        connection = QueueConnection()
        handler = asyncio.create_task(server.peer_link.handle_connection(connection))
        await asyncio.sleep(0.01)
        greeting_frames = len(connection.sent)
        connection.feed(_chat_frame("Steve", "AI hi"))
        connection.feed(_chat_frame("Steve", "AI again"))
        await asyncio.sleep(0.05)
        connection.feed(None)
        await handler
        return [json.loads(raw)["body"]["commandLine"] for raw in connection.sent[greeting_frames:]]

    replies = asyncio.run(_run())
    assert len(replies) == 2
    assert sum("hello" in line for line in replies) == 1
    assert sum("Steve is on cooldown for 10s" in line for line in replies) == 1


def test_session_failure_on_connect_drops_the_peer() -> None:
    telemetry = RecordingTelemetry()
    server = BridgeServer(QuietAgent(), telemetry=telemetry, max_payload_bytes=10)

    async def _run() -> QueueConnection:
        connection = QueueConnection()
        await server.peer_link.handle_connection(connection)
        return connection

    connection = asyncio.run(_run())
    assert connection.close_code == 1011
    assert server.peer_link.connected is False
    assert server.session is None
    assert telemetry.events == [StatusEvent.ERROR, StatusEvent.DISCONNECTED]
