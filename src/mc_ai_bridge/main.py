"""CLI startup entrypoint for the MC AI bridge."""

from __future__ import annotations

import asyncio

import typer
from rich import print

from mc_ai_bridge.agents import AgentUnavailableError, load_agent
from mc_ai_bridge.chunking import ChunkBudgetError, ChunkPacker, ChunkTooLargeError, tellraw_frame_size
from mc_ai_bridge.config import settings
from mc_ai_bridge.server import BridgeServer
from mc_ai_bridge.telemetry import configure_logging

app = typer.Typer(help="Minecraft WebSocket bridge for an AI agent")


@app.command()
def config() -> None:
    """Show the effective runtime configuration."""
    print(settings.model_dump())


@app.command()
def serve(
    host: str = typer.Option(None, help="Interface to listen on"),
    port: int = typer.Option(None, help="Port Minecraft connects to with /wsserver"),
    wake_word: str = typer.Option(None, help="Only chat containing this text reaches the agent"),
    player_regex: str = typer.Option(None, help="Only senders matching this pattern are served"),
    cooldown: float = typer.Option(None, help="Seconds between two served messages of one player"),
    timeout: float = typer.Option(None, help="Seconds to wait for all results of a command batch"),
    agent_factory: str = typer.Option(None, help="Agent factory as 'package.module:factory'"),
) -> None:
    """Run the bridge until interrupted."""
    overrides = {
        "host": host,
        "port": port,
        "wake_word": wake_word,
        "player_regex": player_regex,
        "cooldown_seconds": cooldown,
        "request_timeout_seconds": timeout,
        "agent_factory": agent_factory,
    }
    effective = settings.model_copy(update={key: value for key, value in overrides.items() if value is not None})
    configure_logging(effective.log_level)

    try:
        agent = load_agent(effective.agent_factory)
    except AgentUnavailableError as exc:
        print({"error": str(exc)})
        raise typer.Exit(code=1)

    server = BridgeServer.from_settings(effective, agent)

    async def _run() -> None:
        try:
            await server.serve_forever()
        finally:
            await server.stop()

    print({"serving": f"ws://{effective.host}:{effective.port}", "connect_with": f"/wsserver localhost:{effective.port}"})
    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        print({"serving": "stopped"})


@app.command()
def chunk(
    text: str,
    max_bytes: int = typer.Option(None, help="Frame budget in bytes (defaults to the configured limit)"),
) -> None:
    """Preview how a chat message is split into tellraw frames."""
    budget = max_bytes or settings.max_payload_bytes
    estimate = tellraw_frame_size(settings.protocol_version)
    try:
        packer = ChunkPacker(max_payload_bytes=budget, frame_size=estimate)
        chunks = packer.pack(text)
    except (ChunkBudgetError, ChunkTooLargeError) as exc:
        print({"error": str(exc)})
        raise typer.Exit(code=1)

    print(
        {
            "max_payload_bytes": budget,
            "chunks": [{"text": part, "frame_bytes": estimate(part)} for part in chunks],
        }
    )


if __name__ == "__main__":
    app()
