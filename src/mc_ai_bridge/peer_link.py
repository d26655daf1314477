"""WebSocket transport holding the single connected Minecraft peer."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any, Protocol

from websockets.asyncio.server import Server, serve
from websockets.exceptions import ConnectionClosed, ConnectionClosedError


class PeerConnection(Protocol):
    """The parts of a websockets server connection the link relies on."""

    remote_address: Any
    close_code: int | None
    close_reason: str | None

    def __aiter__(self) -> AsyncIterator[str | bytes]:
        """Iterate over inbound frames until the connection closes."""

    async def send(self, message: str) -> None:
        """Send one text frame."""

    async def close(self, code: int = 1000, reason: str = "") -> None:
        """Close the connection."""


class PeerLinkListener(Protocol):
    """Receives lifecycle and message events for the active peer."""

    async def on_peer_open(self, remote_address: str) -> None: ...

    async def on_peer_message(self, text: str | bytes) -> None: ...

    async def on_peer_close(self, code: int | None, reason: str) -> None: ...

    async def on_peer_error(self, exc: BaseException) -> None: ...


def format_address(address: Any) -> str:
    if isinstance(address, tuple) and len(address) >= 2:
        return f"{address[0]}:{address[1]}"
    return str(address)


class PeerLink:
    """Accepts game connections and keeps at most one of them active.

    A newly accepted peer replaces the previous one, which is closed without a
    close event since its session has already been superseded.
    """

    def __init__(self, listener: PeerLinkListener, *, logger: logging.Logger | None = None) -> None:
        self._listener = listener
        self._logger = logger or logging.getLogger("mc_ai_bridge.peer_link")
        self._connection: PeerConnection | None = None
        self._server: Server | None = None

    @property
    def connected(self) -> bool:
        return self._connection is not None

    async def start(self, host: str, port: int) -> None:
        if self._server is not None:
            return
        # The game keeps the connection alive on its own and does not answer pings reliably.
        self._server = await serve(self.handle_connection, host, port, ping_interval=None)
        self._logger.info("peer_link_listening", extra={"host": host, "port": port})

    async def serve_forever(self) -> None:
        if self._server is None:
            raise RuntimeError("PeerLink.start() must be awaited before serve_forever()")
        await self._server.serve_forever()

    async def stop(self) -> None:
        connection, self._connection = self._connection, None
        if connection is not None:
            await connection.close(code=1001, reason="bridge stopping")

        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
        self._logger.info("peer_link_stopped")

    async def send(self, text: str) -> bool:
        """Send a frame to the active peer; ``False`` when there is none or it went away."""
        connection = self._connection
        if connection is None:
            self._logger.warning("peer_send_skipped", extra={"reason": "no peer connected"})
            return False

        try:
            await connection.send(text)
        except ConnectionClosed as exc:
            self._logger.warning("peer_send_failed", extra={"error": str(exc)})
            return False
        return True

    async def handle_connection(self, connection: PeerConnection) -> None:
        previous, self._connection = self._connection, connection
        if previous is not None:
            self._logger.info("peer_replaced", extra={"previous": format_address(previous.remote_address)})
            await previous.close(code=1000, reason="replaced by a new peer")

        remote_address = format_address(connection.remote_address)
        self._logger.info("peer_connected", extra={"remote_address": remote_address})

        try:
            try:
                await self._listener.on_peer_open(remote_address)
            except Exception as exc:  # noqa: BLE001 - reported as a peer error, then the peer is dropped.
                self._logger.exception("peer_open_failed", extra={"remote_address": remote_address})
                await self._listener.on_peer_error(exc)
                await connection.close(code=1011, reason="bridge failed to start a session")
                return

            async for message in connection:
                if self._connection is not connection:
                    break
                try:
                    await self._listener.on_peer_message(message)
                except Exception:  # noqa: BLE001 - one bad frame must not drop the peer.
                    self._logger.exception("peer_message_failed", extra={"remote_address": remote_address})
        except ConnectionClosedError as exc:
            if self._connection is connection:
                await self._listener.on_peer_error(exc)
        finally:
            if self._connection is connection:
                self._connection = None
                self._logger.info(
                    "peer_disconnected",
                    extra={"remote_address": remote_address, "close_code": connection.close_code},
                )
                await self._listener.on_peer_close(connection.close_code, connection.close_reason or "")
