"""JSON envelopes exchanged with the Minecraft /wsserver peer."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

DEFAULT_PROTOCOL_VERSION = 17104896
DEFAULT_STATUS_MESSAGE = "success"
PLAYER_MESSAGE_EVENT = "PlayerMessage"

_logger = logging.getLogger("mc_ai_bridge.protocol")


@dataclass(slots=True)
class ChatEvent:
    """A player chat line delivered through the PlayerMessage subscription."""

    sender: str
    message: str


@dataclass(slots=True)
class CommandResponse:
    """Result of a previously issued commandRequest."""

    request_id: str
    status_message: str


def encode_frame(payload: dict) -> str:
    """Serialise a frame the way the game sends them: compact, UTF-8 kept as-is."""
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))


def frame_size(frame: str) -> int:
    return len(frame.encode("utf-8"))


def command_request(command: str, request_id: str, *, version: int = DEFAULT_PROTOCOL_VERSION) -> str:
    return encode_frame(
        {
            "header": {
                "requestId": request_id,
                "messagePurpose": "commandRequest",
                "version": version,
            },
            "body": {
                "commandLine": command,
                "version": version,
            },
        }
    )


def subscribe_request(event_name: str, request_id: str, *, version: int = DEFAULT_PROTOCOL_VERSION) -> str:
    return encode_frame(
        {
            "header": {
                "requestId": request_id,
                "messagePurpose": "subscribe",
                "version": version,
            },
            "body": {"eventName": event_name},
        }
    )


def tellraw_command(text: str, *, target: str = "@a") -> str:
    """Wrap chat text in a tellraw command with JSON-escaped raw text."""
    escaped = json.dumps(text, ensure_ascii=False)
    return f'tellraw {target} {{"rawtext":[{{"text":{escaped}}}]}}'


def parse_frame(raw: str | bytes) -> ChatEvent | CommandResponse | None:
    """Decode an inbound frame.

    Returns ``None`` for frames the bridge does not act on. Raises ``ValueError``
    (``json.JSONDecodeError`` included) when the frame, its header or its body
    is not a JSON object.
    """
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")

    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object frame, got {type(data).__name__}")

    header = data.get("header") or {}
    body = data.get("body") or {}
    if not isinstance(header, dict) or not isinstance(body, dict):
        raise ValueError("Frame header and body must be JSON objects")

    if header.get("eventName") == PLAYER_MESSAGE_EVENT and body.get("type") == "chat":
        return ChatEvent(sender=str(body.get("sender", "")), message=str(body.get("message", "")))

    if header.get("messagePurpose") == "commandResponse":
        request_id = header.get("requestId")
        if not request_id:
            _logger.debug("command_response_without_request_id")
            return None
        return CommandResponse(
            request_id=str(request_id),
            status_message=str(body.get("statusMessage") or DEFAULT_STATUS_MESSAGE),
        )

    return None
