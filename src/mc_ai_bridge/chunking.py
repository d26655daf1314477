"""Split outbound chat text into frames that fit the game's payload limit."""

from __future__ import annotations

from collections.abc import Callable, Iterator

from mc_ai_bridge.protocol import DEFAULT_PROTOCOL_VERSION, command_request, frame_size, tellraw_command
from mc_ai_bridge.request_ids import REQUEST_ID_LENGTH

DEFAULT_MAX_PAYLOAD_BYTES = 661


class ChunkBudgetError(ValueError):
    """Raised when the framing overhead alone exceeds the payload budget."""


class ChunkTooLargeError(ValueError):
    """Raised when not even one character of the remaining text fits a frame."""


def tellraw_frame_size(version: int = DEFAULT_PROTOCOL_VERSION) -> Callable[[str], int]:
    """Return an estimator for the encoded size of a tellraw commandRequest carrying ``text``."""
    placeholder_id = "0" * REQUEST_ID_LENGTH

    def estimate(text: str) -> int:
        return frame_size(command_request(tellraw_command(text), placeholder_id, version=version))

    return estimate


class ChunkPacker:
    """Greedy longest-prefix packer over a byte budget.

    ``frame_size`` maps a candidate chunk to the byte size of the final frame
    that would carry it, so JSON escaping and UTF-8 expansion are both counted.
    The size must not decrease as the candidate grows.
    """

    def __init__(
        self,
        max_payload_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES,
        frame_size: Callable[[str], int] | None = None,
    ) -> None:
        self._max_payload_bytes = max_payload_bytes
        self._frame_size = frame_size or tellraw_frame_size()

        overhead = self._frame_size("")
        if overhead >= max_payload_bytes:
            raise ChunkBudgetError(
                f"Frame overhead of {overhead} bytes leaves no room within the {max_payload_bytes} byte budget"
            )

    @property
    def max_payload_bytes(self) -> int:
        return self._max_payload_bytes

    def fits(self, text: str) -> bool:
        return self._frame_size(text) <= self._max_payload_bytes

    def iter_chunks(self, text: str) -> Iterator[str]:
        """Yield consecutive chunks of ``text``; each call starts over."""
        cursor = 0
        while cursor < len(text):
            remaining = text[cursor:]
            if self.fits(remaining):
                yield remaining
                return

            length = self._longest_fitting_prefix(remaining)
            if length == 0:
                raise ChunkTooLargeError(
                    f"Character {remaining[0]!r} at offset {cursor} cannot fit in "
                    f"{self._max_payload_bytes} bytes"
                )
            yield remaining[:length]
            cursor += length

    def pack(self, text: str) -> list[str]:
        return list(self.iter_chunks(text))

    def _longest_fitting_prefix(self, text: str) -> int:
        # Invariant: prefix of length `low` fits, prefix of length `high` does not.
        low, high = 0, len(text)
        while high - low > 1:
            middle = (low + high) // 2
            if self.fits(text[:middle]):
                low = middle
            else:
                high = middle
        return low
