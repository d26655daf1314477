from __future__ import annotations

from uuid import uuid4

import pytest

from mc_ai_bridge.chunking import ChunkBudgetError, ChunkPacker, ChunkTooLargeError, tellraw_frame_size
from mc_ai_bridge.protocol import command_request, frame_size, tellraw_command


def _byte_frame(overhead: int):
    def estimate(text: str) -> int:
        return overhead + len(text.encode("utf-8"))

    return estimate


def test_empty_message_produces_no_chunks() -> None:
    packer = ChunkPacker()

    assert packer.pack("") == []


def test_short_message_is_sent_whole() -> None:
    packer = ChunkPacker()

    assert packer.pack("hello there") == ["hello there"]


def test_packs_longest_prefix_per_chunk() -> None:
    packer = ChunkPacker(max_payload_bytes=15, frame_size=_byte_frame(10))

    assert packer.pack("abcdefghijkl") == ["abcde", "fghij", "kl"]


def test_multibyte_characters_count_by_encoded_size() -> None:
    packer = ChunkPacker(max_payload_bytes=16, frame_size=_byte_frame(10))

    # Each character is three bytes in UTF-8.
    assert packer.pack("你好世界嗎") == ["你好", "世界", "嗎"]


def test_chunks_cover_message_and_respect_real_frame_budget() -> None:
    message = ('Line with "quotes", back\\slashes, 漢字 and emoji 🎮. ' * 40).strip()
    packer = ChunkPacker(max_payload_bytes=661)

    chunks = packer.pack(message)

    assert len(chunks) > 1
    assert "".join(chunks) == message
    assert all(chunks)
    for chunk in chunks:
        frame = command_request(tellraw_command(chunk), str(uuid4()))
        assert frame_size(frame) <= 661


def test_iter_chunks_restarts_on_each_call() -> None:
    packer = ChunkPacker(max_payload_bytes=15, frame_size=_byte_frame(10))

    first = list(packer.iter_chunks("abcdefghijkl"))
    second = list(packer.iter_chunks("abcdefghijkl"))

    assert first == second


def test_budget_below_frame_overhead_fails_fast() -> None:
    with pytest.raises(ChunkBudgetError):
        ChunkPacker(max_payload_bytes=50, frame_size=tellraw_frame_size())


def test_character_that_cannot_fit_raises_instead_of_looping() -> None:
    packer = ChunkPacker(max_payload_bytes=12, frame_size=_byte_frame(10))

    with pytest.raises(ChunkTooLargeError):
        packer.pack("a€")


def test_fits_matches_budget_boundary() -> None:
    packer = ChunkPacker(max_payload_bytes=13, frame_size=_byte_frame(10))

    assert packer.fits("abc") is True
    assert packer.fits("abcd") is False
