"""Gates deciding which chat lines reach the agent."""

from __future__ import annotations

import math
import re
import time
from collections.abc import Callable
from dataclasses import dataclass


@dataclass(slots=True)
class MessageFilterConfig:
    """Sender and content requirements for chat forwarded to the agent."""

    player_regex: str | None = None
    wake_word: str | None = None


class MessageFilter:
    """Accepts chat from matching senders that mention the wake word."""

    def __init__(self, config: MessageFilterConfig | None = None) -> None:
        self._config = config or MessageFilterConfig()
        self._player_pattern = re.compile(self._config.player_regex) if self._config.player_regex else None

    @property
    def config(self) -> MessageFilterConfig:
        return self._config

    def accepts(self, sender: str, message: str) -> bool:
        if self._player_pattern is not None and not self._player_pattern.search(sender):
            return False
        if self._config.wake_word and self._config.wake_word not in message:
            return False
        return True


class CooldownLedger:
    """Remembers when each sender last got past the cooldown gate.

    Entries are overwritten, never evicted, so the ledger grows with the
    number of distinct senders seen during the process lifetime.
    """

    def __init__(self, cooldown_seconds: float = 5.0, clock: Callable[[], float] = time.monotonic) -> None:
        self._cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._last_seen: dict[str, float] = {}

    @property
    def cooldown_seconds(self) -> float:
        return self._cooldown_seconds

    def __len__(self) -> int:
        return len(self._last_seen)

    def check(self, sender: str) -> int:
        """Return 0 and record the sender when allowed, else whole seconds left to wait."""
        if self._cooldown_seconds <= 0:
            return 0

        now = self._clock()
        last = self._last_seen.get(sender)
        if last is not None:
            elapsed = now - last
            if elapsed < self._cooldown_seconds:
                return max(1, math.ceil(self._cooldown_seconds - elapsed))

        self._last_seen[sender] = now
        return 0
