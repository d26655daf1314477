from mc_ai_bridge.filters import CooldownLedger, MessageFilter, MessageFilterConfig


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_message_filter_defaults_accept_everything() -> None:
    assert MessageFilter().accepts("anyone", "anything") is True


def test_message_filter_matches_sender_pattern_anywhere() -> None:
    message_filter = MessageFilter(MessageFilterConfig(player_regex="Steve"))

    assert message_filter.accepts("xSteve99", "hi") is True
    assert message_filter.accepts("Alex", "hi") is False


def test_message_filter_requires_wake_word_substring() -> None:
    message_filter = MessageFilter(MessageFilterConfig(wake_word="@ai"))

    assert message_filter.accepts("Steve", "hey @ai build a house") is True
    assert message_filter.accepts("Steve", "hey AI build a house") is False


def test_cooldown_rounds_remaining_seconds_up() -> None:
    clock = FakeClock(10.0)
    ledger = CooldownLedger(cooldown_seconds=5, clock=clock)

    assert ledger.check("Steve") == 0
    clock.now = 10.2
    assert ledger.check("Steve") == 5
    clock.now = 14.5
    assert ledger.check("Steve") == 1
    clock.now = 15.0
    assert ledger.check("Steve") == 0


def test_cooldown_is_tracked_per_sender_and_never_evicted() -> None:
    clock = FakeClock()
    ledger = CooldownLedger(cooldown_seconds=5, clock=clock)

    assert ledger.check("Steve") == 0
    assert ledger.check("Alex") == 0
    clock.now = 1000.0
    assert len(ledger) == 2


def test_zero_cooldown_disables_gate() -> None:
    ledger = CooldownLedger(cooldown_seconds=0)

    assert ledger.check("Steve") == 0
    assert ledger.check("Steve") == 0
    assert len(ledger) == 0
