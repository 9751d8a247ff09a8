"""Credential pool blacklist, recovery and rotation."""

from __future__ import annotations

import pytest

from xui_crawler.engine.credentials import CredentialPool
from xui_crawler.errors import InvalidCredentialError
from xui_crawler.progress import RecordingSink
from xui_crawler.testing import ManualClock


def _pool(clock: ManualClock, *extra: str, sink: RecordingSink | None = None) -> CredentialPool:
    return CredentialPool(
        "tok-a",
        extra or ("tok-b", "tok-c"),
        cooldown_ms=60_000,
        safety_margin_ms=5_000,
        rotation_delay_ms=3_000,
        clock=clock.clock,
        sleep_fn=clock.sleep,
        sink=sink,
    )


def test_pool_keeps_primary_first_and_drops_duplicates() -> None:
    pool = CredentialPool("tok-a", ["tok-b", "tok-a", " ", "tok-b", "tok-c"])

    assert pool.size == 3
    assert pool.current == "tok-a"
    assert pool.current_index == 0


def test_pool_requires_primary_credential() -> None:
    with pytest.raises(InvalidCredentialError, match="credential is required"):
        CredentialPool("  ")


def test_rotate_skips_blacklisted_current_and_injects_next() -> None:
    clock = ManualClock()
    pool = _pool(clock)
    injected: list[str] = []

    pool.blacklist(reason="rate_limit")
    rotated = pool.rotate(injected.append, reason="rate_limit")

    assert rotated is True
    assert injected == ["tok-b"]
    assert pool.current_index == 1
    assert clock.sleeps == [3.0]


def test_rotate_blocks_until_earliest_recovery_plus_margin() -> None:
    clock = ManualClock()
    pool = _pool(clock)
    for index in range(3):
        pool.blacklist(index)
    injected: list[str] = []

    assert pool.next_available().all_blocked is True
    assert pool.next_available().wait_ms == 60_000
    assert pool.rotate(injected.append) is True

    assert clock.sleeps == [65.0, 3.0]
    assert injected == ["tok-b"]
    assert pool.blacklisted_indexes == ()


def test_rotate_returns_to_current_when_it_recovers_first() -> None:
    clock = ManualClock()
    pool = _pool(clock)
    pool.blacklist(0)
    clock.advance(10)
    pool.blacklist(1)
    clock.advance(10)
    pool.blacklist(2)
    injected: list[str] = []

    assert pool.rotate(injected.append) is True

    assert clock.sleeps[0] == 45.0
    assert injected == ["tok-a"]
    assert pool.current_index == 0
    assert pool.is_blacklisted(1) is True


def test_injection_failure_blacklists_target_and_keeps_cursor() -> None:
    clock = ManualClock()
    pool = _pool(clock)

    def inject(value: str) -> None:
        raise RuntimeError(f"cookie rejected for {value}")

    assert pool.rotate(inject) is False
    assert pool.current_index == 0
    assert pool.is_blacklisted(1) is True
    assert clock.sleeps == []


def test_single_credential_pool_never_rotates() -> None:
    clock = ManualClock()
    pool = CredentialPool("tok-a", clock=clock.clock, sleep_fn=clock.sleep)
    injected: list[str] = []

    pool.blacklist()

    assert pool.rotate(injected.append) is False
    assert injected == []
    assert clock.sleeps == []


def test_blacklist_is_idempotent_while_active_and_recovers_after_cooldown() -> None:
    clock = ManualClock()
    pool = _pool(clock)

    assert pool.blacklist(2) is True
    assert pool.blacklist(2) is False
    clock.advance(59)
    assert pool.is_blacklisted(2) is True
    clock.advance(1)
    assert pool.is_blacklisted(2) is False
    assert pool.cleanup_expired() == 1
    assert pool.blacklist(2) is True


def test_blacklist_rejects_indexes_outside_pool() -> None:
    pool = _pool(ManualClock())

    with pytest.raises(IndexError):
        pool.blacklist(3)


def test_pool_messages_name_positions_not_credential_values() -> None:
    clock = ManualClock()
    sink = RecordingSink()
    pool = _pool(clock, sink=sink)

    pool.blacklist(reason="rate_limit")
    pool.rotate(lambda _value: None, reason="rate_limit")

    assert sink.messages
    assert all("tok-" not in message for message in sink.messages)
    assert any("1 -> 2/3" in message for message in sink.messages)


def test_next_available_skips_every_blacklisted_index() -> None:
    pool = _pool(ManualClock())
    pool.blacklist(0)
    pool.blacklist(1)

    assert pool.next_available().index == 2
