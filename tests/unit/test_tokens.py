"""Tests for the shared access token holder."""
import threading

import pytest

from membersync.core.orchestration import ConcurrencyGate
from membersync.core.tokens import TokenRefreshError


def test_unauthenticated_holder(token_factory):
    tokens = token_factory()

    assert tokens.is_expired()
    with pytest.raises(TokenRefreshError, match="not authenticated"):
        tokens.snapshot()


def test_refresh_bumps_generation(token_factory):
    tokens = token_factory()

    tokens.refresh()
    tokens.refresh()

    assert tokens.snapshot() == ("token-2", 2)
    assert not tokens.is_expired()


def test_refresh_failure_is_wrapped(token_factory):
    tokens = token_factory()
    tokens.fail = True

    with pytest.raises(TokenRefreshError, match="auth server unavailable"):
        tokens.refresh()
    assert tokens.generation == 0


def test_ensure_valid_refreshes_once(fake_tokens):
    fake_tokens.expire()
    threads = [threading.Thread(target=fake_tokens.ensure_valid) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert fake_tokens.fetch_count == 2
    assert fake_tokens.generation == 2


def test_ensure_valid_noop_when_fresh(fake_tokens):
    fake_tokens.ensure_valid()

    assert fake_tokens.fetch_count == 1


def test_refresh_takes_a_gate_slot(token_factory):
    gate = ConcurrencyGate(1)
    tokens = token_factory(gate=gate)
    seen = []
    tokens.delay = lambda: seen.append(gate.in_flight)

    tokens.refresh()

    assert seen == [1]
