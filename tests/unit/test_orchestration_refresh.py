"""Tests for single-flight token refresh and requeue draining."""
import threading
import time

import pytest

from membersync.core.orchestration import RefreshCoordinator, RequeueBuffer
from membersync.core.tokens import TokenRefreshError


@pytest.fixture()
def resubmitted():
    return []


@pytest.fixture()
def coordinator(fake_tokens, resubmitted):
    return RefreshCoordinator(fake_tokens, RequeueBuffer(), resubmitted.append)


def test_fast_path_does_not_refresh(coordinator, fake_tokens):
    coordinator.ensure_fresh()
    assert fake_tokens.fetch_count == 1
    assert coordinator.refresh_count == 0


def test_expired_token_is_refreshed(coordinator, fake_tokens):
    fake_tokens.expire()
    coordinator.ensure_fresh()
    assert fake_tokens.fetch_count == 2
    assert fake_tokens.generation == 2
    assert not fake_tokens.is_expired()


def test_concurrent_callers_share_one_refresh(coordinator, fake_tokens):
    """N tasks observing an expired token at once trigger exactly one exchange."""
    fake_tokens.expire()
    fake_tokens.delay = lambda: time.sleep(0.05)
    barrier = threading.Barrier(10)
    errors = []

    def worker():
        barrier.wait()
        try:
            coordinator.ensure_fresh()
        except Exception as exc:
            errors.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(10)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert fake_tokens.fetch_count == 2
    assert coordinator.refresh_count == 1


def test_rejected_generation_refreshes_once(coordinator, fake_tokens):
    """A 401 on an unexpired token refreshes; a late 401 on the same token does not."""
    stale = fake_tokens.generation

    coordinator.ensure_fresh(stale)
    coordinator.ensure_fresh(stale)

    assert fake_tokens.fetch_count == 2
    assert fake_tokens.generation == stale + 1


def test_deferred_item_resubmitted_once_after_refresh(coordinator, fake_tokens, resubmitted):
    coordinator.defer("item-a", fake_tokens.generation)

    assert resubmitted == ["item-a"]
    assert len(coordinator.buffer) == 0
    assert coordinator.refresh_count == 1


def test_item_rejected_with_current_token_is_not_resubmitted_early(coordinator, fake_tokens, resubmitted):
    coordinator.buffer.push("item-a", fake_tokens.generation)

    assert coordinator.drain() == 0
    assert resubmitted == []
    assert len(coordinator.buffer) == 1

    coordinator.ensure_fresh(fake_tokens.generation)

    assert resubmitted == ["item-a"]


def test_item_routed_during_refresh_is_replayed_after_it(coordinator, fake_tokens, resubmitted):
    """Items arriving mid-refresh are parked, then resubmitted exactly once."""
    routed = []

    def during_refresh():
        assert coordinator.is_refreshing
        routed.append(coordinator.route("item-b"))
        # A drain attempted while the refresh is in flight must not release it
        assert coordinator.drain() == 0
        assert resubmitted == []

    fake_tokens.delay = during_refresh
    fake_tokens.expire()
    coordinator.ensure_fresh()

    assert routed == [True]
    assert resubmitted == ["item-b"]
    assert not coordinator.is_refreshing


def test_route_outside_refresh_returns_false(coordinator):
    assert coordinator.route("item-c") is False
    assert len(coordinator.buffer) == 0


def test_refresh_failure_is_fatal(coordinator, fake_tokens):
    fake_tokens.fail = True
    fake_tokens.expire()

    with pytest.raises(TokenRefreshError, match="auth server unavailable"):
        coordinator.ensure_fresh()

    assert coordinator.fatal_error is not None
    assert not coordinator.is_refreshing

    # Later callers fail fast without another exchange
    with pytest.raises(TokenRefreshError):
        coordinator.ensure_fresh()
    assert fake_tokens.fetch_count == 2
