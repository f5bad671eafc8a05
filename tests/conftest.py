"""Pytest shared fixtures."""
import json
import os
import pathlib
import sys
from datetime import datetime, timedelta, timezone
from typing import Optional

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Configure test environment BEFORE any app imports
os.environ.setdefault("DEMO_MODE", "true")

import pytest
import requests

from membersync.config import AppConfig
from membersync.core.tokens import AccessToken, TokenHolder


# ─────────────────────────────────────────────────────────────────────────────
# Network Guard Rails
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def _block_network(monkeypatch, request):
    """
    Prevent unit tests from reaching Brivo or MINDBODY.

    Tests that need HTTP responses patch ``requests.request`` / ``requests.post``
    themselves; anything left unpatched fails loudly.
    """
    if request.node.get_closest_marker("integration"):
        return

    def _unexpected(method):
        def _stub(url, *args, **kwargs):
            raise RuntimeError(f"Unexpected HTTP {method} in unit test: {url}")
        return _stub

    monkeypatch.setattr(requests, "request", lambda method, url, *a, **kw: _unexpected(method)(url))
    monkeypatch.setattr(requests, "post", _unexpected("POST"))
    monkeypatch.setattr(requests, "get", _unexpected("GET"))


@pytest.fixture(autouse=True)
def _isolated_audit(monkeypatch, tmp_path):
    """Keep audit events written during tests out of the working tree."""
    from membersync import audit

    audit_dir = tmp_path / "audit"
    monkeypatch.setattr(audit, "AUDIT_LOG_DIR", audit_dir)
    monkeypatch.setattr(audit, "AUDIT_LOG_FILE", audit_dir / "sync-events.jsonl")
    monkeypatch.setenv("AUDIT_LOG_SIGNING_KEY", "test-signing-key-for-audit-trail")
    yield audit_dir


# ─────────────────────────────────────────────────────────────────────────────
# HTTP stubs
# ─────────────────────────────────────────────────────────────────────────────
class StubResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, payload=None, status_code: int = 200, text: Optional[str] = None):
        self._payload = payload
        self.status_code = status_code
        self.text = text if text is not None else json.dumps(payload)

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON body")
        return self._payload


@pytest.fixture()
def stub_response():
    return StubResponse


# ─────────────────────────────────────────────────────────────────────────────
# Tokens and configuration
# ─────────────────────────────────────────────────────────────────────────────
class FakeTokenHolder(TokenHolder):
    """Token holder whose exchange is a local counter.

    ``fail`` makes every exchange raise; ``delay`` is called inside the
    exchange so tests can hold a refresh open.
    """

    def __init__(self, lifetime: int = 3600, gate=None):
        super().__init__("Brivo", gate=gate, leeway=0)
        self.lifetime = lifetime
        self.fetch_count = 0
        self.fail = False
        self.delay = None

    def _fetch(self, current):
        self.fetch_count += 1
        if self.delay is not None:
            self.delay()
        if self.fail:
            raise RuntimeError("auth server unavailable")
        return AccessToken.from_lifetime(f"token-{self.fetch_count}", self.lifetime)

    def expire(self) -> None:
        """Force the current token past its expiry instant."""
        token = self._token
        if token is not None:
            self._token = AccessToken(token.value, datetime.now(timezone.utc) - timedelta(seconds=1))


@pytest.fixture()
def fake_tokens():
    tokens = FakeTokenHolder()
    tokens.refresh()
    return tokens


def make_config(**overrides) -> AppConfig:
    base = dict(
        demo_mode=True,
        brivo_username="admin",
        brivo_password="password",
        brivo_client_id="client-id",
        brivo_client_secret="client-secret",
        brivo_api_key="brivo-key",
        brivo_member_group_id=42,
        brivo_barcode_field_id=7,
        brivo_user_type_field_id=8,
        brivo_rate_limit=5,
        brivo_rate_window=0,
        brivo_event_secret="event-secret",
        mindbody_api_key="mb-key",
        mindbody_username="Siteowner",
        mindbody_password="mb-password",
        mindbody_webhook_key="webhook-key",
        mindbody_location_id=3,
        workers=8,
        max_requeues=3,
        report_dir=".",
        audit_dir=".runtime/audit",
    )
    base.update(overrides)
    return AppConfig(**base)


@pytest.fixture()
def app_config(tmp_path):
    return make_config(report_dir=str(tmp_path / "reports"), audit_dir=str(tmp_path / "audit"))


@pytest.fixture()
def config_factory():
    """Build an AppConfig with overrides: ``config_factory(max_requeues=1)``."""
    return make_config


@pytest.fixture()
def token_factory():
    """Build unauthenticated FakeTokenHolder instances."""
    return FakeTokenHolder


@pytest.fixture()
def mock_runtime(app_config, fake_tokens):
    """Runtime with real pipelines over mocked Brivo and MINDBODY services.

    ``create_user`` returns ``1000 + int(externalId, 16)`` so tests can tell
    users apart by id.
    """
    from unittest.mock import Mock

    from membersync.core.orchestration import ConcurrencyGate
    from membersync.core.pipelines import CleanupPipeline, DeactivatePipeline, ProvisionPipeline
    from membersync.core.runtime import Runtime

    users = Mock()
    users.create_user.side_effect = lambda payload: 1000 + int(payload["externalId"], 16)
    credentials = Mock()
    credentials.ensure_credential.return_value = 5
    cfg = app_config
    return Runtime(
        config=cfg,
        gate=ConcurrencyGate(cfg.brivo_rate_limit),
        brivo_tokens=fake_tokens,
        brivo=Mock(),
        users=users,
        credentials=credentials,
        mindbody_tokens=Mock(),
        mindbody=Mock(),
        provision=ProvisionPipeline(users, credentials, cfg.brivo_member_group_id, barcode_field_id=7),
        deactivate=DeactivatePipeline(users, cfg.brivo_member_group_id),
        cleanup=CleanupPipeline(users, credentials, 7),
    )
