"""Tests for the webhook endpoints and JSON error handlers."""
import json
from unittest.mock import Mock

import fakeredis
import pytest

from membersync import audit
from membersync.api.signatures import SIGNATURE_HEADER, compute_signature
from membersync.core.arrivals import ArrivalOutcome
from membersync.core.brivo import BrivoAPIError
from membersync.core.events import CLIENT_CREATED
from membersync.core.tokens import TokenRefreshError
from membersync.flask_app import create_app


@pytest.fixture()
def app(app_config):
    app = create_app(app_config, redis_client=fakeredis.FakeRedis())
    app.config["TESTING"] = True
    yield app
    app.config["DISPATCHER"].close()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def dispatcher(app, monkeypatch):
    """Real dispatcher with ``dispatch`` recorded instead of executed."""
    dispatcher = app.config["DISPATCHER"]
    monkeypatch.setattr(dispatcher, "dispatch", Mock(return_value=None))
    return dispatcher


def signed_post(client, payload, key="webhook-key"):
    body = json.dumps(payload).encode("utf-8")
    return client.post(
        "/webhooks/mindbody",
        data=body,
        content_type="application/json",
        headers={SIGNATURE_HEADER: compute_signature(key, body)},
    )


EVENT = {"messageId": "m1", "eventId": CLIENT_CREATED, "eventData": {"clientId": "a1", "status": "Active"}}


def test_head_validation(client):
    assert client.head("/webhooks/mindbody").status_code == 200


def test_signed_event_is_accepted(client, dispatcher):
    resp = signed_post(client, EVENT)

    assert resp.status_code == 204
    event = dispatcher.dispatch.call_args.args[0]
    assert event.event_id == CLIENT_CREATED
    assert event.member.id == "a1"


def test_bad_signature_is_rejected_and_audited(client, dispatcher):
    resp = signed_post(client, EVENT, key="wrong-key")

    assert resp.status_code == 401
    assert resp.get_json()["error"] == "Unauthorized"
    dispatcher.dispatch.assert_not_called()
    last = json.loads(audit.AUDIT_LOG_FILE.read_text().splitlines()[-1])
    assert last["event_type"] == "webhook_rejected"
    assert last["success"] is False


def test_missing_signature_is_rejected(client, dispatcher):
    resp = client.post("/webhooks/mindbody", json=EVENT)

    assert resp.status_code == 401


def test_malformed_event_is_bad_request(client, dispatcher):
    resp = signed_post(client, {"messageId": "m1"})

    assert resp.status_code == 400
    assert "eventId" in resp.get_json()["message"]


def test_halted_dispatcher_is_unavailable(app, client):
    app.config["DISPATCHER"] = Mock(available=False)

    resp = signed_post(client, EVENT)

    assert resp.status_code == 503
    assert client.get("/ready").status_code == 503


def test_refresh_failure_during_dispatch_maps_to_503(client, dispatcher):
    dispatcher.dispatch.side_effect = TokenRefreshError("Brivo", "invalid_grant")

    resp = signed_post(client, EVENT)

    assert resp.status_code == 503
    assert resp.get_json()["message"] == "Brivo authentication failed"


def test_health_and_ready(client):
    assert client.get("/health").data == b"ok"
    assert client.get("/ready").status_code == 200


def test_unknown_route_is_json(client):
    resp = client.get("/nope")

    assert resp.status_code == 404
    assert resp.get_json()["error"] == "Not Found"


# ─────────────────────────────────────────────────────────────────────────────
# Brivo access events
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture()
def arrivals(app):
    arrivals = Mock()
    arrivals.handle.return_value = ArrivalOutcome.LOGGED
    app.config["ARRIVALS"] = arrivals
    return arrivals


ACCESS_EVENT = {"eventData": {"credentials": [{"id": 90}]}}


def test_access_event_requires_secret(client, arrivals):
    resp = client.post("/webhooks/brivo/access", json=ACCESS_EVENT, headers={"X-Brivo-Event-Secret": "nope"})

    assert resp.status_code == 401
    arrivals.handle.assert_not_called()


def test_access_event_logs_arrival(client, arrivals):
    resp = client.post("/webhooks/brivo/access", json=ACCESS_EVENT, headers={"X-Brivo-Event-Secret": "event-secret"})

    assert resp.status_code == 200
    assert resp.get_json() == {"outcome": "logged"}
    arrivals.handle.assert_called_once_with(ACCESS_EVENT)


def test_access_event_upstream_error_is_bad_gateway(client, arrivals):
    arrivals.handle.side_effect = BrivoAPIError(500, "Internal error", "/credentials/90")

    resp = client.post("/webhooks/brivo/access", json=ACCESS_EVENT, headers={"X-Brivo-Event-Secret": "event-secret"})

    assert resp.status_code == 502


def test_access_route_absent_without_redis(app_config):
    app = create_app(app_config)
    try:
        resp = app.test_client().post("/webhooks/brivo/access", json=ACCESS_EVENT)
        assert resp.status_code == 404
    finally:
        app.config["DISPATCHER"].close()


def test_access_refresh_failure_makes_server_unavailable(app, client, monkeypatch):
    arrivals = app.config["ARRIVALS"]
    error = TokenRefreshError("Brivo", "invalid_grant")
    monkeypatch.setattr(arrivals, "_get_credential", Mock(side_effect=error))

    resp = client.post("/webhooks/brivo/access", json=ACCESS_EVENT, headers={"X-Brivo-Event-Secret": "event-secret"})

    assert resp.status_code == 503
    assert client.get("/ready").status_code == 503
    assert signed_post(client, EVENT).status_code == 503
