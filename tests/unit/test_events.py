"""Tests for MINDBODY webhook events and their dispatch."""
import json

import pytest

from membersync import audit
from membersync.core.events import (
    CLIENT_CREATED,
    CLIENT_DEACTIVATED,
    EventDispatcher,
    InvalidEventError,
    MindbodyEvent,
)
from membersync.core.orchestration import Status
from membersync.core.tokens import TokenRefreshError


def event_payload(event_id=CLIENT_CREATED, client_id="a1", status="Active"):
    return {
        "messageId": "msg-1",
        "eventId": event_id,
        "eventSchemaVersion": 1,
        "eventData": {"clientId": client_id, "firstName": "Ada", "lastName": "Lovelace", "status": status},
    }


@pytest.fixture()
def dispatcher(mock_runtime):
    d = EventDispatcher(mock_runtime)
    yield d
    d.close()


def audit_events():
    if not audit.AUDIT_LOG_FILE.exists():
        return []
    return [json.loads(line) for line in audit.AUDIT_LOG_FILE.read_text().splitlines()]


def test_from_payload():
    event = MindbodyEvent.from_payload(event_payload(status="Expired"))

    assert event.message_id == "msg-1"
    assert event.event_id == CLIENT_CREATED
    assert event.member.id == "a1"
    assert not event.member.is_active


@pytest.mark.parametrize("payload", [
    None,
    [],
    {"eventData": {"clientId": "a1"}},
    {"eventId": CLIENT_CREATED},
    {"eventId": CLIENT_CREATED, "eventData": "a1"},
])
def test_from_payload_rejects_malformed(payload):
    with pytest.raises(InvalidEventError):
        MindbodyEvent.from_payload(payload)


def test_created_event_provisions_member(dispatcher, mock_runtime):
    item = dispatcher.dispatch(MindbodyEvent.from_payload(event_payload()))
    dispatcher.orchestrator.wait()

    assert item.pipeline is mock_runtime.provision
    assert dispatcher.ledger.get("a1").status is Status.SUCCESS
    mock_runtime.users.add_to_group.assert_called_once_with(42, 1000 + 0xA1)


def test_deactivated_event_runs_deactivate(dispatcher, mock_runtime):
    mock_runtime.users.get_user_by_external_id.return_value = {"id": 17}
    mock_runtime.users.list_user_credentials.return_value = []

    item = dispatcher.dispatch(MindbodyEvent.from_payload(event_payload(CLIENT_DEACTIVATED, status="Terminated")))
    dispatcher.orchestrator.wait()

    assert item.pipeline is mock_runtime.deactivate
    mock_runtime.users.suspend_user.assert_called_once_with(17, True)
    mock_runtime.users.create_user.assert_not_called()


def test_unsupported_event_is_ignored(dispatcher, mock_runtime):
    assert dispatcher.dispatch(MindbodyEvent.from_payload(event_payload("classVisit.created"))) is None
    assert len(dispatcher.ledger) == 0


def test_invalid_barcode_is_ignored(dispatcher, mock_runtime):
    assert dispatcher.dispatch(MindbodyEvent.from_payload(event_payload(client_id="not-hex"))) is None
    mock_runtime.users.create_user.assert_not_called()


def test_outcomes_go_to_audit_trail(dispatcher, mock_runtime):
    mock_runtime.credentials.ensure_credential.side_effect = [5, RuntimeError("format not enabled")]

    dispatcher.dispatch(MindbodyEvent.from_payload(event_payload(client_id="a1")))
    dispatcher.orchestrator.wait()
    dispatcher.dispatch(MindbodyEvent.from_payload(event_payload(client_id="a2")))
    dispatcher.orchestrator.wait()

    events = audit_events()
    assert [(e["event_type"], e["subject"], e["success"]) for e in events] == [
        ("member_provisioned", "a1", True),
        ("member_provisioned", "a2", False),
    ]
    assert events[1]["details"]["reason"] == "Create Credential: format not enabled"


def test_refresh_failure_halts_dispatcher(dispatcher, fake_tokens):
    fake_tokens.fail = True
    fake_tokens.expire()

    dispatcher.dispatch(MindbodyEvent.from_payload(event_payload(client_id="a1")))
    dispatcher.orchestrator.wait()

    assert not dispatcher.available
    assert isinstance(dispatcher.fatal_error, TokenRefreshError)
    assert dispatcher.ledger.get("a1").status is Status.FAILED
    with pytest.raises(TokenRefreshError):
        dispatcher.dispatch(MindbodyEvent.from_payload(event_payload(client_id="a2")))
