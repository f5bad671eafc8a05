"""MINDBODY webhook events and their dispatch onto pipelines."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..audit import safe_log_sync_event
from .models import Member
from .orchestration import OutcomeLedger, OutcomeRecord, Orchestrator, Status, WorkItem
from .pipelines import provision_item
from .runtime import Runtime
from .tokens import TokenRefreshError
from .transformer import is_valid_id

logger = logging.getLogger(__name__)

CLIENT_CREATED = "client.created"
CLIENT_UPDATED = "client.updated"
CLIENT_DEACTIVATED = "client.deactivated"

AUDIT_EVENT_TYPES = {
    "provision": "member_provisioned",
    "deactivate": "member_deactivated",
}


class InvalidEventError(ValueError):
    """Webhook body is not a MINDBODY event."""


@dataclass(frozen=True)
class MindbodyEvent:
    message_id: str
    event_id: str
    member: Member

    @classmethod
    def from_payload(cls, payload: object) -> "MindbodyEvent":
        """Parse a webhook body.

        Raises:
            InvalidEventError: Missing ``eventId`` or ``eventData``
        """
        if not isinstance(payload, dict):
            raise InvalidEventError("Event body must be a JSON object")
        event_id = payload.get("eventId")
        data = payload.get("eventData")
        if not event_id or not isinstance(data, dict):
            raise InvalidEventError("Event requires 'eventId' and 'eventData'")
        return cls(
            message_id=str(payload.get("messageId") or ""),
            event_id=str(event_id),
            member=Member.from_event(data),
        )


def _audit_outcome(record: OutcomeRecord) -> None:
    event_type = AUDIT_EVENT_TYPES.get(record.pipeline)
    if event_type is None:
        return
    safe_log_sync_event(
        event_type,
        record.key,
        source="webhook",
        details={"reason": record.reason} if record.reason else None,
        success=record.status is Status.SUCCESS,
    )


class EventDispatcher:
    """Routes webhook events to the provision and deactivate pipelines.

    One long-lived orchestrator serves every event of the process; each
    event becomes a single work item processed in the background after the
    HTTP acknowledgement. A token refresh failure halts the dispatcher for
    good and the HTTP layer reports it as unavailable.
    """

    def __init__(self, runtime: Runtime):
        self.runtime = runtime
        self.ledger = OutcomeLedger(listener=_audit_outcome)
        self.orchestrator: Orchestrator = runtime.orchestrator(ledger=self.ledger, on_fatal=self._on_fatal)

    @property
    def available(self) -> bool:
        return not self.orchestrator.halted

    @property
    def fatal_error(self) -> Optional[TokenRefreshError]:
        return self.orchestrator.fatal_error

    def dispatch(self, event: MindbodyEvent) -> Optional[WorkItem]:
        """Submit the work item matching ``event``.

        Returns:
            The submitted item, or None when the event was ignored
        """
        member = event.member
        if event.event_id not in (CLIENT_CREATED, CLIENT_UPDATED, CLIENT_DEACTIVATED):
            logger.info(f"Ignoring unsupported MINDBODY event '{event.event_id}' ({event.message_id})")
            return None
        if not is_valid_id(member.id, self.runtime.config.brivo_facility_code):
            logger.info(f"Ignoring {event.event_id} for client with invalid barcode id '{member.id}'")
            return None

        if event.event_id == CLIENT_DEACTIVATED:
            item = WorkItem(key=member.id, payload=member, pipeline=self.runtime.deactivate)
        else:
            item = provision_item(member, self.runtime.provision)

        logger.info(f"Dispatching {event.event_id} for client {member.id}")
        if not self.orchestrator.submit(item):
            raise self.orchestrator.fatal_error or TokenRefreshError("Brivo", "dispatcher halted")
        return item

    def close(self) -> None:
        self.orchestrator.wait()
        self.orchestrator.shutdown()

    def _on_fatal(self, exc: TokenRefreshError) -> None:
        logger.critical(f"Webhook processing stopped: {exc}")
