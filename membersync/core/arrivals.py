"""Brivo access events → MINDBODY arrivals (check-ins).

A member badging in at a Brivo access point is logged as a MINDBODY
arrival, at most once per member within the arrival window. The window is
tracked in Redis with one expiring key per barcode id.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

import redis  # type: ignore[import-untyped]

from ..audit import safe_log_sync_event
from .brivo import CredentialService, TokenExpiredError
from .mindbody import MindbodyClient
from .orchestration import RefreshCoordinator
from .tokens import TokenRefreshError
from .transformer import is_valid_id

logger = logging.getLogger(__name__)


class ArrivalOutcome(str, Enum):
    LOGGED = "logged"
    DUPLICATE = "duplicate"
    NO_CREDENTIAL = "no_credential"
    INVALID_ID = "invalid_id"


class RedisArrivalStore:
    """Last-arrival markers keyed by barcode id, expiring after the window."""

    def __init__(self, r: redis.Redis, window_minutes: int = 30):
        self.r = r
        self.window_seconds = max(1, int(window_minutes) * 60)

    @staticmethod
    def _k(barcode_id: str) -> str:
        return f"arrival:{barcode_id}"

    def claim(self, barcode_id: str) -> bool:
        """Mark an arrival for ``barcode_id``.

        Returns:
            False when an arrival was already marked within the window
        """
        now = datetime.now(timezone.utc).isoformat()
        return bool(self.r.set(self._k(barcode_id), now, nx=True, ex=self.window_seconds))

    def release(self, barcode_id: str) -> None:
        self.r.delete(self._k(barcode_id))

    def last_arrival(self, barcode_id: str) -> Optional[str]:
        value = self.r.get(self._k(barcode_id))
        if value is None:
            return None
        return value.decode("utf-8") if isinstance(value, bytes) else str(value)


@dataclass(frozen=True)
class AccessEvent:
    """Subset of a Brivo access event needed to log an arrival."""
    credential_id: int
    actor_name: str = ""
    object_name: str = ""

    @classmethod
    def from_payload(cls, payload: dict) -> Optional["AccessEvent"]:
        """Return the event for the first presented credential, or None when
        no credential with a non-zero id was presented."""
        event_data = payload.get("eventData") or {}
        credentials = event_data.get("credentials") or []
        if not credentials or not int(credentials[0].get("id") or 0):
            return None
        return cls(
            credential_id=int(credentials[0]["id"]),
            actor_name=(payload.get("actor") or {}).get("name", ""),
            object_name=event_data.get("objectName", ""),
        )


class ArrivalService:
    """Logs MINDBODY arrivals for Brivo access events.

    Brivo calls share the webhook dispatcher's refresh coordinator, so an
    expired token is refreshed once for both webhooks and access events.
    A failed refresh is reported through ``halt`` so webhook processing
    stops as well.
    """

    def __init__(
        self,
        credentials: CredentialService,
        mindbody: MindbodyClient,
        store: RedisArrivalStore,
        coordinator: RefreshCoordinator,
        location_id: int,
        facility_code: str = "",
        halt: Optional[Callable[[TokenRefreshError], None]] = None,
    ):
        self.credentials = credentials
        self.mindbody = mindbody
        self.store = store
        self.coordinator = coordinator
        self.location_id = location_id
        self.facility_code = facility_code
        self._halt = halt

    def handle(self, payload: dict) -> ArrivalOutcome:
        event = AccessEvent.from_payload(payload)
        if event is None:
            logger.info("Access event without a credential, ignoring")
            return ArrivalOutcome.NO_CREDENTIAL

        try:
            credential = self._get_credential(event.credential_id)
        except TokenRefreshError as exc:
            if self._halt is not None:
                self._halt(exc)
            raise
        barcode_id = str(credential.get("referenceId") or "")
        if not is_valid_id(barcode_id, self.facility_code):
            logger.info(f"Credential {event.credential_id} reference '{barcode_id}' is not a valid id")
            return ArrivalOutcome.INVALID_ID

        if not self.store.claim(barcode_id):
            logger.info(f"Member {barcode_id} already has an arrival within the window")
            return ArrivalOutcome.DUPLICATE

        try:
            self.mindbody.add_arrival(barcode_id, self.location_id)
        except Exception:
            # Let the member's next badge-in retry the arrival
            self.store.release(barcode_id)
            raise
        logger.info(f"Logged MINDBODY arrival for {barcode_id} at {event.object_name or 'unknown access point'}")
        safe_log_sync_event(
            "arrival_logged",
            barcode_id,
            source="brivo",
            details={"access_point": event.object_name, "location_id": self.location_id},
        )
        return ArrivalOutcome.LOGGED

    def _get_credential(self, credential_id: int) -> dict:
        self.coordinator.ensure_fresh()
        try:
            return self.credentials.get_credential(credential_id)
        except TokenExpiredError as exc:
            self.coordinator.ensure_fresh(exc.generation)
            return self.credentials.get_credential(credential_id)
