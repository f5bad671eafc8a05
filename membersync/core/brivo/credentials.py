"""Brivo access credential operations.

Credentials use the "Unknown Format" credential format by default (id 110);
``GET /credentials/formats`` lists the formats an account supports.
"""
from __future__ import annotations
import logging
from typing import Optional

from .client import BrivoClient, paginate
from .exceptions import BrivoAPIError, CredentialNotFoundError, DuplicateResourceError

logger = logging.getLogger(__name__)


class CredentialService:
    """Service for managing Brivo access credentials."""

    def __init__(self, client: BrivoClient):
        self.client = client

    def create_credential(self, payload: dict) -> int:
        """Create a credential and return its id.

        Raises:
            DuplicateResourceError: A credential with the same reference id exists
        """
        resp = self.client.post("/credentials", json=payload)
        return int(resp.json()["id"])

    def ensure_credential(self, payload: dict) -> int:
        """Create a credential, or return the id of the existing one (idempotent).

        Raises:
            CredentialNotFoundError: Brivo reported a duplicate but the lookup found nothing
        """
        try:
            return self.create_credential(payload)
        except DuplicateResourceError:
            reference_id = payload["referenceId"]
            logger.info(f"Credential {reference_id} already exists, reusing it")
            existing = self.find_by_reference_id(reference_id)
            if existing is None:
                raise CredentialNotFoundError(
                    f"Credential '{reference_id}' reported as duplicate but not found"
                )
            return int(existing["id"])

    def get_credential(self, credential_id: int) -> dict:
        return self.client.get(f"/credentials/{credential_id}").json()

    def find_by_reference_id(self, reference_id: str) -> Optional[dict]:
        """Return the credential whose referenceId matches exactly, or None."""
        resp = self.client.get("/credentials", params={"filter": f"reference_id__eq:{reference_id}"})
        for cred in (resp.json() or {}).get("data") or []:
            if cred.get("referenceId") == reference_id:
                return cred
        return None

    def list_credentials(self, page_size: int = 100) -> list[dict]:
        return paginate(self.client, "/credentials", page_size=page_size)

    def delete_credential(self, credential_id: int) -> bool:
        """Delete a credential (idempotent).

        Returns:
            True if deleted, False if it did not exist
        """
        try:
            self.client.delete(f"/credentials/{credential_id}")
        except BrivoAPIError as exc:
            if exc.status_code == 404:
                return False
            raise
        return True
