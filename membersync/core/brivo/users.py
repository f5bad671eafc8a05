"""Brivo user management operations."""
from __future__ import annotations
import logging
from typing import Optional

from .client import BrivoClient, paginate
from .exceptions import BrivoAPIError, DuplicateResourceError

logger = logging.getLogger(__name__)


class UserService:
    """Service for managing Brivo users, their custom fields and group membership."""

    def __init__(self, client: BrivoClient):
        """Initialize user service.

        Args:
            client: Brivo client sharing the run's token holder and gate
        """
        self.client = client

    def create_user(self, payload: dict) -> int:
        """Create a Brivo user and return its id.

        Raises:
            DuplicateResourceError: A user with the same externalId exists
        """
        resp = self.client.post("/users", json=payload)
        user_id = int(resp.json()["id"])
        logger.info(f"Created Brivo user {payload.get('externalId')} (id={user_id})")
        return user_id

    def get_user_by_external_id(self, external_id: str) -> Optional[dict]:
        """Return the user linked to a MINDBODY barcode id, or None when absent."""
        try:
            resp = self.client.get(f"/users/{external_id}/external")
        except BrivoAPIError as exc:
            if exc.status_code == 404:
                return None
            raise
        return resp.json() or None

    def update_user(self, user_id: int, payload: dict) -> None:
        """Overwrite the user's profile with ``payload``."""
        self.client.put(f"/users/{user_id}", json=payload)

    def suspend_user(self, user_id: int, suspended: bool = True) -> None:
        """Toggle the suspended flag, which blocks every credential of the user."""
        self.client.put(f"/users/{user_id}/suspended", json={"suspended": suspended})

    def delete_user(self, user_id: int) -> None:
        self.client.delete(f"/users/{user_id}")

    def list_users(self, page_size: int = 100) -> list[dict]:
        """Return every Brivo user (all pages)."""
        return paginate(self.client, "/users", page_size=page_size)

    def list_group_users(self, group_id: int, page_size: int = 100) -> list[dict]:
        """Return every member of a Brivo group (all pages)."""
        return paginate(self.client, f"/groups/{group_id}/users", page_size=page_size)

    def update_custom_field(self, user_id: int, field_id: int, value: str) -> None:
        self.client.put(f"/users/{user_id}/custom-fields/{field_id}", json={"value": value})

    def get_custom_fields(self, user_id: int) -> list[dict]:
        """Return the ``[{"id": ..., "value": ...}]`` custom fields of a user."""
        resp = self.client.get(f"/users/{user_id}/custom-fields")
        return (resp.json() or {}).get("data") or []

    def list_user_credentials(self, user_id: int) -> list[dict]:
        resp = self.client.get(f"/users/{user_id}/credentials")
        return (resp.json() or {}).get("data") or []

    def assign_credential(self, user_id: int, credential_id: int) -> bool:
        """Assign a credential to a user (idempotent).

        Returns:
            True if assigned, False if it was already assigned
        """
        try:
            self.client.put(f"/users/{user_id}/credentials/{credential_id}")
        except DuplicateResourceError:
            return False
        return True

    def unassign_credential(self, user_id: int, credential_id: int) -> None:
        self.client.delete(f"/users/{user_id}/credentials/{credential_id}")

    def add_to_group(self, group_id: int, user_id: int) -> bool:
        """Add a user to a group (idempotent).

        Returns:
            True if added, False if already a member
        """
        try:
            self.client.put(f"/groups/{group_id}/users/{user_id}")
        except DuplicateResourceError:
            return False
        return True

    def remove_from_group(self, group_id: int, user_id: int) -> bool:
        """Remove a user from a group (idempotent).

        Returns:
            True if removed, False if not a member
        """
        try:
            self.client.delete(f"/groups/{group_id}/users/{user_id}")
        except BrivoAPIError as exc:
            if exc.status_code == 404:
                return False
            raise
        return True


def get_field_value(field_id: int, custom_fields: list[dict]) -> Optional[str]:
    """Search a custom field list by id and return its value."""
    for field in custom_fields:
        if int(field.get("id", 0)) == field_id:
            return field.get("value")
    return None
