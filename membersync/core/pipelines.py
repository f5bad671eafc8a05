"""Brivo write pipelines: provision, deactivate and cleanup.

Each pipeline is a fixed, linear list of steps; every step makes at most
the remote calls it names and stores what later steps need in the
per-invocation ``state`` dict. A requeued item restarts from the first step
with an empty state, so every step is written to be safe to repeat.
"""
from __future__ import annotations

import logging
from typing import Optional

from .brivo import (
    CredentialService,
    DuplicateResourceError,
    UserNotFoundError,
    UserService,
    get_field_value,
)
from .models import Member
from .orchestration import Pipeline, Step, WorkItem
from .transformer import (
    UNKNOWN_CREDENTIAL_FORMAT,
    build_credential,
    custom_field_values,
    member_to_brivo_user,
)

logger = logging.getLogger(__name__)


def provision_item(member: Member, pipeline: "ProvisionPipeline", brivo_id: Optional[int] = None) -> WorkItem:
    """Wrap a member for the provision pipeline.

    Args:
        brivo_id: Id of the Brivo user already linked to the member, when
            known from a pre-fetch (skips the create call)
    """
    context = {"brivo_id": brivo_id} if brivo_id else {}
    return WorkItem(key=member.id, payload=member, pipeline=pipeline, context=context)


class ProvisionPipeline(Pipeline):
    """Create-or-update a member's Brivo user, credential and group membership.

    Steps: Create User → Update Custom Fields → Create Credential →
    Assign Credential → Assign Group. Conflicts (user or credential already
    present, credential already assigned, user already in the group) are
    treated as success with the existing record's id.
    """

    name = "provision"

    def __init__(
        self,
        users: UserService,
        credentials: CredentialService,
        member_group_id: int,
        barcode_field_id: int = 0,
        user_type_field_id: int = 0,
        credential_format_id: int = UNKNOWN_CREDENTIAL_FORMAT,
    ):
        self.users = users
        self.credentials = credentials
        self.member_group_id = member_group_id
        self.barcode_field_id = barcode_field_id
        self.user_type_field_id = user_type_field_id
        self.credential_format_id = credential_format_id

    def steps(self) -> list[Step]:
        return [
            Step("ensure_user", "Create User", self.ensure_user),
            Step("set_attributes", "Update Custom Fields", self.set_attributes),
            Step("ensure_credential", "Create Credential", self.ensure_credential),
            Step("bind_credential", "Assign Credential", self.bind_credential),
            Step("bind_group", "Assign Group", self.bind_group),
        ]

    def describe(self, item: WorkItem) -> Optional[str]:
        member: Member = item.payload
        return f"{member.id} ({member.first_name} {member.last_name})".strip()

    def ensure_user(self, item: WorkItem, state: dict) -> None:
        member: Member = item.payload
        payload = member_to_brivo_user(member)
        user_id = item.context.get("brivo_id")
        if user_id:
            self.users.update_user(user_id, payload)
        else:
            try:
                user_id = self.users.create_user(payload)
            except DuplicateResourceError:
                existing = self.users.get_user_by_external_id(member.id)
                if existing is None:
                    raise UserNotFoundError(f"User '{member.id}' reported as duplicate but not found")
                user_id = int(existing["id"])
                logger.info(f"Brivo user {member.id} already exists (id={user_id}), updating it")
                self.users.update_user(user_id, payload)
        state["user_id"] = int(user_id)

    def set_attributes(self, item: WorkItem, state: dict) -> None:
        member: Member = item.payload
        for field_id, value in custom_field_values(member, self.barcode_field_id, self.user_type_field_id):
            self.users.update_custom_field(state["user_id"], field_id, value)

    def ensure_credential(self, item: WorkItem, state: dict) -> None:
        member: Member = item.payload
        payload = build_credential(member.id, self.credential_format_id)
        state["credential_id"] = self.credentials.ensure_credential(payload)

    def bind_credential(self, item: WorkItem, state: dict) -> None:
        self.users.assign_credential(state["user_id"], state["credential_id"])

    def bind_group(self, item: WorkItem, state: dict) -> None:
        self.users.add_to_group(self.member_group_id, state["user_id"])


class DeactivatePipeline(Pipeline):
    """Revoke physical access for a member without deleting the Brivo user.

    Steps: Find User → Suspend User → Unassign Credentials → Remove Group.
    The user record stays in Brivo, suspended, so a later reactivation
    (``client.updated`` with status Active) restores it through the
    provision pipeline.
    """

    name = "deactivate"

    def __init__(self, users: UserService, member_group_id: int):
        self.users = users
        self.member_group_id = member_group_id

    def steps(self) -> list[Step]:
        return [
            Step("locate_user", "Find User", self.locate_user),
            Step("suspend_user", "Suspend User", self.suspend_user),
            Step("unbind_credentials", "Unassign Credentials", self.unbind_credentials),
            Step("unbind_group", "Remove Group", self.unbind_group),
        ]

    def locate_user(self, item: WorkItem, state: dict) -> None:
        user = self.users.get_user_by_external_id(item.key)
        if user is None:
            raise UserNotFoundError(f"No Brivo user with external id '{item.key}'")
        state["user_id"] = int(user["id"])

    def suspend_user(self, item: WorkItem, state: dict) -> None:
        self.users.suspend_user(state["user_id"], True)

    def unbind_credentials(self, item: WorkItem, state: dict) -> None:
        for credential in self.users.list_user_credentials(state["user_id"]):
            self.users.unassign_credential(state["user_id"], int(credential["id"]))

    def unbind_group(self, item: WorkItem, state: dict) -> None:
        self.users.remove_from_group(self.member_group_id, state["user_id"])


def cleanup_key(user: dict) -> str:
    """Ledger key of a Brivo user swept by the cleanup pipeline."""
    return str(user.get("externalId") or user.get("id"))


class CleanupPipeline(Pipeline):
    """Delete a Brivo user and the credential issued for its barcode.

    Steps: Get Custom Fields → Delete User → Delete Credential. Users
    without a barcode custom field are left untouched and reported.
    """

    name = "cleanup"

    def __init__(self, users: UserService, credentials: CredentialService, barcode_field_id: int):
        self.users = users
        self.credentials = credentials
        self.barcode_field_id = barcode_field_id

    def steps(self) -> list[Step]:
        return [
            Step("load_barcode", "Get Custom Fields", self.load_barcode),
            Step("delete_user", "Delete User", self.delete_user),
            Step("delete_credential", "Delete Credential", self.delete_credential),
        ]

    def load_barcode(self, item: WorkItem, state: dict) -> None:
        user_id = int(item.payload["id"])
        barcode_id = get_field_value(self.barcode_field_id, self.users.get_custom_fields(user_id))
        if not barcode_id:
            raise ValueError(f"custom field {self.barcode_field_id} not set on user {user_id}")
        state["barcode_id"] = barcode_id

    def delete_user(self, item: WorkItem, state: dict) -> None:
        self.users.delete_user(int(item.payload["id"]))

    def delete_credential(self, item: WorkItem, state: dict) -> None:
        credential = self.credentials.find_by_reference_id(state["barcode_id"])
        if credential is not None:
            self.credentials.delete_credential(int(credential["id"]))
