"""MINDBODY ⇔ Brivo transformation.

Maps a MINDBODY client onto the Brivo user, custom field and credential
representations, and holds the validity predicate that decides whether a
client may enter a pipeline at all.
"""
from __future__ import annotations

import re
from typing import Optional

from .models import Member

HEX_ID_PATTERN = re.compile(r"^[0-9a-fA-F]+$")
UNKNOWN_CREDENTIAL_FORMAT = 110


def is_valid_id(member_id: Optional[str], facility_code: str = "") -> bool:
    """Return True when a barcode id can be issued as a Brivo credential.

    The id must be a non-empty hexadecimal string and, when a facility code
    is configured, carry that facility code as its prefix.
    """
    if not member_id or not HEX_ID_PATTERN.match(member_id):
        return False
    if facility_code and not member_id.lower().startswith(facility_code.lower()):
        return False
    return True


def member_to_brivo_user(member: Member) -> dict:
    """Convert a MINDBODY client to a Brivo user representation."""
    user = {
        "externalId": member.id,
        "firstName": member.first_name,
        "middleName": member.middle_name,
        "lastName": member.last_name,
        "suspended": not member.is_active,
        "emails": [],
        "phoneNumbers": [],
    }
    if member.email:
        user["emails"].append({"address": member.email, "type": "home"})
    for number, number_type in (
        (member.home_phone, "home"),
        (member.mobile_phone, "mobile"),
        (member.work_phone, "work"),
    ):
        if number:
            user["phoneNumbers"].append({"number": number, "type": number_type})
    return user


def custom_field_values(member: Member, barcode_field_id: int, user_type_field_id: int) -> list[tuple[int, str]]:
    """Return ``(field_id, value)`` pairs to write on the Brivo user.

    Fields configured with id 0 are skipped.
    """
    values = []
    if barcode_field_id:
        values.append((barcode_field_id, member.id))
    if user_type_field_id:
        values.append((user_type_field_id, member.status))
    return values


def build_credential(barcode_id: str, format_id: int = UNKNOWN_CREDENTIAL_FORMAT) -> dict:
    """Build the Brivo credential issued for a barcode id."""
    return {
        "credentialFormat": {"id": format_id},
        "referenceId": barcode_id,
        "encodedCredential": barcode_id.encode("utf-8").hex(),
    }
