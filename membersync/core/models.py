"""Membership records as read from MINDBODY (bulk listing or webhook event)."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Member:
    """One MINDBODY client.

    ``id`` is the client's barcode id; it links the MINDBODY and Brivo
    accounts (Brivo ``externalId`` and credential ``referenceId``).
    """
    id: str
    unique_id: Optional[int] = None
    first_name: str = ""
    middle_name: str = ""
    last_name: str = ""
    email: str = ""
    mobile_phone: str = ""
    home_phone: str = ""
    work_phone: str = ""
    active: bool = True
    status: str = "Active"  # Declined, Non-Member, Active, Expired, Suspended, Terminated

    @classmethod
    def from_api(cls, data: dict) -> "Member":
        """Build from a ``/client/clients`` record (PascalCase keys)."""
        return cls(
            id=str(data.get("Id") or ""),
            unique_id=data.get("UniqueId"),
            first_name=data.get("FirstName") or "",
            middle_name=data.get("MiddleName") or "",
            last_name=data.get("LastName") or "",
            email=data.get("Email") or "",
            mobile_phone=data.get("MobilePhone") or "",
            home_phone=data.get("HomePhone") or "",
            work_phone=data.get("WorkPhone") or "",
            active=bool(data.get("Active", False)),
            status=data.get("Status") or "",
        )

    @classmethod
    def from_event(cls, data: dict) -> "Member":
        """Build from webhook ``eventData`` (camelCase keys).

        Webhook payloads carry ``status`` but no ``Active`` flag.
        """
        status = data.get("status") or ""
        return cls(
            id=str(data.get("clientId") or ""),
            unique_id=data.get("clientUniqueId"),
            first_name=data.get("firstName") or "",
            middle_name=data.get("middleName") or "",
            last_name=data.get("lastName") or "",
            email=data.get("email") or "",
            mobile_phone=data.get("mobilePhone") or "",
            home_phone=data.get("homePhone") or "",
            work_phone=data.get("workPhone") or "",
            active=status == "Active",
            status=status,
        )

    @property
    def is_active(self) -> bool:
        return self.active and self.status == "Active"
