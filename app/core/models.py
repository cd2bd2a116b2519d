"""Domain records for delegated user management.

Invitation records are persisted by the invitation store; principal records
belong to the external directory and are only passed through.
"""
from __future__ import annotations
import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class DelegatedRole(str, Enum):
    """Delegated user management role, ordered from most to least privileged."""

    GLOBAL_ADMIN = "GlobalAdmin"
    COMPANY_ADMIN = "CompanyAdmin"
    COMPANY_USER = "CompanyUser"

    @classmethod
    def parse(cls, value: Any) -> "DelegatedRole":
        """Parse a role name case-insensitively.

        Raises:
            ValueError: If the value is not a known role
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            candidate = value.strip().lower()
            for role in cls:
                if role.value.lower() == candidate:
                    return role
        raise ValueError(f"Unknown delegated role: {value!r}")

    @classmethod
    def parse_optional(cls, value: Any) -> Optional["DelegatedRole"]:
        """Like parse() but maps empty or unknown values to None."""
        if value is None or value == "":
            return None
        try:
            return cls.parse(value)
        except ValueError:
            return None


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _format_timestamp(value: Optional[datetime.datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(datetime.timezone.utc).isoformat()


def _parse_timestamp(value: Any) -> Optional[datetime.datetime]:
    if not value:
        return None
    parsed = datetime.datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed


@dataclass(frozen=True)
class InvitationRecord:
    """A pending, single-use invitation code."""

    invitation_code: str
    company_id: Optional[str]
    role: DelegatedRole
    created_by: Optional[str]
    created_at: datetime.datetime
    expires_at: Optional[datetime.datetime]

    def is_expired(self, now: Optional[datetime.datetime] = None) -> bool:
        """A record without an expiry is treated as expired."""
        if self.expires_at is None:
            return True
        return (now or utcnow()) >= self.expires_at

    def to_dict(self) -> dict:
        return {
            "invitationCode": self.invitation_code,
            "companyId": self.company_id,
            "delegatedUserManagementRole": self.role.value,
            "createdBy": self.created_by,
            "createdTime": _format_timestamp(self.created_at),
            "expiresTime": _format_timestamp(self.expires_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "InvitationRecord":
        return cls(
            invitation_code=data["invitationCode"],
            company_id=data.get("companyId") or None,
            role=DelegatedRole.parse(data.get("delegatedUserManagementRole")),
            created_by=data.get("createdBy"),
            created_at=_parse_timestamp(data.get("createdTime")) or utcnow(),
            expires_at=_parse_timestamp(data.get("expiresTime")),
        )


@dataclass(frozen=True)
class PrincipalRecord:
    """A user account as stored in the directory."""

    id: str
    display_name: str = ""
    company_id: Optional[str] = None
    role: Optional[DelegatedRole] = None
    invitation_code: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "displayName": self.display_name,
            "companyId": self.company_id,
            "delegatedUserManagementRole": self.role.value if self.role else None,
            "invitationCode": self.invitation_code,
        }


@dataclass(frozen=True)
class Principal:
    """The signed-in caller of the administrative surface."""

    id: str
    display_name: str = ""
    company_id: Optional[str] = None
    role: Optional[DelegatedRole] = None
    claims: dict = field(default_factory=dict, compare=False, repr=False)

    @property
    def is_global_admin(self) -> bool:
        return self.role is DelegatedRole.GLOBAL_ADMIN

    @property
    def is_company_admin(self) -> bool:
        return self.role is DelegatedRole.COMPANY_ADMIN
