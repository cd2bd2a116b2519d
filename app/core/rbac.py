"""Role-Based Access Control for delegated user management.

Delegated roles form a total order: GlobalAdmin ⊇ CompanyAdmin ⊇ CompanyUser.
Company admins act only inside their own company and can never grant the
GlobalAdmin role.
"""
from __future__ import annotations
import dataclasses
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, TypeVar

from flask import session

from app.core import claims
from app.core.exceptions import AuthorizationError
from app.core.models import DelegatedRole, Principal, PrincipalRecord

T = TypeVar("T")


@dataclass(frozen=True)
class Permissions:
    """What a caller may do on the administrative surface."""

    can_manage: bool = False
    can_assign_global_admin: bool = False
    can_select_company: bool = False

    def to_dict(self) -> dict:
        return {
            "canManage": self.can_manage,
            "canAssignGlobalAdmin": self.can_assign_global_admin,
            "canSelectCompany": self.can_select_company,
        }


_PERMISSIONS = {
    DelegatedRole.GLOBAL_ADMIN: Permissions(True, True, True),
    DelegatedRole.COMPANY_ADMIN: Permissions(True, False, False),
}


def permissions_for(role: Optional[DelegatedRole]) -> Permissions:
    """Map a delegated role (or none) to its permissions."""
    return _PERMISSIONS.get(role, Permissions())


def _in_company(principal: Principal, company_id: Optional[str]) -> bool:
    """A company admin without a company is in scope of nothing."""
    if not principal.company_id:
        return False
    return (company_id or "").lower() == principal.company_id.lower()


def filter_visible(records: Iterable[T], principal: Optional[Principal]) -> list[T]:
    """Return the records (invitations or principals) the caller may see."""
    if principal is None:
        return []
    if principal.is_global_admin:
        return list(records)
    if principal.is_company_admin:
        return [r for r in records if _in_company(principal, r.company_id)]
    return []


def require_manager(principal: Optional[Principal]) -> Principal:
    """Ensure the caller holds GlobalAdmin or CompanyAdmin.

    Raises:
        AuthorizationError: Otherwise
    """
    if principal is None or not permissions_for(principal.role).can_manage:
        raise AuthorizationError("Required role: GlobalAdmin or CompanyAdmin")
    return principal


def constrain_invitation_request(
    principal: Principal,
    company_id: Optional[str],
    role: DelegatedRole,
) -> tuple[Optional[str], DelegatedRole]:
    """Apply the issuer's scope to a requested invitation.

    Company admins always invite into their own company, and a GlobalAdmin
    request is downgraded to CompanyAdmin.
    """
    require_manager(principal)
    if principal.is_company_admin:
        if not principal.company_id:
            raise AuthorizationError("Company admin has no company assigned")
        company_id = principal.company_id
        if role is DelegatedRole.GLOBAL_ADMIN:
            role = DelegatedRole.COMPANY_ADMIN
    return company_id, role


def ensure_can_manage_invitation(principal: Optional[Principal], company_id: Optional[str]) -> None:
    """Raise AuthorizationError unless the caller may delete an invitation of company_id."""
    principal = require_manager(principal)
    if principal.is_company_admin and not _in_company(principal, company_id):
        raise AuthorizationError("Invitation belongs to another company")


def ensure_can_manage_principal(principal: Optional[Principal], target: PrincipalRecord) -> None:
    """Raise AuthorizationError unless the caller may modify the target account.

    Nobody may modify or delete their own account through the admin surface,
    and company admins may not touch GlobalAdmin accounts.
    """
    principal = require_manager(principal)
    if target.id == principal.id:
        raise AuthorizationError("You cannot modify your own account")
    if principal.is_company_admin and not _in_company(principal, target.company_id):
        raise AuthorizationError("User belongs to another company")
    if principal.is_company_admin and target.role is DelegatedRole.GLOBAL_ADMIN:
        raise AuthorizationError("Only a GlobalAdmin can modify a GlobalAdmin account")


def constrain_principal_update(principal: Principal, requested: PrincipalRecord) -> PrincipalRecord:
    """Keep a company admin's edits inside their company and below GlobalAdmin."""
    if not principal.is_company_admin:
        return requested
    role = requested.role
    if role is DelegatedRole.GLOBAL_ADMIN:
        role = DelegatedRole.COMPANY_ADMIN
    return dataclasses.replace(requested, company_id=principal.company_id, role=role)


def sort_for_display(records: Sequence[T], *extra_keys: str) -> list[T]:
    """Stable (company, role[, extra...]) ordering used by every listing."""
    def _key(record):
        role = record.role.value if record.role else ""
        extras = tuple((getattr(record, name) or "").lower() for name in extra_keys)
        return ((record.company_id or "").lower(), role, *extras)
    return sorted(records, key=_key)


# ─────────────────────────────────────────────────────────────────────────────
# Session helpers
# ─────────────────────────────────────────────────────────────────────────────
def is_authenticated() -> bool:
    """Check if user is authenticated."""
    return bool(session.get("token"))


def principal_from_claims(*sources: dict) -> Optional[Principal]:
    """Build the caller principal from id-token claims and userinfo."""
    merged: dict = {}
    for source in sources:
        if isinstance(source, dict):
            merged.update({k: v for k, v in source.items() if v is not None})

    principal_id = merged.get(claims.OBJECT_ID_CLAIM) or merged.get("sub")
    if not principal_id:
        return None
    return Principal(
        id=str(principal_id),
        display_name=merged.get("name") or merged.get("preferred_username") or "",
        company_id=merged.get(claims.claim_name(claims.COMPANY_ID)) or None,
        role=DelegatedRole.parse_optional(merged.get(claims.claim_name(claims.DELEGATED_USER_MANAGEMENT_ROLE))),
        claims=merged,
    )


def current_principal() -> Optional[Principal]:
    """Get the signed-in principal, or None when not authenticated."""
    if not is_authenticated():
        return None
    return principal_from_claims(session.get("id_claims") or {}, session.get("userinfo") or {})


def clear_session_tokens() -> None:
    """Clear all session tokens."""
    session.pop("token", None)
    session.pop("userinfo", None)
    session.pop("id_claims", None)
