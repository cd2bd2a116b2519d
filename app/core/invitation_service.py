"""
Invitation Service Layer — issue, validate and redeem invitation codes

This module owns the invitation lifecycle used by both the sign-up connector
and the administrative API:

    Admin API (/admin/invitations) ──┐
                                     ├──> invitation_service.py ──> InvitationStore
    Connector (/invitation-redeem) ──┘                          └──> PrincipalDirectory (bootstrap)

Rules:
    - Only GlobalAdmin / CompanyAdmin may issue or delete invitations
    - Company admins issue into their own company and never above CompanyAdmin
    - A code is redeemed at most once (store.take is atomic)
    - While the directory has no principals, a well-known bootstrap code
      grants the first GlobalAdmin
"""

from __future__ import annotations
import datetime
import logging
import secrets
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from app.core import rbac
from app.core.directory import PrincipalDirectory
from app.core.exceptions import InvitationError, InvitationExistsError
from app.core.invitation_store import InvitationStore
from app.core.models import DelegatedRole, InvitationRecord, Principal, utcnow
from app.core.validators import (
    is_well_formed_invitation_code,
    normalize_company_id,
    validate_valid_hours,
)
from scripts import audit

logger = logging.getLogger(__name__)

BOOTSTRAP_INVITATION_CODE = "00000000-0000-0000-0000-000000000000"
BOOTSTRAP_VALIDITY = datetime.timedelta(days=365)
CODE_ENTROPY_BYTES = 24
MAX_CODE_ATTEMPTS = 5


class InvitationRejection(str, Enum):
    """Why a submitted code was not accepted."""

    MALFORMED = "Malformed"
    NOT_FOUND = "NotFound"
    EXPIRED = "Expired"


@dataclass(frozen=True)
class InvitationCheck:
    """Outcome of validate() / redeem(): a record or a rejection reason."""

    record: Optional[InvitationRecord] = None
    reason: Optional[InvitationRejection] = None

    @property
    def ok(self) -> bool:
        return self.record is not None and self.reason is None


def generate_invitation_code() -> str:
    """Generate a URL-safe random code (32 characters)."""
    return secrets.token_urlsafe(CODE_ENTROPY_BYTES)


class InvitationService:
    """Invitation lifecycle on top of an InvitationStore."""

    def __init__(
        self,
        store: InvitationStore,
        principals: Optional[PrincipalDirectory] = None,
        *,
        clock: Callable[[], datetime.datetime] = utcnow,
        code_generator: Callable[[], str] = generate_invitation_code,
        audit_log: Optional[Callable[..., Any]] = None,
    ):
        self.store = store
        self.principals = principals
        self.clock = clock
        self.code_generator = code_generator
        self.audit_log = audit_log or audit.safe_log_invitation_event

    # ─────────────────────────────────────────────────────────────────────────
    # Issue
    # ─────────────────────────────────────────────────────────────────────────
    def issue(
        self,
        principal: Optional[Principal],
        company_id: Optional[str],
        role: Any,
        valid_hours: Any,
    ) -> InvitationRecord:
        """Create and persist a new invitation on behalf of principal.

        Raises:
            AuthorizationError: If principal is not GlobalAdmin or CompanyAdmin
            ValueError: If company, role or validity are invalid
        """
        principal = rbac.require_manager(principal)
        company_id = normalize_company_id(company_id)
        requested_role = DelegatedRole.parse(role)
        hours = validate_valid_hours(valid_hours)

        company_id, granted_role = rbac.constrain_invitation_request(principal, company_id, requested_role)
        if granted_role is not requested_role:
            logger.info(
                "Downgraded invitation role %s -> %s for company admin %s",
                requested_role.value, granted_role.value, principal.id,
            )

        now = self.clock()
        for _ in range(MAX_CODE_ATTEMPTS):
            record = InvitationRecord(
                invitation_code=self.code_generator(),
                company_id=company_id,
                role=granted_role,
                created_by=principal.id,
                created_at=now,
                expires_at=now + datetime.timedelta(hours=hours),
            )
            try:
                self.store.create(record)
                break
            except InvitationExistsError:
                logger.warning("Generated invitation code collided with an existing one; retrying")
        else:
            raise InvitationError("Could not allocate a unique invitation code")

        logger.info(
            "Issued %s invitation for company '%s' (expires %s)",
            granted_role.value, company_id, record.expires_at.isoformat(),
        )
        self.audit_log(
            "invitation_issued",
            record.invitation_code,
            operator=principal.id,
            company_id=company_id,
            details={"role": granted_role.value, "valid_hours": hours},
        )
        return record

    # ─────────────────────────────────────────────────────────────────────────
    # Validate / redeem
    # ─────────────────────────────────────────────────────────────────────────
    def validate(self, code: Any) -> InvitationCheck:
        """Look up a submitted code without consuming it."""
        if not is_well_formed_invitation_code(code):
            return InvitationCheck(reason=InvitationRejection.MALFORMED)

        record = self.store.get(code.strip())
        if record is None:
            return InvitationCheck(reason=InvitationRejection.NOT_FOUND)
        if record.is_expired(self.clock()):
            return InvitationCheck(record=record, reason=InvitationRejection.EXPIRED)
        return InvitationCheck(record=record)

    def redeem(self, code: Any, *, operator: str = "connector") -> InvitationCheck:
        """Validate a code and consume it; at most one caller succeeds per code."""
        check = self.validate(code)
        if not check.ok:
            return check

        record = self.store.take(check.record.invitation_code)
        if record is None:
            logger.warning("Invitation '%s' was redeemed concurrently", check.record.invitation_code)
            return InvitationCheck(reason=InvitationRejection.NOT_FOUND)

        self.audit_log(
            "invitation_redeemed",
            record.invitation_code,
            operator=operator,
            company_id=record.company_id,
            details={"role": record.role.value},
        )
        return InvitationCheck(record=record)

    # ─────────────────────────────────────────────────────────────────────────
    # Administration
    # ─────────────────────────────────────────────────────────────────────────
    def delete(self, code: str, principal: Optional[Principal]) -> bool:
        """Cancel a pending invitation; returns False if it no longer exists.

        Raises:
            AuthorizationError: If principal may not manage the invitation
        """
        principal = rbac.require_manager(principal)
        record = self.store.get(code)
        if record is None:
            return False

        rbac.ensure_can_manage_invitation(principal, record.company_id)
        deleted = self.store.delete(code)
        if deleted:
            self.audit_log(
                "invitation_deleted",
                code,
                operator=principal.id,
                company_id=record.company_id,
                details={"role": record.role.value},
            )
        return deleted

    def list_pending(self, company_id: Optional[str] = None) -> list[InvitationRecord]:
        """All pending invitations (optionally for one company), ordered by company then role."""
        return rbac.sort_for_display(self.store.list(company_id))

    def list_visible(self, principal: Optional[Principal]) -> list[InvitationRecord]:
        """Pending invitations the caller is allowed to see."""
        if principal is None or not rbac.permissions_for(principal.role).can_manage:
            return []
        company_id = None if principal.is_global_admin else principal.company_id
        if principal.is_company_admin and not company_id:
            return []
        return rbac.filter_visible(self.list_pending(company_id), principal)

    def ensure_bootstrap_invitation(self) -> Optional[InvitationRecord]:
        """Make the bootstrap code available while the directory is empty.

        Returns the bootstrap record, or None once any principal exists.
        """
        if self.principals is None:
            return None
        if self.principals.list_principals():
            return None

        existing = self.store.get(BOOTSTRAP_INVITATION_CODE)
        now = self.clock()
        if existing is not None and not existing.is_expired(now):
            return existing

        record = InvitationRecord(
            invitation_code=BOOTSTRAP_INVITATION_CODE,
            company_id=None,
            role=DelegatedRole.GLOBAL_ADMIN,
            created_by=None,
            created_at=now,
            expires_at=now + BOOTSTRAP_VALIDITY,
        )
        self.store.put(record)
        logger.info("Directory has no principals; bootstrap GlobalAdmin invitation created")
        self.audit_log("invitation_bootstrap", BOOTSTRAP_INVITATION_CODE, operator="system")
        return record
