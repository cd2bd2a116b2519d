"""Administrative API: invitation and principal management."""
from __future__ import annotations
from functools import wraps
from typing import Optional

from flask import Blueprint, abort, current_app, g, jsonify, request

from scripts import audit
from app.core import rbac
from app.core.exceptions import AuthorizationError
from app.core.models import DelegatedRole, Principal, PrincipalRecord
from app.core.rbac import current_principal, is_authenticated, permissions_for
from app.core.validators import normalize_company_id, validate_display_name

bp = Blueprint("admin", __name__)


# ─────────────────────────────────────────────────────────────────────────────
# Decorators
# ─────────────────────────────────────────────────────────────────────────────
def require_login(fn):
    """Reject anonymous callers with 401 and expose the principal as g.principal."""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if not is_authenticated():
            abort(401)
        principal = current_principal()
        if principal is None:
            abort(401)
        g.principal = principal
        return fn(*args, **kwargs)
    return wrapper


def require_manager(fn):
    """Restrict to GlobalAdmin and CompanyAdmin."""
    @wraps(fn)
    @require_login
    def wrapper(*args, **kwargs):
        if not permissions_for(g.principal.role).can_manage:
            abort(403, description="Required role: GlobalAdmin or CompanyAdmin")
        return fn(*args, **kwargs)
    return wrapper


# ─────────────────────────────────────────────────────────────────────────────
# Helper Functions
# ─────────────────────────────────────────────────────────────────────────────
def _service():
    return current_app.extensions["invitation_service"]


def _directory():
    return current_app.extensions["principal_directory"]


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        abort(400, description="Request body must be a JSON object")
    return payload


def _principal_payload(principal: Principal) -> dict:
    return {
        "id": principal.id,
        "displayName": principal.display_name,
        "companyId": principal.company_id,
        "delegatedUserManagementRole": principal.role.value if principal.role else None,
    }


def _find_principal(principal_id: str) -> Optional[PrincipalRecord]:
    """Find a principal within the caller's visible scope."""
    principal = g.principal
    company_id = None if principal.is_global_admin else principal.company_id
    for record in _directory().list_principals(company_id):
        if record.id == principal_id:
            return record
    return None


# ─────────────────────────────────────────────────────────────────────────────
# Routes
# ─────────────────────────────────────────────────────────────────────────────
@bp.route("/me")
@require_login
def me():
    """Signed-in principal with its permissions."""
    return jsonify({
        "principal": _principal_payload(g.principal),
        "permissions": permissions_for(g.principal.role).to_dict(),
        "csrfToken": g.get("csrf_token"),
    })


@bp.route("/invitations", methods=["GET"])
def list_invitations():
    """Pending invitations visible to the caller.

    While the directory has no principals this endpoint is anonymous and only
    returns the bootstrap GlobalAdmin invitation code.
    """
    bootstrap = _service().ensure_bootstrap_invitation()
    if bootstrap is not None:
        return jsonify({
            "bootstrap": True,
            "globalAdminInvitationCode": bootstrap.invitation_code,
            "expiresTime": bootstrap.to_dict()["expiresTime"],
            "permissions": rbac.Permissions().to_dict(),
            "invitations": [],
        })

    if not is_authenticated() or current_principal() is None:
        abort(401)
    principal = current_principal()
    invitations = _service().list_visible(principal)
    return jsonify({
        "bootstrap": False,
        "permissions": permissions_for(principal.role).to_dict(),
        "invitations": [record.to_dict() for record in invitations],
    })


@bp.route("/invitations", methods=["POST"])
@require_manager
def create_invitation():
    """Issue an invitation; company admins are constrained to their own company."""
    payload = _json_body()
    role = payload.get("delegatedUserManagementRole", payload.get("role"))
    try:
        record = _service().issue(
            g.principal,
            payload.get("companyId"),
            role,
            payload.get("validHours"),
        )
    except AuthorizationError as exc:
        abort(403, description=exc.message)
    except ValueError as exc:
        abort(400, description=str(exc))
    return jsonify(record.to_dict()), 201


@bp.route("/invitations/<code>", methods=["DELETE"])
@require_manager
def delete_invitation(code: str):
    """Cancel a pending invitation."""
    try:
        deleted = _service().delete(code, g.principal)
    except AuthorizationError as exc:
        abort(403, description=exc.message)
    except ValueError as exc:
        abort(400, description=str(exc))
    if not deleted:
        abort(404)
    return "", 204


@bp.route("/users", methods=["GET"])
@require_manager
def list_users():
    """Principals visible to the caller, ordered by company, role and name."""
    principal = g.principal
    company_id = None if principal.is_global_admin else principal.company_id
    if principal.is_company_admin and not company_id:
        records = []
    else:
        records = rbac.filter_visible(_directory().list_principals(company_id), principal)
    records = rbac.sort_for_display(records, "display_name")
    return jsonify({
        "permissions": permissions_for(principal.role).to_dict(),
        "users": [record.to_dict() for record in records],
    })


@bp.route("/users/<principal_id>", methods=["PATCH"])
@require_manager
def update_user(principal_id: str):
    """Update a principal's display name, company and delegated role."""
    payload = _json_body()
    target = _find_principal(principal_id)
    if target is None:
        abort(404)

    try:
        rbac.ensure_can_manage_principal(g.principal, target)
        requested = PrincipalRecord(
            id=target.id,
            display_name=validate_display_name(payload.get("displayName", target.display_name)),
            company_id=normalize_company_id(payload["companyId"]) if "companyId" in payload else target.company_id,
            role=(
                DelegatedRole.parse(payload["delegatedUserManagementRole"])
                if payload.get("delegatedUserManagementRole") else target.role
            ),
            invitation_code=target.invitation_code,
        )
    except AuthorizationError as exc:
        abort(403, description=exc.message)
    except ValueError as exc:
        abort(400, description=str(exc))

    updated = rbac.constrain_principal_update(g.principal, requested)
    _directory().update_principal(updated)
    audit.safe_log_invitation_event(
        "principal_updated",
        updated.id,
        operator=g.principal.id,
        company_id=updated.company_id,
        details={"role": updated.role.value if updated.role else None},
    )
    return jsonify(updated.to_dict())


@bp.route("/users/<principal_id>", methods=["DELETE"])
@require_manager
def delete_user(principal_id: str):
    """Delete a principal; callers can never delete themselves."""
    if principal_id == g.principal.id:
        abort(403, description="You cannot modify your own account")
    target = _find_principal(principal_id)
    if target is None:
        abort(404)
    try:
        rbac.ensure_can_manage_principal(g.principal, target)
    except AuthorizationError as exc:
        abort(403, description=exc.message)

    _directory().delete_principal(target.id)
    audit.safe_log_invitation_event(
        "principal_deleted",
        target.id,
        operator=g.principal.id,
        company_id=target.company_id,
    )
    return "", 204
