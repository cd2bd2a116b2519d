"""Tests for the administrative JSON API."""
import json

import pytest

from app.core.exceptions import DirectoryUnavailableError
from app.core.invitation_service import BOOTSTRAP_INVITATION_CODE
from tests.conftest import authenticate_as, get_csrf_token


@pytest.fixture
def seeded(principals):
    principals.add("ga-1", "GlobalAdmin", None, "Grace")
    principals.add("ca-1", "CompanyAdmin", "Contoso", "Carl")
    principals.add("cu-1", "CompanyUser", "Contoso", "Cora")
    principals.add("cu-2", "CompanyUser", "Contoso", "Abe")
    principals.add("fu-1", "CompanyUser", "Fabrikam", "Finn")
    return principals


def _post(client, path, payload):
    return client.post(path, json=payload, headers={"X-CSRF-Token": get_csrf_token(client)})


def _patch(client, path, payload):
    return client.patch(path, json=payload, headers={"X-CSRF-Token": get_csrf_token(client)})


def _delete(client, path):
    return client.delete(path, headers={"X-CSRF-Token": get_csrf_token(client)})


def _audit_events(temp_audit_dir):
    _, audit_file = temp_audit_dir
    return [json.loads(line) for line in audit_file.read_text(encoding="utf-8").splitlines()]


# ─────────────────────────────────────────────────────────────────────────────
# /admin/me
# ─────────────────────────────────────────────────────────────────────────────
def test_me_requires_authentication(client):
    response = client.get("/admin/me")

    assert response.status_code == 401
    assert response.get_json()["error"] == "Unauthorized"


def test_me_returns_principal_permissions_and_csrf(client):
    authenticate_as(client, "ca-1", "CompanyAdmin", "Contoso", name="Carl")

    body = client.get("/admin/me").get_json()

    assert body["principal"] == {
        "id": "ca-1", "displayName": "Carl", "companyId": "Contoso",
        "delegatedUserManagementRole": "CompanyAdmin",
    }
    assert body["permissions"]["canManage"] is True
    assert body["permissions"]["canAssignGlobalAdmin"] is False
    assert body["csrfToken"]


# ─────────────────────────────────────────────────────────────────────────────
# Invitations
# ─────────────────────────────────────────────────────────────────────────────
def test_empty_directory_exposes_bootstrap_code_anonymously(client):
    body = client.get("/admin/invitations").get_json()

    assert body["bootstrap"] is True
    assert body["globalAdminInvitationCode"] == BOOTSTRAP_INVITATION_CODE


def test_listing_requires_authentication_once_directory_has_principals(client, seeded):
    assert client.get("/admin/invitations").status_code == 401


def test_global_admin_issues_invitation(client, seeded, store, temp_audit_dir):
    authenticate_as(client, "ga-1", "GlobalAdmin")

    response = _post(client, "/admin/invitations", {
        "companyId": "Fabrikam", "delegatedUserManagementRole": "CompanyAdmin", "validHours": 48,
    })

    assert response.status_code == 201
    body = response.get_json()
    assert body["companyId"] == "Fabrikam"
    assert body["delegatedUserManagementRole"] == "CompanyAdmin"
    assert store.get(body["invitationCode"]) is not None
    assert _audit_events(temp_audit_dir)[-1]["event_type"] == "invitation_issued"


def test_company_admin_invitation_is_constrained(client, seeded):
    authenticate_as(client, "ca-1", "CompanyAdmin", "Contoso")

    body = _post(client, "/admin/invitations", {
        "companyId": "Fabrikam", "delegatedUserManagementRole": "GlobalAdmin", "validHours": 24,
    }).get_json()

    assert body["companyId"] == "Contoso"
    assert body["delegatedUserManagementRole"] == "CompanyAdmin"


def test_company_user_cannot_issue_invitations(client, seeded):
    authenticate_as(client, "cu-1", "CompanyUser", "Contoso")

    response = _post(client, "/admin/invitations", {"delegatedUserManagementRole": "CompanyUser", "validHours": 24})

    assert response.status_code == 403
    assert response.get_json()["message"] == "Required role: GlobalAdmin or CompanyAdmin"


def test_company_admin_without_company_cannot_issue_invitations(client, seeded, store):
    authenticate_as(client, "ca-9", "CompanyAdmin", None)

    response = _post(client, "/admin/invitations", {
        "companyId": "Fabrikam", "delegatedUserManagementRole": "CompanyAdmin", "validHours": 24,
    })

    assert response.status_code == 403
    assert store.list() == []


@pytest.mark.parametrize("payload", [
    {"delegatedUserManagementRole": "CompanyUser", "validHours": 0},
    {"delegatedUserManagementRole": "Wizard", "validHours": 24},
    {"delegatedUserManagementRole": "CompanyUser", "validHours": "soon"},
])
def test_invalid_invitation_requests_are_rejected(client, seeded, payload):
    authenticate_as(client, "ga-1", "GlobalAdmin")

    assert _post(client, "/admin/invitations", payload).status_code == 400


def test_post_without_csrf_token_is_rejected(client, seeded):
    authenticate_as(client, "ga-1", "GlobalAdmin")

    response = client.post("/admin/invitations", json={"delegatedUserManagementRole": "CompanyUser", "validHours": 1})

    assert response.status_code == 400
    assert response.get_json()["message"] == "CSRF validation failed"


def test_company_admin_lists_only_own_company_invitations(client, seeded):
    authenticate_as(client, "ga-1", "GlobalAdmin")
    _post(client, "/admin/invitations", {"companyId": "Contoso", "delegatedUserManagementRole": "CompanyUser", "validHours": 1})
    _post(client, "/admin/invitations", {"companyId": "Fabrikam", "delegatedUserManagementRole": "CompanyUser", "validHours": 1})

    authenticate_as(client, "ca-1", "CompanyAdmin", "Contoso")
    body = client.get("/admin/invitations").get_json()

    assert [i["companyId"] for i in body["invitations"]] == ["Contoso"]
    assert body["permissions"]["canSelectCompany"] is False


def test_delete_invitation(client, seeded, store):
    authenticate_as(client, "ga-1", "GlobalAdmin")
    code = _post(client, "/admin/invitations", {
        "companyId": "Contoso", "delegatedUserManagementRole": "CompanyUser", "validHours": 1,
    }).get_json()["invitationCode"]

    assert _delete(client, f"/admin/invitations/{code}").status_code == 204
    assert store.get(code) is None
    assert _delete(client, f"/admin/invitations/{code}").status_code == 404


def test_company_admin_cannot_delete_other_company_invitation(client, seeded):
    authenticate_as(client, "ga-1", "GlobalAdmin")
    code = _post(client, "/admin/invitations", {
        "companyId": "Fabrikam", "delegatedUserManagementRole": "CompanyUser", "validHours": 1,
    }).get_json()["invitationCode"]

    authenticate_as(client, "ca-1", "CompanyAdmin", "Contoso")

    assert _delete(client, f"/admin/invitations/{code}").status_code == 403


# ─────────────────────────────────────────────────────────────────────────────
# Users
# ─────────────────────────────────────────────────────────────────────────────
def test_global_admin_lists_all_users_sorted(client, seeded):
    authenticate_as(client, "ga-1", "GlobalAdmin")

    users = client.get("/admin/users").get_json()["users"]

    assert [u["id"] for u in users] == ["ga-1", "ca-1", "cu-2", "cu-1", "fu-1"]


def test_company_admin_lists_own_company_users(client, seeded):
    authenticate_as(client, "ca-1", "CompanyAdmin", "Contoso")

    users = client.get("/admin/users").get_json()["users"]

    assert {u["companyId"] for u in users} == {"Contoso"}


def test_update_user(client, seeded, temp_audit_dir):
    authenticate_as(client, "ca-1", "CompanyAdmin", "Contoso")

    response = _patch(client, "/admin/users/cu-1", {
        "displayName": "Cora Admin", "delegatedUserManagementRole": "GlobalAdmin",
    })

    assert response.status_code == 200
    updated = seeded.records["cu-1"]
    assert updated.display_name == "Cora Admin"
    assert updated.role.value == "CompanyAdmin"
    assert updated.company_id == "Contoso"
    assert _audit_events(temp_audit_dir)[-1]["event_type"] == "principal_updated"


def test_company_admin_cannot_edit_or_delete_global_admin(client, seeded):
    seeded.add("ga-2", "GlobalAdmin", "Contoso", "Gus")
    authenticate_as(client, "ca-1", "CompanyAdmin", "Contoso")

    response = _patch(client, "/admin/users/ga-2", {"displayName": "Gus Renamed"})

    assert response.status_code == 403
    assert response.get_json()["message"] == "Only a GlobalAdmin can modify a GlobalAdmin account"
    assert _delete(client, "/admin/users/ga-2").status_code == 403
    assert seeded.records["ga-2"].role.value == "GlobalAdmin"
    assert seeded.updated == [] and seeded.deleted == []


def test_update_own_account_is_forbidden(client, seeded):
    authenticate_as(client, "ca-1", "CompanyAdmin", "Contoso")

    response = _patch(client, "/admin/users/ca-1", {"delegatedUserManagementRole": "CompanyUser"})

    assert response.status_code == 403
    assert response.get_json()["message"] == "You cannot modify your own account"


def test_company_admin_cannot_see_other_company_user(client, seeded):
    authenticate_as(client, "ca-1", "CompanyAdmin", "Contoso")

    assert _patch(client, "/admin/users/fu-1", {"displayName": "X"}).status_code == 404
    assert _delete(client, "/admin/users/fu-1").status_code == 404


def test_update_user_rejects_invalid_display_name(client, seeded):
    authenticate_as(client, "ga-1", "GlobalAdmin")

    assert _patch(client, "/admin/users/cu-1", {"displayName": "<b>"}).status_code == 400


def test_delete_user(client, seeded, temp_audit_dir):
    authenticate_as(client, "ga-1", "GlobalAdmin")

    assert _delete(client, "/admin/users/fu-1").status_code == 204
    assert seeded.deleted == ["fu-1"]
    assert _audit_events(temp_audit_dir)[-1]["event_type"] == "principal_deleted"


def test_delete_self_is_forbidden(client, seeded):
    authenticate_as(client, "ga-1", "GlobalAdmin")

    assert _delete(client, "/admin/users/ga-1").status_code == 403


def test_directory_failure_maps_to_bad_gateway(client, seeded, mocker):
    authenticate_as(client, "ga-1", "GlobalAdmin")
    mocker.patch.object(seeded, "list_principals", side_effect=DirectoryUnavailableError("down"))

    response = client.get("/admin/users")

    assert response.status_code == 502
    assert response.get_json()["error"] == "Bad Gateway"
