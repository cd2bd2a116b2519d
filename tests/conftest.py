"""Pytest shared fixtures."""
import json
import os
import pathlib
import sys
from typing import Optional

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Configure test environment BEFORE any app imports
os.environ.setdefault("DEMO_MODE", "true")
os.environ.setdefault("INVITATION_STORE", "memory")

import pytest
import requests

from app.config import AppConfig
from app.core.directory import ApplicationDirectory, PrincipalDirectory
from app.core.invitation_store import InMemoryInvitationStore
from app.core.models import DelegatedRole, PrincipalRecord
from app.flask_app import create_app
from scripts import audit

EXTENSIONS_APP_ID = "11111111-2222-3333-4444-555555555555"
TARGET_APP_ID = "aaaaaaaa-bbbb-cccc-dddd-eeeeeeeeeeee"
USER_ID = "99999999-8888-7777-6666-555555555555"


# ─────────────────────────────────────────────────────────────────────────────
# Network Guard Rails
# ─────────────────────────────────────────────────────────────────────────────
class StubResponse:
    def __init__(self, payload: Optional[dict] = None, status_code: int = 200, url: str = ""):
        self._payload = payload if payload is not None else {}
        self.status_code = status_code
        self.text = json.dumps(self._payload)
        self.content = self.text.encode("utf-8")
        self.url = url

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(response=self)


@pytest.fixture(autouse=True)
def _block_network(monkeypatch, request):
    """
    Prevent unit tests from hitting live endpoints.

    Tests that exercise the Graph client patch requests themselves.
    """
    if request.node.get_closest_marker("integration"):
        return

    def _unexpected(method):
        def _stub(url, *args, **kwargs):
            raise RuntimeError(f"Unexpected HTTP {method} in unit test: {url}")
        return _stub

    monkeypatch.setattr(requests, "get", _unexpected("GET"))
    monkeypatch.setattr(requests, "post", _unexpected("POST"))
    monkeypatch.setattr(requests, "request", lambda method, url, *a, **kw: _unexpected(method)(url))


@pytest.fixture(autouse=True)
def temp_audit_dir(monkeypatch, tmp_path):
    """Provide an isolated audit trail for each test."""
    audit_dir = tmp_path / "audit"
    audit_file = audit_dir / "invitation-events.jsonl"
    monkeypatch.setattr(audit, "AUDIT_LOG_DIR", audit_dir)
    monkeypatch.setattr(audit, "AUDIT_LOG_FILE", audit_file)
    monkeypatch.setenv("AUDIT_LOG_SIGNING_KEY", "test-signing-key-for-audit-trail")
    return audit_dir, audit_file


# ─────────────────────────────────────────────────────────────────────────────
# Fake directory
# ─────────────────────────────────────────────────────────────────────────────
class FakePrincipalDirectory(PrincipalDirectory):
    """In-memory principal directory."""

    def __init__(self, records=()):
        self.records = {record.id: record for record in records}
        self.updated = []
        self.deleted = []

    def add(self, principal_id, role=None, company_id=None, display_name=None):
        record = PrincipalRecord(
            id=principal_id,
            display_name=display_name or principal_id,
            company_id=company_id,
            role=DelegatedRole.parse(role) if role else None,
        )
        self.records[principal_id] = record
        return record

    def list_principals(self, company_id=None):
        records = list(self.records.values())
        if company_id:
            records = [r for r in records if (r.company_id or "").lower() == company_id.lower()]
        return records

    def update_principal(self, principal):
        self.records[principal.id] = principal
        self.updated.append(principal)

    def delete_principal(self, principal_id):
        self.records.pop(principal_id, None)
        self.deleted.append(principal_id)


class FakeApplicationDirectory(ApplicationDirectory):
    """In-memory application registrations and role assignments."""

    def __init__(self):
        self.registrations = []
        self.assignments = {}

    def register(self, app_id, roles: dict, resource_id="sp-1"):
        """roles maps role id -> role value."""
        self.registrations.append({
            "id": resource_id,
            "appId": app_id,
            "appRoles": [{"id": role_id, "value": value} for role_id, value in roles.items()],
        })

    def assign(self, user_id, role_id, resource_id="sp-1"):
        self.assignments.setdefault((user_id, resource_id), []).append({"appRoleId": role_id})

    def find_service_principals(self, app_id):
        return [r for r in self.registrations if r["appId"] == app_id]

    def list_app_role_assignments(self, user_id, resource_id):
        return list(self.assignments.get((user_id, resource_id), []))


@pytest.fixture()
def principals():
    return FakePrincipalDirectory()


@pytest.fixture()
def applications():
    return FakeApplicationDirectory()


@pytest.fixture()
def store():
    return InMemoryInvitationStore()


# ─────────────────────────────────────────────────────────────────────────────
# Flask Test Client
# ─────────────────────────────────────────────────────────────────────────────
def make_config(**overrides) -> AppConfig:
    values = dict(
        demo_mode=True,
        secret_key="test-secret-key",
        session_cookie_secure=False,
        b2c_extensions_app_client_id=EXTENSIONS_APP_ID,
        invitation_store="memory",
    )
    values.update(overrides)
    return AppConfig(**values)


@pytest.fixture()
def app(monkeypatch, tmp_path, store, principals, applications):
    monkeypatch.setenv("FLASK_SESSION_DIR", str(tmp_path / "sessions"))
    flask_app = create_app(make_config(), store=store, principals=principals, applications=applications)
    flask_app.config.update(TESTING=True)
    return flask_app


@pytest.fixture()
def client(app):
    """Flask test client backed by the in-memory store and fake directory."""
    with app.test_client() as client:
        yield client


# ─────────────────────────────────────────────────────────────────────────────
# Authentication Helpers
# ─────────────────────────────────────────────────────────────────────────────
def authenticate_as(client, principal_id: str, role: Optional[str] = None,
                    company_id: Optional[str] = None, name: str = "Test Admin"):
    """Authenticate test client as a principal with the given delegated role."""
    with client.session_transaction() as session:
        session["token"] = {"access_token": "stub", "id_token": "stub"}
        session["userinfo"] = {}
        session["id_claims"] = {
            "oid": principal_id,
            "name": name,
            "extension_CompanyId": company_id,
            "extension_DelegatedUserManagementRole": role,
        }


def get_csrf_token(client) -> str:
    """Get CSRF token from session."""
    client.get("/health")
    with client.session_transaction() as session:
        return session.get("_csrf_token", "")
