"""Unit tests for the invitation audit trail."""
import json

from scripts import audit


def test_log_invitation_event_creates_restricted_file(temp_audit_dir):
    audit_dir, audit_file = temp_audit_dir

    audit.log_invitation_event("invitation_issued", "code-123", operator="ga-1", company_id="Contoso")

    assert audit_file.exists()
    assert audit_file.stat().st_mode & 0o777 == 0o600
    assert audit_dir.stat().st_mode & 0o777 == 0o700


def test_logged_event_is_signed_json(temp_audit_dir):
    _, audit_file = temp_audit_dir

    audit.log_invitation_event(
        "invitation_redeemed", "code-123", operator="connector", details={"role": "CompanyUser"},
    )

    event = json.loads(audit_file.read_text(encoding="utf-8").strip())
    assert event["event_type"] == "invitation_redeemed"
    assert event["subject"] == "code-123"
    assert event["details"] == {"role": "CompanyUser"}
    assert event["success"] is True
    assert len(event["signature"]) == 64


def test_verify_audit_log_detects_tampering(temp_audit_dir):
    _, audit_file = temp_audit_dir
    audit.log_invitation_event("invitation_issued", "code-1")
    audit.log_invitation_event("invitation_deleted", "code-1")

    assert audit.verify_audit_log() == (2, 2)

    lines = audit_file.read_text(encoding="utf-8").splitlines()
    tampered = json.loads(lines[0])
    tampered["operator"] = "attacker"
    lines[0] = json.dumps(tampered)
    audit_file.write_text("\n".join(lines) + "\n", encoding="utf-8")

    assert audit.verify_audit_log() == (2, 1)


def test_unsigned_events_without_key(temp_audit_dir, monkeypatch):
    _, audit_file = temp_audit_dir
    monkeypatch.delenv("AUDIT_LOG_SIGNING_KEY")

    audit.log_invitation_event("invitation_bootstrap", "00000000-0000-0000-0000-000000000000")

    assert "signature" not in json.loads(audit_file.read_text(encoding="utf-8"))


def test_safe_log_never_raises(mocker):
    mocker.patch.object(audit, "log_invitation_event", side_effect=PermissionError("read-only"))

    assert audit.safe_log_invitation_event("invitation_issued", "code-1") is False


def test_verify_missing_log_is_empty():
    assert audit.verify_audit_log() == (0, 0)
