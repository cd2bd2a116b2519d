"""Command-line management of invitation codes.

Operates directly on the configured invitation store, acting as a
GlobalAdmin operator. Every change is written to the audit trail.

Examples:
    python -m scripts.invitations issue --company contoso --role CompanyAdmin --valid-hours 48
    python -m scripts.invitations list --company contoso
    python -m scripts.invitations validate <code>
    python -m scripts.invitations delete <code>
"""
from __future__ import annotations
import argparse
import json
import os
import sys
from pathlib import Path

SCRIPT_DIR = Path(__file__).parent
PROJECT_ROOT = SCRIPT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.core.exceptions import InvitationError
from app.core.invitation_service import InvitationService
from app.core.invitation_store import open_store
from app.core.models import DelegatedRole, Principal


def _operator(name: str) -> Principal:
    return Principal(id=name, display_name=name, role=DelegatedRole.GLOBAL_ADMIN)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Invitation code helper")
    parser.add_argument("--store", choices=["file", "memory"], default=os.environ.get("INVITATION_STORE", "file"))
    parser.add_argument("--store-path", default=os.environ.get("INVITATION_STORE_PATH", ".runtime/invitations"))
    parser.add_argument("--operator", default="cli",
                        help="Operator identifier for audit logs (default: cli)")

    sub = parser.add_subparsers(dest="cmd")

    si = sub.add_parser("issue")
    si.add_argument("--company", default=None)
    si.add_argument("--role", required=True, choices=[role.value for role in DelegatedRole])
    si.add_argument("--valid-hours", type=int, default=72)

    sl = sub.add_parser("list")
    sl.add_argument("--company", default=None)

    sd = sub.add_parser("delete")
    sd.add_argument("code")

    sv = sub.add_parser("validate")
    sv.add_argument("code")

    return parser


def main(argv: list[str] | None = None, service: InvitationService | None = None) -> int:
    """Command-line entry point; returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.cmd:
        parser.print_help()
        return 0

    service = service or InvitationService(open_store(args.store, args.store_path))
    operator = _operator(args.operator)

    if args.cmd == "issue":
        try:
            record = service.issue(operator, args.company, args.role, args.valid_hours)
        except (InvitationError, ValueError) as e:
            print(f"[issue] Error: {e}", file=sys.stderr)
            return 1
        print(json.dumps(record.to_dict(), indent=2))
    elif args.cmd == "list":
        for record in service.list_pending(args.company):
            print(json.dumps(record.to_dict()))
    elif args.cmd == "delete":
        try:
            deleted = service.delete(args.code, operator)
        except ValueError as e:
            print(f"[delete] Error: {e}", file=sys.stderr)
            return 1
        if not deleted:
            print(f"[delete] Invitation '{args.code}' not found", file=sys.stderr)
            return 1
        print(f"Deleted invitation '{args.code}'")
    elif args.cmd == "validate":
        check = service.validate(args.code)
        if not check.ok:
            print(f"[validate] Rejected: {check.reason.value}", file=sys.stderr)
            return 1
        print(json.dumps(check.record.to_dict(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
