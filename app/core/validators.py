"""Input validation helpers for invitation and principal data."""
from __future__ import annotations
import re
from typing import Any, Optional

INVITATION_CODE_MIN_LENGTH = 10
INVITATION_CODE_MAX_LENGTH = 128
MAX_VALID_HOURS = 24 * 365

# Codes double as file names in the file store
INVITATION_CODE_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def is_well_formed_invitation_code(code: Any) -> bool:
    """Check that a submitted code could possibly be a real one."""
    if not isinstance(code, str) or not code.strip():
        return False
    code = code.strip()
    if len(code) < INVITATION_CODE_MIN_LENGTH or len(code) > INVITATION_CODE_MAX_LENGTH:
        return False
    return bool(INVITATION_CODE_PATTERN.match(code))


def ensure_safe_invitation_code(code: str) -> str:
    """Reject codes that cannot be used as a storage key.

    Raises:
        ValueError: If the code is empty or contains characters outside [A-Za-z0-9_-]
    """
    if not code or not INVITATION_CODE_PATTERN.match(code):
        raise ValueError("Invitation code contains invalid characters")
    return code


def validate_valid_hours(raw: Any) -> int:
    """Validate the validity window of a new invitation.

    Args:
        raw: Hours as int or numeric string

    Returns:
        Validity in hours

    Raises:
        ValueError: If not an integer between 1 and one year
    """
    if isinstance(raw, bool):
        raise ValueError("validHours must be an integer")
    try:
        hours = int(raw)
    except (TypeError, ValueError):
        raise ValueError("validHours must be an integer")
    if hours < 1 or hours > MAX_VALID_HOURS:
        raise ValueError(f"validHours must be between 1 and {MAX_VALID_HOURS}")
    return hours


def normalize_company_id(raw: Any) -> Optional[str]:
    """Trim a company identifier; empty means 'no company'.

    Raises:
        ValueError: If the identifier is too long or not a string
    """
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise ValueError("companyId must be a string")
    company_id = raw.strip()
    if not company_id:
        return None
    if len(company_id) > 128:
        raise ValueError("companyId exceeds maximum length")
    return company_id


def validate_display_name(name: Any) -> str:
    """Validate a principal display name.

    Raises:
        ValueError: If name is missing, too long or contains markup characters
    """
    if not isinstance(name, str):
        raise ValueError("displayName is required")
    name = name.strip()
    if not name:
        raise ValueError("displayName is required")
    if len(name) > 256:
        raise ValueError("displayName exceeds maximum length")
    if any(char in name for char in "<>\"`;|$"):
        raise ValueError("displayName contains invalid characters")
    return name
