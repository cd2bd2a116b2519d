"""Claim naming and value conventions of the B2C attribute store.

Custom user attributes live on the b2c-extensions-app and are addressed in two
forms:
    - extension name (Graph API, connector payloads): extension_<appid>_<Attr>
    - claim name (tokens issued to apps):             extension_<Attr>

Attributes cannot hold collections, so multi-valued claims travel as one
space-separated string.
"""
from __future__ import annotations
from typing import Iterable, Optional

INVITATION_CODE = "InvitationCode"
COMPANY_ID = "CompanyId"
DELEGATED_USER_MANAGEMENT_ROLE = "DelegatedUserManagementRole"

OBJECT_ID_CLAIM = "oid"


def extension_prefix(extensions_app_client_id: str) -> str:
    return (extensions_app_client_id or "").replace("-", "")


def extension_name(extensions_app_client_id: str, attribute_name: str) -> str:
    """Full attribute name as seen by the Graph API."""
    return f"extension_{extension_prefix(extensions_app_client_id)}_{attribute_name}"


def claim_name(attribute_name: str) -> str:
    """Attribute name as emitted in issued tokens."""
    return f"extension_{attribute_name}"


def encode_multi_value(values: Optional[Iterable[str]]) -> Optional[str]:
    """Join values into a single claim value; empty input maps to None."""
    if not values:
        return None
    unique = sorted({value for value in values if value})
    return " ".join(unique) if unique else None


def decode_multi_value(value: Optional[str]) -> set[str]:
    """Split a space-joined claim value back into its members.

    This service only encodes; relying applications reading the roles claim
    from their tokens use this to get the role set back.
    """
    if not value:
        return set()
    return set(value.split())
