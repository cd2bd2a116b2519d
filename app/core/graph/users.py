"""B2C user (principal) operations over Microsoft Graph."""
from __future__ import annotations
import logging
from typing import Optional

from app.core import claims
from app.core.directory import PrincipalDirectory
from app.core.models import DelegatedRole, PrincipalRecord

from .client import GraphClient

logger = logging.getLogger(__name__)


def _odata_quote(value: str) -> str:
    """Escape a string literal for an OData $filter."""
    return value.replace("'", "''")


class GraphPrincipalDirectory(PrincipalDirectory):
    """Principal records stored as B2C users with extension attributes."""

    def __init__(self, client: GraphClient, extensions_app_client_id: str):
        """Initialize user directory.

        Args:
            client: Graph client for the B2C directory
            extensions_app_client_id: Client id of the b2c-extensions-app
        """
        self.client = client
        self.company_attribute = claims.extension_name(extensions_app_client_id, claims.COMPANY_ID)
        self.role_attribute = claims.extension_name(extensions_app_client_id, claims.DELEGATED_USER_MANAGEMENT_ROLE)
        self.invitation_code_attribute = claims.extension_name(extensions_app_client_id, claims.INVITATION_CODE)

    def list_principals(self, company_id: Optional[str] = None) -> list[PrincipalRecord]:
        """Return B2C users, optionally only those of one company.

        Only users carrying at least one extension attribute count: they signed
        up through a B2C user flow rather than being directory members.
        """
        extension_attributes = [self.company_attribute, self.role_attribute, self.invitation_code_attribute]
        params = {"$select": ",".join(["id", "displayName", "identities", *extension_attributes])}
        if company_id:
            params["$filter"] = f"{self.company_attribute} eq '{_odata_quote(company_id)}'"

        principals = []
        for user in self.client.get_all("/users", params=params):
            if not any(user.get(name) is not None for name in extension_attributes):
                continue
            principals.append(PrincipalRecord(
                id=user["id"],
                display_name=user.get("displayName") or "",
                company_id=user.get(self.company_attribute),
                role=DelegatedRole.parse_optional(user.get(self.role_attribute)),
                invitation_code=user.get(self.invitation_code_attribute),
            ))
        logger.debug("Listed %d principals (company=%s)", len(principals), company_id)
        return principals

    def update_principal(self, principal: PrincipalRecord) -> None:
        """Patch display name, company and delegated role of a user."""
        payload = {
            "displayName": principal.display_name,
            self.company_attribute: principal.company_id,
            self.role_attribute: principal.role.value if principal.role else None,
        }
        self.client.patch(f"/users/{principal.id}", json=payload)
        logger.info("Updated principal %s", principal.id)

    def delete_principal(self, principal_id: str) -> None:
        self.client.delete(f"/users/{principal_id}")
        logger.info("Deleted principal %s", principal_id)
