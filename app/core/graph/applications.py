"""Application registration lookups over Microsoft Graph."""
from __future__ import annotations
from uuid import UUID

from app.core.directory import ApplicationDirectory
from app.core.exceptions import InvalidIdentifierError

from .client import GraphClient


def _ensure_guid(value: str, field: str) -> str:
    """Graph ids are GUIDs; anything else must not reach an OData $filter."""
    try:
        return str(UUID(value))
    except (ValueError, TypeError, AttributeError):
        raise InvalidIdentifierError(field)


class GraphApplicationDirectory(ApplicationDirectory):
    """Service principals and app role assignments.

    Requires Application.Read.All + User.Read.All (or Directory.Read.All) for
    the app registration behind the Graph client.
    """

    def __init__(self, client: GraphClient):
        self.client = client

    def find_service_principals(self, app_id: str) -> list[dict]:
        app_id = _ensure_guid(app_id, "client_id")
        return self.client.get_all(
            "/servicePrincipals",
            params={"$filter": f"appId eq '{app_id}'", "$select": "id,appId,appRoles"},
        )

    def list_app_role_assignments(self, user_id: str, resource_id: str) -> list[dict]:
        user_id = _ensure_guid(user_id, "objectId")
        resource_id = _ensure_guid(resource_id, "resourceId")
        return self.client.get_all(
            f"/users/{user_id}/appRoleAssignments",
            params={"$filter": f"resourceId eq {resource_id}"},
        )
