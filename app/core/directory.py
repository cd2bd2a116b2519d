"""Directory capabilities consumed by the core.

Any directory that offers these operations can back the service; the Graph
implementation lives in app.core.graph. Implementations raise DirectoryError
subclasses on failure and never retry.
"""
from __future__ import annotations
from typing import Optional

from app.core.exceptions import DirectoryUnavailableError
from app.core.models import PrincipalRecord


class PrincipalDirectory:
    """List, patch and delete principal records."""

    def list_principals(self, company_id: Optional[str] = None) -> list[PrincipalRecord]:
        raise NotImplementedError

    def update_principal(self, principal: PrincipalRecord) -> None:
        raise NotImplementedError

    def delete_principal(self, principal_id: str) -> None:
        raise NotImplementedError


class ApplicationDirectory:
    """Look up application registrations and a user's role assignments."""

    def find_service_principals(self, app_id: str) -> list[dict]:
        """Registrations whose appId equals app_id, each with an 'appRoles' catalog."""
        raise NotImplementedError

    def list_app_role_assignments(self, user_id: str, resource_id: str) -> list[dict]:
        """Assignments of user_id on the registration resource_id ('appRoleId' per item)."""
        raise NotImplementedError


class UnconfiguredDirectory(PrincipalDirectory, ApplicationDirectory):
    """Stand-in used when no directory credentials are configured; every call fails."""

    def _fail(self, *args, **kwargs):
        raise DirectoryUnavailableError("Directory is not configured")

    list_principals = _fail
    update_principal = _fail
    delete_principal = _fail
    find_service_principals = _fail
    list_app_role_assignments = _fail
