"""App role resolution for users signing in to a registered application."""
from __future__ import annotations
import logging

from app.core.directory import ApplicationDirectory
from app.core.exceptions import AmbiguousOrMissingApplicationError

logger = logging.getLogger(__name__)


class AppRoleResolver:
    """Resolves the app roles assigned to a user on a target application."""

    def __init__(self, applications: ApplicationDirectory):
        self.applications = applications

    def resolve(self, user_id: str, app_id: str) -> set[str]:
        """Return the role values assigned to user_id for app_id.

        Raises:
            AmbiguousOrMissingApplicationError: If app_id does not match exactly one registration
            DirectoryError: On directory failures
        """
        logger.info("Retrieving app roles for user id '%s' and app id '%s'", user_id, app_id)

        registrations = self.applications.find_service_principals(app_id)
        if len(registrations) != 1:
            logger.error(
                "Service principal lookup for app '%s' returned %d matches; no app roles returned",
                app_id, len(registrations),
            )
            raise AmbiguousOrMissingApplicationError(app_id, len(registrations))
        registration = registrations[0]

        assignments = self.applications.list_app_role_assignments(user_id, registration["id"])
        assigned_ids = {a.get("appRoleId") for a in assignments if a.get("appRoleId")}

        catalog = {
            role.get("id"): role.get("value")
            for role in registration.get("appRoles") or []
            if role.get("id") and role.get("value")
        }
        roles = {catalog[role_id] for role_id in assigned_ids if role_id in catalog}

        logger.info(
            "Retrieved app roles for user id '%s' and app id '%s': %s",
            user_id, app_id, " ".join(sorted(roles)),
        )
        return roles
