"""Typed exceptions for invitation and directory operations."""


class InvitationError(Exception):
    """Base exception for invitation operations."""
    pass


class InvitationExistsError(InvitationError):
    """Invitation creation failed - the code is already in use."""
    pass


class AuthorizationError(InvitationError):
    """Caller's delegated role does not permit the requested operation."""

    def __init__(self, message: str = "Insufficient permissions"):
        self.message = message
        super().__init__(message)


class DirectoryError(Exception):
    """Base exception for all directory operations."""
    pass


class DirectoryAPIError(DirectoryError):
    """HTTP error from the directory API.

    Attributes:
        status_code: HTTP status code
        message: Error message from response
        endpoint: API endpoint that failed
    """

    def __init__(self, status_code: int, message: str, endpoint: str):
        self.status_code = status_code
        self.message = message
        self.endpoint = endpoint
        super().__init__(f"[{status_code}] {endpoint}: {message}")


class DirectoryUnavailableError(DirectoryError):
    """Directory could not be reached (network failure or timeout)."""
    pass


class AmbiguousOrMissingApplicationError(DirectoryError):
    """Zero or several application registrations match the requested app id."""

    def __init__(self, app_id: str, matches: int):
        self.app_id = app_id
        self.matches = matches
        super().__init__(f"Expected exactly one registration for app '{app_id}', found {matches}")


class InvalidIdentifierError(Exception):
    """A caller-supplied directory identifier is not a well-formed GUID."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"{field} must be a GUID")
