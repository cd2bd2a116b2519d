"""API connector protocol spoken with the identity platform.

Each call ends in exactly one of three outcomes:
    - Continue        : HTTP 200, sign-in/sign-up proceeds with the returned claims
    - ValidationError : HTTP 400, the user can correct the input and retry
    - ShowBlockPage   : HTTP 200, the journey stops on a block page

The platform only understands this contract, so handlers never raise: any
unexpected failure becomes ShowBlockPage with a generic message.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from app.core import claims
from app.core.app_roles import AppRoleResolver
from app.core.exceptions import DirectoryError, InvalidIdentifierError
from app.core.invitation_service import InvitationRejection, InvitationService

logger = logging.getLogger(__name__)

CONNECTOR_VERSION = "1.0.0"


class ConnectorAction(str, Enum):
    CONTINUE = "Continue"
    VALIDATION_ERROR = "ValidationError"
    SHOW_BLOCK_PAGE = "ShowBlockPage"


@dataclass(frozen=True)
class ConnectorResponse:
    """A connector outcome plus the claims handed back to the platform."""

    action: ConnectorAction
    code: str
    user_message: str
    status_code: int = 200
    claims: dict = field(default_factory=dict)

    def to_body(self) -> dict:
        body = {
            "version": CONNECTOR_VERSION,
            "action": self.action.value,
            "code": self.code,
            "userMessage": self.user_message,
        }
        body.update(self.claims)
        if self.status_code != 200:
            # The platform reads the status from the body for validation errors
            body["status"] = str(self.status_code)
        return body


def continue_response(code: str, user_message: str, response_claims: dict) -> ConnectorResponse:
    return ConnectorResponse(ConnectorAction.CONTINUE, code, user_message, 200, dict(response_claims))


def validation_error(code: str, user_message: str, response_claims: dict) -> ConnectorResponse:
    return ConnectorResponse(ConnectorAction.VALIDATION_ERROR, code, user_message, 400, dict(response_claims))


def block_page(code: str, user_message: str, response_claims: dict) -> ConnectorResponse:
    return ConnectorResponse(ConnectorAction.SHOW_BLOCK_PAGE, code, user_message, 200, dict(response_claims))


def find_claim(payload: Any, attribute_name: str) -> Optional[Any]:
    """Return the payload value whose key equals attribute_name, ignoring case."""
    if not isinstance(payload, dict):
        return None
    wanted = attribute_name.lower()
    for key, value in payload.items():
        if isinstance(key, str) and key.lower() == wanted:
            return value
    return None


class RolesConnector:
    """Handles the app-roles connector called during sign-in."""

    def __init__(self, resolver: AppRoleResolver, role_attribute_name: str):
        self.resolver = resolver
        self.role_attribute_name = role_attribute_name

    def _claims(self, roles: Optional[str] = None) -> dict:
        return {self.role_attribute_name: roles}

    def handle(self, payload: Any) -> ConnectorResponse:
        try:
            logger.info("App roles are being requested")
            object_id = find_claim(payload, "objectId")
            client_id = find_claim(payload, "client_id")
            if not isinstance(object_id, str) or not object_id.strip() \
                    or not isinstance(client_id, str) or not client_id.strip():
                logger.info("App roles request is missing objectId or client_id")
                return validation_error(
                    "GetAppRoles-InvalidRequest",
                    "Your app roles could not be determined from the request.",
                    self._claims(),
                )

            roles = self.resolver.resolve(object_id.strip(), client_id.strip())
            return continue_response(
                "GetAppRoles-Succeeded",
                "Your app roles were successfully determined.",
                self._claims(claims.encode_multi_value(roles)),
            )
        except InvalidIdentifierError as exc:
            logger.info("App roles request has malformed identifiers: %s", exc)
            return validation_error(
                "GetAppRoles-InvalidRequest",
                "Your app roles could not be determined from the request.",
                self._claims(),
            )
        except DirectoryError as exc:
            logger.error("Directory failure while resolving app roles: %s", exc, exc_info=True)
        except Exception as exc:
            logger.error("Error while processing app roles request: %s", exc, exc_info=True)
        return block_page(
            "GetAppRoles-InternalError",
            "An error occurred while determining your app roles, please try again later.",
            self._claims(),
        )


class InvitationConnector:
    """Handles the invitation-code connector called during sign-up."""

    _REJECTIONS = {
        InvitationRejection.MALFORMED: (
            "UserInvitationRedemptionFailed-Invalid",
            "The invitation code you provided is invalid.",
        ),
        InvitationRejection.NOT_FOUND: (
            "UserInvitationRedemptionFailed-NotFound",
            "The invitation code you provided is invalid.",
        ),
        InvitationRejection.EXPIRED: (
            "UserInvitationRedemptionFailed-Expired",
            "The invitation code you provided has expired.",
        ),
    }

    def __init__(self, service: InvitationService, extensions_app_client_id: str):
        self.service = service
        self.invitation_code_attribute = claims.extension_name(extensions_app_client_id, claims.INVITATION_CODE)
        self.company_attribute = claims.extension_name(extensions_app_client_id, claims.COMPANY_ID)
        self.role_attribute = claims.extension_name(
            extensions_app_client_id, claims.DELEGATED_USER_MANAGEMENT_ROLE
        )

    def _claims(self, record=None) -> dict:
        return {
            self.company_attribute: record.company_id if record else None,
            self.role_attribute: record.role.value if record else None,
        }

    def handle(self, payload: Any) -> ConnectorResponse:
        try:
            logger.info("An invitation code is being redeemed")
            if isinstance(payload, dict):
                logger.info("Request properties: %s", ", ".join(str(k) for k in payload))

            code = find_claim(payload, self.invitation_code_attribute)
            check = self.service.redeem(code)
            if not check.ok:
                reason_code, message = self._REJECTIONS[check.reason]
                logger.warning("Invitation code rejected: %s", check.reason.value)
                return validation_error(reason_code, message, self._claims())

            logger.info("Invitation code redeemed for company '%s'", check.record.company_id)
            return continue_response(
                "UserInvitationRedemptionSucceeded",
                "The invitation code you provided is valid.",
                self._claims(check.record),
            )
        except Exception as exc:
            logger.error("Error while processing invitation redemption: %s", exc, exc_info=True)
            return block_page(
                "UserInvitationRedemptionFailed-InternalError",
                "An error occurred while validating your invitation code, please try again later.",
                self._claims(),
            )
