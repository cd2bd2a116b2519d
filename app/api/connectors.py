"""API connector endpoints called by the identity platform during sign-in/sign-up.

Both endpoints accept the platform's JSON claims object and always answer in
the connector response contract (see app.core.connector).
"""
from __future__ import annotations
from flask import Blueprint, current_app, jsonify, request

from app.api.decorators import require_connector_auth

bp = Blueprint("connectors", __name__)

CONNECTOR_PATHS = frozenset({"/roles-resolve", "/invitation-redeem"})


def _respond(outcome):
    return jsonify(outcome.to_body()), outcome.status_code


@bp.route("/roles-resolve", methods=["POST"])
@require_connector_auth
def roles_resolve():
    """Return the signing-in user's app roles for the requested application."""
    payload = request.get_json(silent=True)
    outcome = current_app.extensions["roles_connector"].handle(payload)
    current_app.logger.info("roles-resolve -> %s (%s)", outcome.action.value, outcome.code)
    return _respond(outcome)


@bp.route("/invitation-redeem", methods=["POST"])
@require_connector_auth
def invitation_redeem():
    """Validate and consume the invitation code submitted during sign-up."""
    payload = request.get_json(silent=True)
    outcome = current_app.extensions["invitation_connector"].handle(payload)
    current_app.logger.info("invitation-redeem -> %s (%s)", outcome.action.value, outcome.code)
    return _respond(outcome)
