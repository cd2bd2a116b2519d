"""Health check endpoints."""
from flask import Blueprint, current_app

bp = Blueprint("health", __name__)


@bp.route("/health")
def health_check():
    """Basic health check endpoint."""
    return ("ok", 200, {"Content-Type": "text/plain"})


@bp.route("/ready")
def readiness_check():
    """Readiness check: the invitation store must be readable."""
    try:
        current_app.extensions["invitation_service"].list_pending()
    except OSError as exc:
        current_app.logger.error("Invitation store not ready: %s", exc)
        return ("invitation store unavailable", 503, {"Content-Type": "text/plain"})
    return ("ready", 200, {"Content-Type": "text/plain"})
