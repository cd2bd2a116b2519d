"""
Flask decorators for connector authentication.

The identity platform calls the connector endpoints with HTTP Basic
credentials configured on its API connector. When no credentials are
configured (demo mode), the endpoints are open.

Security:
- Constant-time comparison of username and password
- Credentials are never logged
"""

import hmac
import logging
from functools import wraps

from flask import request, jsonify, current_app

logger = logging.getLogger(__name__)


def _credentials_match(username: str, password: str) -> bool:
    cfg = current_app.config["APP_CONFIG"]
    user_ok = hmac.compare_digest(username.encode("utf-8"), cfg.connector_basic_auth_username.encode("utf-8"))
    pass_ok = hmac.compare_digest(password.encode("utf-8"), cfg.connector_basic_auth_password.encode("utf-8"))
    return user_ok and pass_ok


def require_connector_auth(fn):
    """
    Decorator requiring the connector's HTTP Basic credentials.

    Returns:
        401 with a WWW-Authenticate challenge when credentials are missing or wrong

    Example:
        @bp.route("/invitation-redeem", methods=["POST"])
        @require_connector_auth
        def invitation_redeem():
            ...
    """
    @wraps(fn)
    def wrapper(*args, **kwargs):
        cfg = current_app.config["APP_CONFIG"]
        if not cfg.connector_auth_enabled:
            return fn(*args, **kwargs)

        auth = request.authorization
        if auth is None or auth.type != "basic" or not _credentials_match(auth.username or "", auth.password or ""):
            client_ip = request.headers.get("X-Forwarded-For", request.remote_addr)
            logger.warning("Connector authentication failed | path=%s | client_ip=%s", request.path, client_ip)
            response = jsonify({"error": "Unauthorized", "message": "Valid connector credentials required"})
            response.status_code = 401
            response.headers["WWW-Authenticate"] = 'Basic realm="connector"'
            return response

        return fn(*args, **kwargs)
    return wrapper
