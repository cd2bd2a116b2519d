"""Flask application factory and bootstrap.

This module provides the create_app() factory function for initializing
the Flask application with the connector endpoints, the admin API,
middleware and configuration.
"""
from __future__ import annotations
import hmac
import ipaddress
import logging
import os
import secrets
from tempfile import gettempdir
from typing import Optional

from flask import Flask, abort, g, jsonify, request, session
from flask_session import Session
from werkzeug.middleware.proxy_fix import ProxyFix

from app.config import AppConfig, load_settings
from app.core.app_roles import AppRoleResolver
from app.core.connector import InvitationConnector, RolesConnector, block_page
from app.core.directory import ApplicationDirectory, PrincipalDirectory, UnconfiguredDirectory
from app.core.graph import GraphApplicationDirectory, GraphClient, GraphPrincipalDirectory
from app.core.invitation_service import InvitationService
from app.core.invitation_store import InvitationStore, open_store

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Application Factory
# ─────────────────────────────────────────────────────────────────────────────
def create_app(
    cfg: Optional[AppConfig] = None,
    *,
    store: Optional[InvitationStore] = None,
    principals: Optional[PrincipalDirectory] = None,
    applications: Optional[ApplicationDirectory] = None,
) -> Flask:
    """Create and configure Flask application.

    Collaborators default to the ones described by the configuration; tests
    pass fakes for the store and the directories.
    """
    cfg = cfg or load_settings()

    app = Flask(__name__)

    # Store config for easy access in routes
    app.config["APP_CONFIG"] = cfg

    # Flask session configuration
    app.config["SECRET_KEY"] = cfg.secret_key
    app.config["SESSION_TYPE"] = os.environ.get("FLASK_SESSION_TYPE", "filesystem")
    if app.config["SESSION_TYPE"] == "filesystem":
        session_dir = os.environ.get("FLASK_SESSION_DIR") or os.path.join(gettempdir(), "b2c_connectors_session")
        os.makedirs(session_dir, exist_ok=True)
        app.config["SESSION_FILE_DIR"] = session_dir

    app.config["SESSION_COOKIE_HTTPONLY"] = True
    app.config["SESSION_COOKIE_SAMESITE"] = "Lax"
    app.config["SESSION_COOKIE_SECURE"] = cfg.session_cookie_secure

    # Initialize session
    Session(app)

    # Trust X-Forwarded-* headers from proxy
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)  # type: ignore

    trusted_proxy_networks = _parse_networks(cfg.trusted_proxy_ips)
    app.config["TRUSTED_PROXY_NETWORKS"] = trusted_proxy_networks
    app.config["CSRF_SESSION_KEY"] = "_csrf_token"

    _register_services(app, cfg, store, principals, applications)

    # Initialize OIDC
    from app.api import auth
    auth.init_oauth(app, cfg)

    # Register blueprints
    from app.api import admin, connectors, errors, health

    app.register_blueprint(connectors.bp)
    app.register_blueprint(auth.bp)
    app.register_blueprint(health.bp)
    app.register_blueprint(admin.bp, url_prefix="/admin")

    # Register error handlers
    errors.register_error_handlers(app)

    # Register middleware/before_request handlers
    _register_middleware(
        app,
        trusted_proxy_networks,
        connectors.CONNECTOR_PATHS | auth.AUTH_PATHS,
        connectors.CONNECTOR_PATHS,
    )

    mode_label = "DEMO" if cfg.demo_mode else "PRODUCTION"
    logger.info("[flask_app] Mode=%s; connectors at %s", mode_label, ", ".join(sorted(connectors.CONNECTOR_PATHS)))
    if cfg.demo_mode:
        logger.warning("[flask_app] Demo mode active - do not deploy with demo credentials")

    return app


def _register_services(app: Flask, cfg: AppConfig, store, principals, applications) -> None:
    """Wire the core services and expose them on app.extensions."""
    if principals is None or applications is None:
        if cfg.directory_configured:
            client = GraphClient(cfg.b2c_tenant_id, cfg.graph_client_id, cfg.graph_client_secret)
            principals = principals or GraphPrincipalDirectory(client, cfg.b2c_extensions_app_client_id)
            applications = applications or GraphApplicationDirectory(client)
        else:
            logger.warning("[flask_app] Directory not configured; directory calls will fail")
            unconfigured = UnconfiguredDirectory()
            principals = principals or unconfigured
            applications = applications or unconfigured

    service = InvitationService(store or open_store(cfg.invitation_store, cfg.invitation_store_path), principals)

    app.extensions["invitation_service"] = service
    app.extensions["principal_directory"] = principals
    app.extensions["application_directory"] = applications
    app.extensions["roles_connector"] = RolesConnector(
        AppRoleResolver(applications), cfg.app_roles_user_attribute_name
    )
    app.extensions["invitation_connector"] = InvitationConnector(service, cfg.b2c_extensions_app_client_id)


def _register_middleware(
    app: Flask,
    trusted_proxy_networks: list,
    csrf_exempt_paths: frozenset,
    connector_paths: frozenset,
):
    """Register before_request middleware."""

    @app.before_request
    def enforce_proxy_headers():
        """Validate proxy headers from trusted sources only.

        Connector callers only understand the connector response contract, so
        they get a block page instead of a plain 400.
        """
        problem = _proxy_header_problem(trusted_proxy_networks)
        if problem:
            if request.path in connector_paths:
                logger.warning("[flask_app] Rejected connector call on %s: %s", request.path, problem)
                outcome = block_page(
                    "ApiConnector-RequestRejected",
                    "An error occurred while processing your request, please try again later.",
                    {},
                )
                return jsonify(outcome.to_body()), outcome.status_code
            abort(400, description=problem)

        if request.path not in csrf_exempt_paths:
            g.csrf_token = _generate_csrf_token()

    @app.before_request
    def enforce_csrf() -> None:
        """Validate CSRF token for state-changing requests.

        Note: connector endpoints use HTTP Basic credentials, not CSRF.
        """
        if request.method not in {"POST", "PUT", "PATCH", "DELETE"}:
            return

        if request.path in csrf_exempt_paths:
            return

        submitted_token = request.headers.get("X-CSRF-Token", "")
        session_token = session.get(app.config["CSRF_SESSION_KEY"], "")

        if not session_token or not submitted_token or not hmac.compare_digest(session_token, submitted_token):
            abort(400, description="CSRF validation failed")


# ─────────────────────────────────────────────────────────────────────────────
# Helper Functions
# ─────────────────────────────────────────────────────────────────────────────
def _parse_networks(raw: str) -> list:
    """Parse a comma-separated list of CIDR ranges, skipping invalid entries."""
    networks = []
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        try:
            networks.append(ipaddress.ip_network(entry, strict=False))
        except ValueError:
            logger.warning("[flask_app] Ignoring invalid trusted proxy entry: %s", entry)
    return networks


def _proxy_header_problem(trusted_proxy_networks: list) -> Optional[str]:
    """Describe what is wrong with the forwarding headers, or None if they are acceptable."""
    original_remote = request.environ.get("werkzeug.proxy_fix.orig", {}).get("REMOTE_ADDR")
    if original_remote:
        try:
            address = ipaddress.ip_address(original_remote)
        except ValueError:
            return "Invalid proxy address"
        if not any(address in network for network in trusted_proxy_networks):
            return "Untrusted proxy"

    forwarded_proto = request.headers.get("X-Forwarded-Proto")
    if forwarded_proto and forwarded_proto != "https":
        return "Invalid forwarded protocol"

    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for and "," in forwarded_for:
        return "Multiple forwarded clients not permitted"
    return None


def _generate_csrf_token() -> str:
    """Generate or retrieve CSRF token for current session."""
    csrf_session_key = "_csrf_token"
    token = session.get(csrf_session_key)
    if not token:
        token = secrets.token_urlsafe(32)
        session[csrf_session_key] = token
    return token


if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=5000, debug=True)
