"""Settings loader with environment variable and Docker secrets integration."""
from __future__ import annotations
import logging
import os
import secrets
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

SECRETS_DIR = Path("/run/secrets")


def _load_secret_from_file(secret_name: str, env_var: str | None = None) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).

    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)

    Returns:
        Secret value or None if not found
    """
    secret_file = SECRETS_DIR / secret_name

    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
            if secret_value:
                logger.info("Loaded %s from %s", secret_name, SECRETS_DIR)
                return secret_value
        except OSError as e:
            logger.warning("Failed to read %s/%s: %s", SECRETS_DIR, secret_name, e)

    if env_var:
        secret_value = os.getenv(env_var)
        if secret_value:
            return secret_value

    return None


@dataclass(frozen=True)
class AppConfig:
    """Immutable application configuration, built once at startup."""
    # Mode
    demo_mode: bool

    # Flask
    secret_key: str
    session_cookie_secure: bool = True
    trusted_proxy_ips: str = "127.0.0.1/32,::1/128"

    # B2C directory (Graph API)
    b2c_tenant_id: str = ""
    graph_client_id: str = ""
    graph_client_secret: str = ""
    b2c_extensions_app_client_id: str = ""

    # Connectors
    app_roles_user_attribute_name: str = "extension_AppRoles"
    connector_basic_auth_username: str = ""
    connector_basic_auth_password: str = ""

    # Invitation store
    invitation_store: str = "file"
    invitation_store_path: str = ".runtime/invitations"

    # OIDC sign-in for the admin API
    oidc_metadata_url: str = ""
    oidc_client_id: str = ""
    oidc_client_secret: str = ""
    oidc_redirect_uri: str = ""
    post_logout_redirect_uri: str = ""

    @property
    def connector_auth_enabled(self) -> bool:
        return bool(self.connector_basic_auth_username and self.connector_basic_auth_password)

    @property
    def directory_configured(self) -> bool:
        return bool(self.b2c_tenant_id and self.graph_client_id and self.graph_client_secret)


def _get_or_default(var_name: str, demo_default: Optional[str] = None, required: bool = True, demo_mode: bool = False) -> str:
    """Get environment variable or fall back to a demo default."""
    value = os.environ.get(var_name)
    if value:
        return value

    if demo_mode and demo_default is not None:
        logger.info("[demo-mode] Using default for %s", var_name)
        return demo_default

    if not required:
        return ""

    raise RuntimeError(f"Environment variable {var_name} is required in production mode.")


def _env_flag(var_name: str, default: bool) -> bool:
    return os.environ.get(var_name, str(default)).strip().lower() == "true"


def load_settings() -> AppConfig:
    """Load application settings from environment and /run/secrets."""
    demo_mode = _env_flag("DEMO_MODE", False)

    secret_key = _load_secret_from_file("flask_secret_key", "FLASK_SECRET_KEY")
    if not secret_key:
        if not demo_mode:
            raise RuntimeError("FLASK_SECRET_KEY not found in /run/secrets or environment")
        secret_key = secrets.token_urlsafe(48)
        logger.info("[demo-mode] Generated temporary FLASK_SECRET_KEY")

    graph_client_secret = _load_secret_from_file("b2c_graph_client_secret", "B2C_GRAPH_CLIENT_SECRET") or ""
    oidc_client_secret = _load_secret_from_file("oidc_client_secret", "OIDC_CLIENT_SECRET") or ""
    connector_password = _load_secret_from_file(
        "connector_basic_auth_password", "CONNECTOR_BASIC_AUTH_PASSWORD"
    ) or ""

    # Directory settings are optional in demo mode (the app then runs without a directory)
    b2c_tenant_id = _get_or_default("B2C_TENANT_ID", demo_default="", demo_mode=demo_mode)
    graph_client_id = _get_or_default("B2C_GRAPH_CLIENT_ID", demo_default="", demo_mode=demo_mode)
    extensions_app_client_id = _get_or_default(
        "B2C_EXTENSIONS_APP_CLIENT_ID",
        demo_default="00000000-0000-0000-0000-000000000000",
        demo_mode=demo_mode,
    )
    if not demo_mode and not graph_client_secret:
        raise RuntimeError("B2C_GRAPH_CLIENT_SECRET not found in /run/secrets or environment")

    invitation_store = os.environ.get("INVITATION_STORE", "file").strip().lower()
    if invitation_store not in {"file", "memory"}:
        raise RuntimeError(f"INVITATION_STORE must be 'file' or 'memory', got '{invitation_store}'")

    oidc_metadata_url = _get_or_default(
        "OIDC_METADATA_URL",
        demo_default="",
        demo_mode=demo_mode,
    )
    oidc_client_id = _get_or_default("OIDC_CLIENT_ID", demo_default=graph_client_id, demo_mode=demo_mode)
    oidc_redirect_uri = _get_or_default(
        "OIDC_REDIRECT_URI",
        demo_default="http://localhost:5000/callback",
        demo_mode=demo_mode,
    )
    post_logout_redirect_uri = _get_or_default(
        "POST_LOGOUT_REDIRECT_URI",
        demo_default="http://localhost:5000/",
        demo_mode=demo_mode,
    )

    trusted_proxy_ips = os.environ.get("TRUSTED_PROXY_IPS")
    if not trusted_proxy_ips:
        if not demo_mode and os.environ.get("PYTEST_CURRENT_TEST") is None:
            raise RuntimeError("TRUSTED_PROXY_IPS is required when DEMO_MODE is false.")
        trusted_proxy_ips = "127.0.0.1/32,::1/128"

    cfg = AppConfig(
        demo_mode=demo_mode,
        secret_key=secret_key,
        session_cookie_secure=_env_flag("FLASK_SESSION_COOKIE_SECURE", True),
        trusted_proxy_ips=trusted_proxy_ips,
        b2c_tenant_id=b2c_tenant_id,
        graph_client_id=graph_client_id,
        graph_client_secret=graph_client_secret,
        b2c_extensions_app_client_id=extensions_app_client_id,
        app_roles_user_attribute_name=os.environ.get("APP_ROLES_USER_ATTRIBUTE_NAME", "extension_AppRoles"),
        connector_basic_auth_username=os.environ.get("CONNECTOR_BASIC_AUTH_USERNAME", ""),
        connector_basic_auth_password=connector_password,
        invitation_store=invitation_store,
        invitation_store_path=os.environ.get("INVITATION_STORE_PATH", ".runtime/invitations"),
        oidc_metadata_url=oidc_metadata_url,
        oidc_client_id=oidc_client_id,
        oidc_client_secret=oidc_client_secret,
        oidc_redirect_uri=oidc_redirect_uri,
        post_logout_redirect_uri=post_logout_redirect_uri,
    )

    mode_label = "DEMO" if demo_mode else "PRODUCTION"
    logger.info(
        "Mode=%s; tenant=%s; store=%s; connector_auth=%s",
        mode_label, b2c_tenant_id or "-", invitation_store, cfg.connector_auth_enabled,
    )
    if demo_mode:
        logger.warning("Demo defaults in use. Do not deploy with these settings.")
    return cfg
