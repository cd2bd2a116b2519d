"""Authentication routes and OIDC helpers for the admin API.

Administrators sign in through the identity platform's user flow (OIDC
authorization code with PKCE). The ID token carries the delegated role and
company claims consumed by app.core.rbac.
"""
from __future__ import annotations
import base64
import hashlib
import secrets
import string
from urllib.parse import urlencode

from flask import Blueprint, abort, current_app, jsonify, redirect, session, url_for
from authlib.integrations.flask_client import OAuth

from app.core.rbac import clear_session_tokens, current_principal

bp = Blueprint("auth", __name__)

AUTH_PATHS = frozenset({"/login", "/callback", "/logout"})


def init_oauth(app, cfg) -> OAuth:
    """Register the OIDC client on the app; stored in app.extensions['oidc_client']."""
    oauth = OAuth(app)
    client = None
    if cfg.oidc_metadata_url and cfg.oidc_client_id:
        client = oauth.register(
            name="b2c",
            server_metadata_url=cfg.oidc_metadata_url,
            client_id=cfg.oidc_client_id,
            client_secret=cfg.oidc_client_secret or None,
            client_kwargs={"scope": "openid profile offline_access"},
            fetch_token=lambda: session.get("token"),
        )
    app.extensions["oidc_client"] = client
    return oauth


def get_oidc_client():
    """Get the registered OIDC client, or 503 when sign-in is not configured."""
    client = current_app.extensions.get("oidc_client")
    if client is None:
        abort(503, description="Sign-in is not configured")
    return client


# ─────────────────────────────────────────────────────────────────────────────
# PKCE Helpers
# ─────────────────────────────────────────────────────────────────────────────
def _generate_code_verifier(length: int = 64) -> str:
    """Generate PKCE code verifier."""
    alphabet = string.ascii_letters + string.digits + "-._~"
    return "".join(secrets.choice(alphabet) for _ in range(length))


def _build_code_challenge(code_verifier: str) -> str:
    """Build PKCE code challenge from verifier."""
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


# ─────────────────────────────────────────────────────────────────────────────
# Routes
# ─────────────────────────────────────────────────────────────────────────────
@bp.route("/login")
def login():
    """Initiate OIDC login flow with PKCE."""
    cfg = current_app.config["APP_CONFIG"]
    client = get_oidc_client()

    code_verifier = _generate_code_verifier()
    session["pkce_code_verifier"] = code_verifier

    return client.authorize_redirect(
        redirect_uri=cfg.oidc_redirect_uri,
        code_challenge=_build_code_challenge(code_verifier),
        code_challenge_method="S256",
    )


@bp.route("/callback")
def callback():
    """Handle OIDC callback after successful authentication."""
    client = get_oidc_client()

    code_verifier = session.pop("pkce_code_verifier", None)
    if not code_verifier:
        return redirect(url_for("auth.login"))

    token = client.authorize_access_token(code_verifier=code_verifier)
    session["token"] = token
    session["id_claims"] = dict(token.get("userinfo") or {})
    session["userinfo"] = {}

    principal = current_principal()
    current_app.logger.info(
        "[Auth] Signed in principal=%s role=%s",
        principal.id if principal else "-",
        principal.role.value if principal and principal.role else "-",
    )
    return redirect(url_for("admin.me"))


@bp.route("/logout", methods=["GET", "POST"])
def logout():
    """Clear the session and hand off to the identity platform's end-session endpoint."""
    cfg = current_app.config["APP_CONFIG"]
    token = session.get("token") or {}
    id_token = token.get("id_token")

    clear_session_tokens()
    session.clear()

    client = current_app.extensions.get("oidc_client")
    end_session_endpoint = None
    if client is not None:
        try:
            end_session_endpoint = client.load_server_metadata().get("end_session_endpoint")
        except Exception as exc:  # metadata endpoint unreachable
            current_app.logger.warning("Could not load OIDC metadata for logout: %s", exc)

    if not end_session_endpoint:
        return jsonify({"loggedOut": True})

    params = {"post_logout_redirect_uri": cfg.post_logout_redirect_uri}
    if id_token:
        params["id_token_hint"] = id_token
    return redirect(f"{end_session_endpoint}?{urlencode(params)}")
