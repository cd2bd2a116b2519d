"""Unit tests for settings loading."""
import pytest

from app.config import settings

ENV_KEYS = [
    "DEMO_MODE", "FLASK_SECRET_KEY", "B2C_TENANT_ID", "B2C_GRAPH_CLIENT_ID", "B2C_GRAPH_CLIENT_SECRET",
    "B2C_EXTENSIONS_APP_CLIENT_ID", "INVITATION_STORE", "INVITATION_STORE_PATH", "TRUSTED_PROXY_IPS",
    "OIDC_METADATA_URL", "OIDC_CLIENT_ID", "OIDC_CLIENT_SECRET", "CONNECTOR_BASIC_AUTH_USERNAME",
    "CONNECTOR_BASIC_AUTH_PASSWORD", "APP_ROLES_USER_ATTRIBUTE_NAME", "OIDC_REDIRECT_URI", "POST_LOGOUT_REDIRECT_URI",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(settings, "SECRETS_DIR", tmp_path / "no-secrets")


def test_demo_mode_fills_defaults(monkeypatch):
    monkeypatch.setenv("DEMO_MODE", "true")

    cfg = settings.load_settings()

    assert cfg.demo_mode is True
    assert cfg.secret_key
    assert cfg.b2c_extensions_app_client_id == "00000000-0000-0000-0000-000000000000"
    assert cfg.app_roles_user_attribute_name == "extension_AppRoles"
    assert not cfg.directory_configured
    assert not cfg.connector_auth_enabled


def test_production_requires_secret_key(monkeypatch):
    monkeypatch.setenv("DEMO_MODE", "false")

    with pytest.raises(RuntimeError, match="FLASK_SECRET_KEY"):
        settings.load_settings()


def test_production_requires_directory_settings(monkeypatch):
    monkeypatch.setenv("DEMO_MODE", "false")
    monkeypatch.setenv("FLASK_SECRET_KEY", "k")

    with pytest.raises(RuntimeError, match="B2C_TENANT_ID"):
        settings.load_settings()


def test_production_configuration(monkeypatch):
    monkeypatch.setenv("DEMO_MODE", "false")
    monkeypatch.setenv("FLASK_SECRET_KEY", "k")
    monkeypatch.setenv("B2C_TENANT_ID", "contoso.onmicrosoft.com")
    monkeypatch.setenv("B2C_GRAPH_CLIENT_ID", "graph-client")
    monkeypatch.setenv("B2C_GRAPH_CLIENT_SECRET", "graph-secret")
    monkeypatch.setenv("B2C_EXTENSIONS_APP_CLIENT_ID", "11111111-2222-3333-4444-555555555555")
    monkeypatch.setenv("OIDC_METADATA_URL", "https://login.example/.well-known/openid-configuration")
    monkeypatch.setenv("OIDC_CLIENT_ID", "admin-ui")
    monkeypatch.setenv("OIDC_REDIRECT_URI", "https://admin.example/callback")
    monkeypatch.setenv("POST_LOGOUT_REDIRECT_URI", "https://admin.example/")
    monkeypatch.setenv("TRUSTED_PROXY_IPS", "10.0.0.0/8")
    monkeypatch.setenv("CONNECTOR_BASIC_AUTH_USERNAME", "b2c")
    monkeypatch.setenv("CONNECTOR_BASIC_AUTH_PASSWORD", "pw")

    cfg = settings.load_settings()

    assert cfg.directory_configured
    assert cfg.connector_auth_enabled
    assert cfg.oidc_client_id == "admin-ui"
    assert cfg.invitation_store == "file"


def test_secret_file_takes_precedence(monkeypatch, tmp_path):
    secrets_dir = tmp_path / "secrets"
    secrets_dir.mkdir()
    (secrets_dir / "flask_secret_key").write_text("from-file\n")
    monkeypatch.setattr(settings, "SECRETS_DIR", secrets_dir)
    monkeypatch.setenv("DEMO_MODE", "true")
    monkeypatch.setenv("FLASK_SECRET_KEY", "from-env")

    assert settings.load_settings().secret_key == "from-file"


def test_invalid_store_kind_rejected(monkeypatch):
    monkeypatch.setenv("DEMO_MODE", "true")
    monkeypatch.setenv("INVITATION_STORE", "redis")

    with pytest.raises(RuntimeError, match="INVITATION_STORE"):
        settings.load_settings()
