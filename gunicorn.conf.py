"""Gunicorn configuration file with secret loading.

Secret Loading Priority (post_fork hook):
1. /run/secrets (Docker secrets mount, read directly by app.config.settings)
2. Azure Key Vault direct access
   → Only triggered if /run/secrets is empty AND AZURE_USE_KEYVAULT=true
   → Requires live Azure authentication (DefaultAzureCredential)
"""
import os
from pathlib import Path

wsgi_app = "app.flask_app:create_app()"
bind = os.environ.get("GUNICORN_BIND", "0.0.0.0:8000")
workers = int(os.environ.get("GUNICORN_WORKERS", "2"))
accesslog = "-"
errorlog = "-"
loglevel = os.environ.get("LOG_LEVEL", "info")

# Key Vault secret names per environment variable, overridable via AZURE_SECRET_<ENV_NAME>
SECRET_MAPPING = {
    "FLASK_SECRET_KEY": "flask-secret-key",
    "B2C_GRAPH_CLIENT_SECRET": "b2c-graph-client-secret",
    "OIDC_CLIENT_SECRET": "oidc-client-secret",
    "CONNECTOR_BASIC_AUTH_PASSWORD": "connector-basic-auth-password",
    "AUDIT_LOG_SIGNING_KEY": "audit-log-signing-key",
}


def post_fork(server, worker):
    """Called just after a worker has been forked; loads secrets into the environment."""
    demo_mode = os.environ.get("DEMO_MODE", "false").lower() == "true"
    if demo_mode and os.environ.get("AZURE_USE_KEYVAULT", "false").lower() == "true":
        worker.log.warning("DEMO_MODE=true requires AZURE_USE_KEYVAULT=false (runtime guard)")
        os.environ["AZURE_USE_KEYVAULT"] = "false"

    secrets_dir = Path("/run/secrets")
    if secrets_dir.exists() and secrets_dir.is_dir():
        secret_files = list(secrets_dir.glob("*"))
        if secret_files:
            worker.log.info("Found %d secrets in /run/secrets (using cached secrets)", len(secret_files))
            return

    if os.environ.get("AZURE_USE_KEYVAULT", "false").lower() != "true":
        worker.log.info("Skipping Azure Key Vault direct access (AZURE_USE_KEYVAULT=false)")
        return

    try:
        from azure.identity import DefaultAzureCredential
        from azure.keyvault.secrets import SecretClient
    except ImportError:
        worker.log.error("Azure Key Vault requested but the 'keyvault' extra is not installed")
        return

    vault_name = os.environ.get("AZURE_KEY_VAULT_NAME")
    if not vault_name:
        worker.log.error("AZURE_KEY_VAULT_NAME required when AZURE_USE_KEYVAULT=true")
        return

    secret_client = SecretClient(
        vault_url=f"https://{vault_name}.vault.azure.net",
        credential=DefaultAzureCredential(),
    )

    for env_name, default_secret_name in SECRET_MAPPING.items():
        if os.environ.get(env_name):
            continue
        secret_name = os.environ.get(f"AZURE_SECRET_{env_name}", default_secret_name).strip()
        if not secret_name:
            continue
        try:
            os.environ[env_name] = secret_client.get_secret(secret_name).value
            worker.log.info("Loaded secret '%s' into %s", secret_name, env_name)
        except Exception as exc:
            worker.log.error("Failed to load secret '%s': %s", secret_name, exc)
