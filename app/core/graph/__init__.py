"""Microsoft Graph client for the B2C directory.

Architecture:
- client.py: HTTP client with client-credentials authentication and paging
- users.py: principal listing, update and deletion (PrincipalDirectory)
- applications.py: service principal and app role assignment lookups (ApplicationDirectory)

Usage:
    from app.core.graph import GraphClient, GraphPrincipalDirectory

    client = GraphClient("contoso.onmicrosoft.com", client_id, client_secret)
    directory = GraphPrincipalDirectory(client, extensions_app_client_id)
    principals = directory.list_principals(company_id="contoso")
"""
from .client import GraphClient, REQUEST_TIMEOUT
from .users import GraphPrincipalDirectory
from .applications import GraphApplicationDirectory

__all__ = [
    "GraphClient",
    "REQUEST_TIMEOUT",
    "GraphPrincipalDirectory",
    "GraphApplicationDirectory",
]
