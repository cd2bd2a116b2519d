"""Low-level HTTP client for the Microsoft Graph API.

Handles client-credentials authentication, token refresh and paging.
"""
from __future__ import annotations
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import requests

from app.core.exceptions import DirectoryAPIError, DirectoryUnavailableError

REQUEST_TIMEOUT = 5
GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"
LOGIN_BASE_URL = "https://login.microsoftonline.com"
GRAPH_SCOPE = "https://graph.microsoft.com/.default"


class GraphClient:
    """HTTP client for Microsoft Graph with automatic token management.

    Usage:
        client = GraphClient("contoso.onmicrosoft.com", client_id, client_secret)
        users = client.get_all("/users", params={"$select": "id,displayName"})
    """

    def __init__(
        self,
        tenant: str,
        client_id: str,
        client_secret: str,
        base_url: str = GRAPH_BASE_URL,
        login_url: str = LOGIN_BASE_URL,
    ):
        """Initialize Graph client.

        Args:
            tenant: Directory (tenant) id or domain of the B2C directory
            client_id: App registration used for Graph calls
            client_secret: Secret of that app registration
        """
        self.tenant = tenant
        self.client_id = client_id
        self.client_secret = client_secret
        self.base_url = base_url.rstrip("/")
        self.login_url = login_url.rstrip("/")
        self._token: Optional[str] = None
        self._token_expires_at: Optional[datetime] = None

    def _ensure_authenticated(self) -> None:
        """Fetch a token if none is cached or it expires within 60 seconds."""
        if self._token and self._token_expires_at and datetime.now() < self._token_expires_at - timedelta(seconds=60):
            return
        token, expires_in = self._get_client_credentials_token()
        self._token = token
        self._token_expires_at = datetime.now() + timedelta(seconds=expires_in)

    def _get_client_credentials_token(self) -> tuple[str, int]:
        """Obtain an app-only token via the client credentials flow."""
        url = f"{self.login_url}/{self.tenant}/oauth2/v2.0/token"
        data = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "scope": GRAPH_SCOPE,
        }
        try:
            resp = requests.post(url, data=data, timeout=REQUEST_TIMEOUT)
        except requests.RequestException as exc:
            raise DirectoryUnavailableError(f"Token endpoint unreachable: {exc}") from exc
        if resp.status_code != 200:
            raise DirectoryAPIError(resp.status_code, resp.text, url)
        payload = self._json(resp)
        return payload["access_token"], int(payload.get("expires_in", 3600))

    def _request(self, method: str, path_or_url: str, **kwargs) -> requests.Response:
        self._ensure_authenticated()
        url = path_or_url if path_or_url.startswith("http") else f"{self.base_url}{path_or_url}"
        headers = kwargs.pop("headers", {})
        headers["Authorization"] = f"Bearer {self._token}"
        try:
            resp = requests.request(method, url, headers=headers, timeout=REQUEST_TIMEOUT, **kwargs)
        except requests.RequestException as exc:
            raise DirectoryUnavailableError(f"{method} {url} failed: {exc}") from exc
        self._handle_error(resp)
        return resp

    def get(self, path: str, params: Optional[Dict] = None, **kwargs) -> requests.Response:
        return self._request("GET", path, params=params, **kwargs)

    def patch(self, path: str, json: Optional[Dict] = None, **kwargs) -> requests.Response:
        return self._request("PATCH", path, json=json, **kwargs)

    def delete(self, path: str, **kwargs) -> requests.Response:
        return self._request("DELETE", path, **kwargs)

    def get_all(self, path: str, params: Optional[Dict] = None) -> list[dict[str, Any]]:
        """GET a collection and follow @odata.nextLink until all pages are read."""
        items: list[dict[str, Any]] = []
        resp = self.get(path, params=params)
        while True:
            payload = self._json(resp)
            items.extend(payload.get("value", []))
            next_link = payload.get("@odata.nextLink")
            if not next_link:
                return items
            resp = self.get(next_link)

    @staticmethod
    def _json(resp: requests.Response) -> dict[str, Any]:
        """Decode a response body; a non-JSON reply is a directory failure."""
        try:
            return resp.json()
        except ValueError as exc:
            raise DirectoryAPIError(resp.status_code, f"Invalid JSON response: {exc}", resp.url) from exc

    def _handle_error(self, resp: requests.Response) -> None:
        """Raise DirectoryAPIError for HTTP error responses."""
        if resp.status_code >= 400:
            raise DirectoryAPIError(resp.status_code, resp.text, resp.url)
