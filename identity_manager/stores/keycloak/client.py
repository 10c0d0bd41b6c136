"""Low-level HTTP client for Keycloak Admin API.

Handles service-account authentication, token refresh, and HTTP operations.
"""
from __future__ import annotations
import logging
from typing import Optional, Dict, Any
from datetime import datetime, timedelta

import requests

from .exceptions import KeycloakAPIError, KeycloakAuthenticationError

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 5


class KeycloakClient:
    """HTTP client for Keycloak Admin API with automatic token management.

    Usage:
        client = KeycloakClient("http://keycloak:8080")
        client.authenticate_service_account("demo", "automation-cli", "secret")
        response = client.get("/admin/realms/demo/users")
    """

    def __init__(self, base_url: str, timeout: float = REQUEST_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._token: Optional[str] = None
        self._token_expires_at: Optional[datetime] = None
        self._auth_params: Dict[str, Any] = {}

    def authenticate_service_account(self, auth_realm: str, client_id: str, client_secret: str) -> str:
        """Authenticate as service account and store credentials for auto-refresh.

        Args:
            auth_realm: Realm where service account client exists
            client_id: Service account client ID
            client_secret: Service account client secret

        Returns:
            Access token
        """
        self._auth_params = {
            "auth_realm": auth_realm,
            "client_id": client_id,
            "client_secret": client_secret,
        }
        self._refresh_token()
        return self._token

    def _refresh_token(self) -> None:
        url = f"{self.base_url}/realms/{self._auth_params['auth_realm']}/protocol/openid-connect/token"
        data = {
            "grant_type": "client_credentials",
            "client_id": self._auth_params["client_id"],
            "client_secret": self._auth_params["client_secret"],
        }
        resp = requests.post(url, data=data, timeout=self.timeout)
        if resp.status_code != 200:
            raise KeycloakAuthenticationError(resp.status_code, resp.text, url)
        payload = resp.json()
        self._token = payload["access_token"]
        # Refresh 10 seconds before the advertised expiry
        expires_in = int(payload.get("expires_in", 60))
        self._token_expires_at = datetime.now() + timedelta(seconds=max(expires_in - 10, 1))
        logger.debug("Obtained Keycloak service token for client %s", self._auth_params["client_id"])

    def _ensure_authenticated(self) -> None:
        """Ensure we have a valid token, refreshing if necessary."""
        if not self._auth_params:
            raise KeycloakAuthenticationError(401, "Not authenticated - call authenticate_service_account first", "")
        if not self._token or not self._token_expires_at or datetime.now() >= self._token_expires_at:
            self._refresh_token()

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        self._ensure_authenticated()
        url = f"{self.base_url}{path}"
        headers = kwargs.pop("headers", {})
        headers["Authorization"] = f"Bearer {self._token}"

        resp = requests.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        self._handle_error(resp)
        return resp

    def get(self, path: str, params: Optional[Dict] = None, **kwargs) -> requests.Response:
        """Execute GET request with automatic authentication.

        Raises:
            KeycloakAPIError: On HTTP error
        """
        return self._request("GET", path, params=params, **kwargs)

    def post(self, path: str, json: Optional[Any] = None, **kwargs) -> requests.Response:
        return self._request("POST", path, json=json, **kwargs)

    def put(self, path: str, json: Optional[Any] = None, **kwargs) -> requests.Response:
        return self._request("PUT", path, json=json, **kwargs)

    def delete(self, path: str, **kwargs) -> requests.Response:
        return self._request("DELETE", path, **kwargs)

    def _handle_error(self, resp: requests.Response) -> None:
        """Centralized error handling for HTTP responses.

        Raises:
            KeycloakAPIError: If response status indicates error
        """
        if resp.status_code >= 400:
            logger.warning("Keycloak API error %s on %s", resp.status_code, resp.url)
            raise KeycloakAPIError(resp.status_code, resp.text, resp.url)
