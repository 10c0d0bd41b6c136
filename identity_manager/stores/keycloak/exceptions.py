"""Keycloak-specific exceptions for error handling."""
from __future__ import annotations
import json


class KeycloakError(Exception):
    """Base exception for all Keycloak operations."""
    pass


class KeycloakAPIError(KeycloakError):
    """HTTP error from Keycloak Admin API.

    Attributes:
        status_code: HTTP status code
        message: Error message from response
        endpoint: API endpoint that failed
    """

    def __init__(self, status_code: int, message: str, endpoint: str):
        self.status_code = status_code
        self.message = message
        self.endpoint = endpoint
        super().__init__(f"[{status_code}] {endpoint}: {message}")

    @property
    def description(self) -> str:
        """Human-readable reason, taken from Keycloak's JSON error body when present."""
        try:
            body = json.loads(self.message)
        except (TypeError, ValueError):
            return self.message or f"Keycloak request failed with status {self.status_code}"
        if isinstance(body, dict):
            for key in ("errorMessage", "error_description", "error"):
                if body.get(key):
                    return str(body[key])
        return self.message


class KeycloakAuthenticationError(KeycloakAPIError):
    """Token request rejected (bad client credentials or realm)."""
    pass
