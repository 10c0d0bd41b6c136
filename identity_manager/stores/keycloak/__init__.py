"""Keycloak Admin API account stores.

Architecture:
- client.py: HTTP client with service-account authentication and auto-refresh
- users.py: user store (users, attributes as claims, credentials)
- roles.py: role store (realm roles)
- exceptions.py: Typed exceptions for error handling

Usage:
    from identity_manager.stores.keycloak import KeycloakClient, KeycloakUserStore

    client = KeycloakClient("http://keycloak:8080")
    client.authenticate_service_account("demo", "automation-cli", "secret")
    users = KeycloakUserStore(client, "demo", token_provider)
"""
from .client import KeycloakClient, REQUEST_TIMEOUT
from .exceptions import KeycloakAPIError, KeycloakAuthenticationError, KeycloakError
from .roles import KeycloakRoleStore
from .users import KeycloakUser, KeycloakUserStore

__all__ = [
    "KeycloakClient",
    "REQUEST_TIMEOUT",
    "KeycloakError",
    "KeycloakAPIError",
    "KeycloakAuthenticationError",
    "KeycloakUser",
    "KeycloakUserStore",
    "KeycloakRoleStore",
]
