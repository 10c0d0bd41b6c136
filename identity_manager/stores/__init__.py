"""Account stores backing the identity manager.

The Keycloak stores are not imported here so the in-memory store can be
used without pulling in ``requests``:

    from identity_manager.stores.keycloak import KeycloakUserStore
"""
from .base import RoleStore, StoreCapabilities, StoreResult, UserStore
from .memory import InMemoryRoleStore, InMemoryUserStore

__all__ = [
    "RoleStore",
    "StoreCapabilities",
    "StoreResult",
    "UserStore",
    "InMemoryRoleStore",
    "InMemoryUserStore",
]
