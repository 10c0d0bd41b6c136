"""Keycloak-backed role store (realm-level roles)."""
from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from identity_manager.core.entities import IdentityRole
from identity_manager.stores.base import RoleStore, StoreResult

from .client import KeycloakClient
from .exceptions import KeycloakAPIError, KeycloakAuthenticationError

logger = logging.getLogger(__name__)


def role_from_representation(rep: Dict[str, Any]) -> IdentityRole:
    return IdentityRole(id=rep.get("id"), name=rep.get("name", ""), description=rep.get("description"))


def role_to_representation(role: IdentityRole) -> Dict[str, Any]:
    return {"name": role.name, "description": role.description or ""}


class KeycloakRoleStore(RoleStore):
    """Service for managing Keycloak realm roles through the role store contract.

    Args:
        client: Authenticated Keycloak client
        realm: Realm name
    """

    def __init__(self, client: KeycloakClient, realm: str):
        self.client = client
        self.realm = realm

    def _realm_path(self) -> str:
        return f"/admin/realms/{quote(self.realm, safe='')}"

    def roles(self) -> List[IdentityRole]:
        resp = self.client.get(f"{self._realm_path()}/roles", params={"briefRepresentation": "false"})
        return [role_from_representation(rep) for rep in resp.json() or []]

    def find_by_id(self, role_id: str) -> Optional[IdentityRole]:
        if not role_id:
            return None
        try:
            resp = self.client.get(f"{self._realm_path()}/roles-by-id/{quote(role_id, safe='')}")
        except KeycloakAuthenticationError:
            raise
        except KeycloakAPIError as exc:
            if exc.status_code == 404:
                return None
            raise
        return role_from_representation(resp.json())

    def create(self, role: IdentityRole) -> StoreResult:
        try:
            self.client.post(f"{self._realm_path()}/roles", json=role_to_representation(role))
            # Keycloak answers 201 without an id; read it back by name
            created = self.client.get(f"{self._realm_path()}/roles/{quote(role.name, safe='')}").json()
        except KeycloakAuthenticationError:
            raise
        except KeycloakAPIError as exc:
            logger.warning("Keycloak create role '%s' failed: %s", role.name, exc)
            return StoreResult.failed(exc.description)
        role.id = created.get("id", role.id)
        logger.info("Created Keycloak role '%s' (id=%s)", role.name, role.id)
        return StoreResult.success()

    def update(self, role: IdentityRole) -> StoreResult:
        try:
            self.client.put(
                f"{self._realm_path()}/roles-by-id/{quote(role.id, safe='')}",
                json=role_to_representation(role),
            )
        except KeycloakAuthenticationError:
            raise
        except KeycloakAPIError as exc:
            logger.warning("Keycloak update role '%s' failed: %s", role.name, exc)
            return StoreResult.failed(exc.description)
        return StoreResult.success()

    def delete(self, role: IdentityRole) -> StoreResult:
        try:
            self.client.delete(f"{self._realm_path()}/roles-by-id/{quote(role.id, safe='')}")
        except KeycloakAuthenticationError:
            raise
        except KeycloakAPIError as exc:
            logger.warning("Keycloak delete role '%s' failed: %s", role.name, exc)
            return StoreResult.failed(exc.description)
        return StoreResult.success()
