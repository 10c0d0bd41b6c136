"""Keycloak-backed user store.

Maps Keycloak user representations onto ``KeycloakUser`` entities:

    username / email / emailVerified / firstName / lastName   -> fields
    attributes (except reserved keys)                         -> claims
    attributes phoneNumber, phoneNumberVerified               -> phone fields
    attributes lockoutEnabled, lockoutEnd + enabled flag      -> lockout fields
    totp / CONFIGURE_TOTP required action                     -> two_factor_enabled

Tokens for password reset and confirmation are issued in-process by the
shared ``TokenProvider``; Keycloak only sees the resulting writes.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote

from identity_manager.core.entities import Claim, IdentityUser
from identity_manager.core.tokens import TokenProvider
from identity_manager.stores.base import StoreResult, UserStore

from .client import KeycloakClient
from .exceptions import KeycloakAPIError, KeycloakAuthenticationError

logger = logging.getLogger(__name__)

ATTR_PHONE = "phoneNumber"
ATTR_PHONE_VERIFIED = "phoneNumberVerified"
ATTR_LOCKOUT_ENABLED = "lockoutEnabled"
ATTR_LOCKOUT_END = "lockoutEnd"
RESERVED_ATTRIBUTES = {ATTR_PHONE, ATTR_PHONE_VERIFIED, ATTR_LOCKOUT_ENABLED, ATTR_LOCKOUT_END}

CONFIGURE_TOTP = "CONFIGURE_TOTP"
DEFAULT_PAGE_SIZE = 100


@dataclass
class KeycloakUser(IdentityUser):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    _required_actions: List[str] = field(default_factory=list)
    _otp_configured: bool = False


def _first(attributes: Dict[str, List[str]], key: str) -> Optional[str]:
    values = attributes.get(key) or []
    return values[0] if values else None


def _is_locked(lockout_end: Optional[datetime]) -> bool:
    return lockout_end is not None and lockout_end > datetime.now(timezone.utc)


def user_from_representation(rep: Dict[str, Any]) -> KeycloakUser:
    """Convert a Keycloak user representation into an entity."""
    attributes: Dict[str, List[str]] = rep.get("attributes") or {}
    required_actions = list(rep.get("requiredActions") or [])

    lockout_end = None
    raw_end = _first(attributes, ATTR_LOCKOUT_END)
    if raw_end:
        lockout_end = datetime.fromisoformat(raw_end)
    elif rep.get("enabled") is False:
        lockout_end = datetime.max.replace(tzinfo=timezone.utc)

    claims = [
        Claim(key, value)
        for key, values in attributes.items()
        if key not in RESERVED_ATTRIBUTES
        for value in values
    ]

    return KeycloakUser(
        id=rep.get("id"),
        username=rep.get("username", ""),
        email=rep.get("email") or None,
        email_confirmed=bool(rep.get("emailVerified")),
        first_name=rep.get("firstName") or None,
        last_name=rep.get("lastName") or None,
        phone_number=_first(attributes, ATTR_PHONE),
        phone_number_confirmed=_first(attributes, ATTR_PHONE_VERIFIED) == "true",
        two_factor_enabled=bool(rep.get("totp")) or CONFIGURE_TOTP in required_actions,
        lockout_enabled=_first(attributes, ATTR_LOCKOUT_ENABLED) == "true",
        lockout_end=lockout_end,
        claims=claims,
        _required_actions=required_actions,
        _otp_configured=bool(rep.get("totp")),
    )


def user_to_representation(user: IdentityUser) -> Dict[str, Any]:
    """Convert an entity into a Keycloak user representation."""
    attributes: Dict[str, List[str]] = {}
    for claim in user.claims:
        attributes.setdefault(claim.type, []).append(claim.value)
    if user.phone_number:
        attributes[ATTR_PHONE] = [user.phone_number]
        attributes[ATTR_PHONE_VERIFIED] = ["true" if user.phone_number_confirmed else "false"]
    attributes[ATTR_LOCKOUT_ENABLED] = ["true" if user.lockout_enabled else "false"]
    if user.lockout_end is not None:
        attributes[ATTR_LOCKOUT_END] = [user.lockout_end.isoformat()]

    actions = set(getattr(user, "_required_actions", []) or [])
    if user.two_factor_enabled and not getattr(user, "_otp_configured", False):
        actions.add(CONFIGURE_TOTP)
    else:
        actions.discard(CONFIGURE_TOTP)

    return {
        "username": user.username,
        "email": user.email or "",
        "emailVerified": user.email_confirmed,
        "firstName": getattr(user, "first_name", None) or "",
        "lastName": getattr(user, "last_name", None) or "",
        "enabled": not _is_locked(user.lockout_end),
        "attributes": attributes,
        "requiredActions": sorted(actions),
    }


class KeycloakUserStore(UserStore):
    """User store backed by a Keycloak realm.

    Args:
        client: Authenticated Keycloak client
        realm: Realm whose users are managed
        token_provider: Token issuer for reset/confirmation flows
    """

    def __init__(
        self,
        client: KeycloakClient,
        realm: str,
        token_provider: TokenProvider,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        super().__init__(token_provider)
        self.client = client
        self.realm = realm
        self.page_size = page_size

    def _path(self, suffix: str = "") -> str:
        return f"/admin/realms/{quote(self.realm, safe='')}/users{suffix}"

    def _call(self, action: str, func: Callable[[], Any]) -> StoreResult:
        try:
            func()
        except KeycloakAuthenticationError:
            raise
        except KeycloakAPIError as exc:
            logger.warning("Keycloak %s failed: %s", action, exc)
            return StoreResult.failed(exc.description)
        return StoreResult.success()

    def users(self) -> List[KeycloakUser]:
        result: List[KeycloakUser] = []
        first = 0
        while True:
            resp = self.client.get(
                self._path(),
                params={"first": first, "max": self.page_size, "briefRepresentation": "false"},
            )
            batch = resp.json() or []
            result.extend(user_from_representation(rep) for rep in batch)
            if len(batch) < self.page_size:
                return result
            first += self.page_size

    def find_by_id(self, user_id: str) -> Optional[KeycloakUser]:
        if not user_id:
            return None
        try:
            resp = self.client.get(self._path(f"/{quote(user_id, safe='')}"))
        except KeycloakAuthenticationError:
            raise
        except KeycloakAPIError as exc:
            if exc.status_code == 404:
                return None
            raise
        return user_from_representation(resp.json())

    def create(self, user: IdentityUser, password: str) -> StoreResult:
        payload = user_to_representation(user)
        payload["credentials"] = [{"type": "password", "value": password, "temporary": False}]

        def _post():
            resp = self.client.post(self._path(), json=payload)
            location = resp.headers.get("Location", "")
            user.id = location.rstrip("/").rsplit("/", 1)[-1] if location else user.id
            logger.info("Created Keycloak user '%s' (id=%s)", user.username, user.id)

        return self._call("create user", _post)

    def update(self, user: IdentityUser) -> StoreResult:
        payload = user_to_representation(user)
        user_path = self._path(f"/{quote(user.id, safe='')}")

        def _put():
            self.client.put(user_path, json=payload)
            if getattr(user, "_otp_configured", False) and not user.two_factor_enabled:
                self._remove_otp_credentials(user_path)
                user._otp_configured = False

        return self._call("update user", _put)

    def _remove_otp_credentials(self, user_path: str) -> None:
        """Delete configured OTP credentials; Keycloak keeps ``totp`` true while any exist."""
        credentials = self.client.get(f"{user_path}/credentials").json() or []
        for credential in credentials:
            if credential.get("type") == "otp":
                self.client.delete(f"{user_path}/credentials/{quote(credential['id'], safe='')}")
                logger.info("Removed OTP credential %s from %s", credential["id"], user_path)

    def delete(self, user: IdentityUser) -> StoreResult:
        return self._call(
            "delete user",
            lambda: self.client.delete(self._path(f"/{quote(user.id, safe='')}")),
        )

    def _set_password(self, user: IdentityUser, password: str) -> StoreResult:
        return self._call(
            "reset password",
            lambda: self.client.put(
                self._path(f"/{quote(user.id, safe='')}/reset-password"),
                json={"type": "password", "temporary": False, "value": password},
            ),
        )
