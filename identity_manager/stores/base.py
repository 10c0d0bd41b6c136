"""Account store abstractions.

The identity manager never persists anything itself. It talks to a
``UserStore`` (and optionally a ``RoleStore``) which own persistence, claim
storage, password handling and token redemption.

Mutating calls return a ``StoreResult``; lookups return the entity or None.
Field-level setters (email, phone, two-factor, lockout) only mutate the
entity in memory; the caller persists with ``update()``. Claim changes on an
already persisted user are written through immediately.

Concrete stores implement the abstract persistence methods:
    - InMemoryUserStore / InMemoryRoleStore (stores/memory.py)
    - KeycloakUserStore / KeycloakRoleStore (stores/keycloak/)
"""
from __future__ import annotations
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

from identity_manager.core.entities import Claim, IdentityRole, IdentityUser
from identity_manager.core.tokens import (
    CHANGE_PHONE_NUMBER,
    EMAIL_CONFIRMATION,
    PASSWORD_RESET,
    TokenProvider,
)

logger = logging.getLogger(__name__)

INVALID_TOKEN = "Invalid token."


@dataclass(frozen=True)
class StoreResult:
    """Outcome of a mutating store call."""
    succeeded: bool
    errors: tuple[str, ...] = ()

    @classmethod
    def success(cls) -> "StoreResult":
        return cls(succeeded=True)

    @classmethod
    def failed(cls, *errors: str) -> "StoreResult":
        return cls(succeeded=False, errors=tuple(errors) or ("Store operation failed",))


@dataclass(frozen=True)
class StoreCapabilities:
    """Optional features advertised by a user store."""
    supports_queryable_users: bool = True
    supports_password: bool = True
    supports_email: bool = True
    supports_phone_number: bool = True
    supports_two_factor: bool = True
    supports_lockout: bool = True
    supports_claims: bool = True


def rotate_security_stamp(user: IdentityUser) -> None:
    user.security_stamp = str(uuid.uuid4())


class UserStore(ABC):
    """Base class for user stores.

    Args:
        token_provider: Issues and validates reset/confirmation tokens
    """

    def __init__(self, token_provider: TokenProvider):
        self.token_provider = token_provider

    @property
    def capabilities(self) -> StoreCapabilities:
        return StoreCapabilities()

    # ── persistence ──────────────────────────────────────────────────────────
    @abstractmethod
    def users(self) -> Iterable[IdentityUser]:
        """Return every user in the store."""

    @abstractmethod
    def find_by_id(self, user_id: str) -> Optional[IdentityUser]:
        """Return the user with this id, or None."""

    @abstractmethod
    def create(self, user: IdentityUser, password: str) -> StoreResult:
        """Persist a new user with an initial password."""

    @abstractmethod
    def update(self, user: IdentityUser) -> StoreResult:
        """Persist changes made to an existing user."""

    @abstractmethod
    def delete(self, user: IdentityUser) -> StoreResult:
        """Remove a user."""

    @abstractmethod
    def _set_password(self, user: IdentityUser, password: str) -> StoreResult:
        """Replace the user's password (policy checks included)."""

    def _is_persisted(self, user: IdentityUser) -> bool:
        return bool(user.id) and self.find_by_id(user.id) is not None

    # ── claims ───────────────────────────────────────────────────────────────
    def get_claims(self, user: IdentityUser) -> List[Claim]:
        return list(user.claims)

    def add_claim(self, user: IdentityUser, claim: Claim) -> StoreResult:
        user.claims.append(claim)
        if self._is_persisted(user):
            return self.update(user)
        return StoreResult.success()

    def remove_claim(self, user: IdentityUser, claim: Claim) -> StoreResult:
        user.claims[:] = [c for c in user.claims if c != claim]
        if self._is_persisted(user):
            return self.update(user)
        return StoreResult.success()

    # ── password ─────────────────────────────────────────────────────────────
    def generate_password_reset_token(self, user: IdentityUser) -> str:
        return self.token_provider.generate(PASSWORD_RESET, user)

    def reset_password(self, user: IdentityUser, token: str, new_password: str) -> StoreResult:
        if not self.token_provider.validate(PASSWORD_RESET, user, token):
            logger.warning("Rejected password reset token for user %s", user.id)
            return StoreResult.failed(INVALID_TOKEN)
        result = self._set_password(user, new_password)
        if result.succeeded:
            rotate_security_stamp(user)
        return result

    # ── email ────────────────────────────────────────────────────────────────
    def get_email(self, user: IdentityUser) -> Optional[str]:
        return user.email

    def set_email(self, user: IdentityUser, email: Optional[str]) -> StoreResult:
        user.email = email if email and email.strip() else None
        user.email_confirmed = False
        rotate_security_stamp(user)
        return StoreResult.success()

    def generate_email_confirmation_token(self, user: IdentityUser) -> str:
        return self.token_provider.generate(EMAIL_CONFIRMATION, user, user.email)

    def confirm_email(self, user: IdentityUser, token: str) -> StoreResult:
        if not self.token_provider.validate(EMAIL_CONFIRMATION, user, token, user.email):
            return StoreResult.failed(INVALID_TOKEN)
        user.email_confirmed = True
        return StoreResult.success()

    # ── phone ────────────────────────────────────────────────────────────────
    def get_phone_number(self, user: IdentityUser) -> Optional[str]:
        return user.phone_number

    def set_phone_number(self, user: IdentityUser, phone_number: Optional[str]) -> StoreResult:
        user.phone_number = phone_number if phone_number and phone_number.strip() else None
        user.phone_number_confirmed = False
        rotate_security_stamp(user)
        return StoreResult.success()

    def generate_change_phone_number_token(self, user: IdentityUser, phone_number: str) -> str:
        return self.token_provider.generate(CHANGE_PHONE_NUMBER, user, phone_number)

    def change_phone_number(self, user: IdentityUser, phone_number: str, token: str) -> StoreResult:
        if not self.token_provider.validate(CHANGE_PHONE_NUMBER, user, token, phone_number):
            return StoreResult.failed(INVALID_TOKEN)
        user.phone_number = phone_number
        user.phone_number_confirmed = True
        rotate_security_stamp(user)
        return StoreResult.success()

    # ── two-factor & lockout ─────────────────────────────────────────────────
    def get_two_factor_enabled(self, user: IdentityUser) -> bool:
        return user.two_factor_enabled

    def set_two_factor_enabled(self, user: IdentityUser, enabled: bool) -> StoreResult:
        user.two_factor_enabled = enabled
        rotate_security_stamp(user)
        return StoreResult.success()

    def get_lockout_enabled(self, user: IdentityUser) -> bool:
        return user.lockout_enabled

    def set_lockout_enabled(self, user: IdentityUser, enabled: bool) -> StoreResult:
        user.lockout_enabled = enabled
        return StoreResult.success()

    def get_lockout_end(self, user: IdentityUser) -> Optional[datetime]:
        return user.lockout_end

    def set_lockout_end(self, user: IdentityUser, lockout_end: Optional[datetime]) -> StoreResult:
        user.lockout_end = lockout_end
        return StoreResult.success()


class RoleStore(ABC):
    """Base class for role stores."""

    @abstractmethod
    def roles(self) -> Iterable[IdentityRole]:
        """Return every role in the store."""

    @abstractmethod
    def find_by_id(self, role_id: str) -> Optional[IdentityRole]:
        """Return the role with this id, or None."""

    @abstractmethod
    def create(self, role: IdentityRole) -> StoreResult:
        """Persist a new role."""

    @abstractmethod
    def update(self, role: IdentityRole) -> StoreResult:
        """Persist changes made to an existing role."""

    @abstractmethod
    def delete(self, role: IdentityRole) -> StoreResult:
        """Remove a role."""
