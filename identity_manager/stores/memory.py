"""In-process account stores.

Users and roles live in dictionaries guarded by a re-entrant lock. Entities
handed out are copies, so edits only become visible after ``update()``,
which enforces optimistic concurrency through ``concurrency_stamp``.
"""
from __future__ import annotations
import copy
import logging
import threading
import uuid
from typing import Dict, List, Optional

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

from identity_manager.core.entities import IdentityRole, IdentityUser
from identity_manager.core.tokens import TokenProvider
from identity_manager.core.validators import (
    validate_email,
    validate_password,
    validate_role_name,
    validate_username,
)

from .base import RoleStore, StoreCapabilities, StoreResult, UserStore, rotate_security_stamp

logger = logging.getLogger(__name__)

CONCURRENCY_FAILURE = "Optimistic concurrency failure, object has been modified."

# Argon2id with library defaults; the salt is embedded in the encoded hash
_hasher = PasswordHasher()


def hash_password(password: str) -> str:
    return _hasher.hash(password)


def verify_password(password_hash: Optional[str], password: str) -> bool:
    if not password_hash:
        return False
    try:
        return _hasher.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


class InMemoryUserStore(UserStore):
    """User store backed by a dictionary.

    Args:
        token_provider: Token issuer for reset/confirmation flows
        password_min_length: Minimum accepted password length
        capabilities: Override the advertised capabilities (all enabled by default)
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        password_min_length: int = 4,
        capabilities: Optional[StoreCapabilities] = None,
    ):
        super().__init__(token_provider)
        self.password_min_length = password_min_length
        self._capabilities = capabilities or StoreCapabilities()
        self._users: Dict[str, IdentityUser] = {}
        self._lock = threading.RLock()

    @property
    def capabilities(self) -> StoreCapabilities:
        return self._capabilities

    def users(self) -> List[IdentityUser]:
        with self._lock:
            return [copy.deepcopy(u) for u in self._users.values()]

    def find_by_id(self, user_id: str) -> Optional[IdentityUser]:
        with self._lock:
            user = self._users.get(user_id)
            return copy.deepcopy(user) if user is not None else None

    def find_by_username(self, username: str) -> Optional[IdentityUser]:
        with self._lock:
            wanted = username.casefold()
            for user in self._users.values():
                if user.username.casefold() == wanted:
                    return copy.deepcopy(user)
            return None

    def check_password(self, user: IdentityUser, password: str) -> bool:
        with self._lock:
            stored = self._users.get(user.id)
            return stored is not None and verify_password(stored.password_hash, password)

    def _validate_user(self, user: IdentityUser) -> list[str]:
        errors = []
        try:
            validate_username(user.username)
        except ValueError as exc:
            errors.append(str(exc))
        else:
            wanted = user.username.casefold()
            for other in self._users.values():
                if other.id != user.id and other.username.casefold() == wanted:
                    errors.append(f"Username '{user.username}' is already taken.")
                    break
        if user.email:
            try:
                validate_email(user.email)
            except ValueError as exc:
                errors.append(str(exc))
        return errors

    def create(self, user: IdentityUser, password: str) -> StoreResult:
        with self._lock:
            if user.id in self._users:
                return StoreResult.failed(f"User with id '{user.id}' already exists.")
            errors = self._validate_user(user)
            errors.extend(validate_password(password, self.password_min_length))
            if errors:
                logger.info("Rejected new user '%s': %s", user.username, errors)
                return StoreResult.failed(*errors)

            user.password_hash = hash_password(password)
            user.concurrency_stamp = str(uuid.uuid4())
            self._users[user.id] = copy.deepcopy(user)
            logger.debug("Stored user %s (%s)", user.id, user.username)
            return StoreResult.success()

    def update(self, user: IdentityUser) -> StoreResult:
        with self._lock:
            stored = self._users.get(user.id)
            if stored is None:
                return StoreResult.failed(f"User with id '{user.id}' not found.")
            if stored.concurrency_stamp != user.concurrency_stamp:
                return StoreResult.failed(CONCURRENCY_FAILURE)
            errors = self._validate_user(user)
            if errors:
                return StoreResult.failed(*errors)

            user.concurrency_stamp = str(uuid.uuid4())
            self._users[user.id] = copy.deepcopy(user)
            return StoreResult.success()

    def delete(self, user: IdentityUser) -> StoreResult:
        with self._lock:
            stored = self._users.get(user.id)
            if stored is None:
                return StoreResult.failed(f"User with id '{user.id}' not found.")
            if stored.concurrency_stamp != user.concurrency_stamp:
                return StoreResult.failed(CONCURRENCY_FAILURE)
            del self._users[user.id]
            return StoreResult.success()

    def _set_password(self, user: IdentityUser, password: str) -> StoreResult:
        errors = validate_password(password, self.password_min_length)
        if errors:
            return StoreResult.failed(*errors)
        user.password_hash = hash_password(password)
        rotate_security_stamp(user)
        return StoreResult.success()


class InMemoryRoleStore(RoleStore):
    """Role store backed by a dictionary; role names are unique (case-insensitive)."""

    def __init__(self):
        self._roles: Dict[str, IdentityRole] = {}
        self._lock = threading.RLock()

    def roles(self) -> List[IdentityRole]:
        with self._lock:
            return [copy.deepcopy(r) for r in self._roles.values()]

    def find_by_id(self, role_id: str) -> Optional[IdentityRole]:
        with self._lock:
            role = self._roles.get(role_id)
            return copy.deepcopy(role) if role is not None else None

    def _validate_role(self, role: IdentityRole) -> list[str]:
        try:
            validate_role_name(role.name)
        except ValueError as exc:
            return [str(exc)]
        wanted = role.name.casefold()
        for other in self._roles.values():
            if other.id != role.id and other.name.casefold() == wanted:
                return [f"Role name '{role.name}' is already taken."]
        return []

    def create(self, role: IdentityRole) -> StoreResult:
        with self._lock:
            if role.id in self._roles:
                return StoreResult.failed(f"Role with id '{role.id}' already exists.")
            errors = self._validate_role(role)
            if errors:
                return StoreResult.failed(*errors)
            role.concurrency_stamp = str(uuid.uuid4())
            self._roles[role.id] = copy.deepcopy(role)
            return StoreResult.success()

    def update(self, role: IdentityRole) -> StoreResult:
        with self._lock:
            stored = self._roles.get(role.id)
            if stored is None:
                return StoreResult.failed(f"Role with id '{role.id}' not found.")
            if stored.concurrency_stamp != role.concurrency_stamp:
                return StoreResult.failed(CONCURRENCY_FAILURE)
            errors = self._validate_role(role)
            if errors:
                return StoreResult.failed(*errors)
            role.concurrency_stamp = str(uuid.uuid4())
            self._roles[role.id] = copy.deepcopy(role)
            return StoreResult.success()

    def delete(self, role: IdentityRole) -> StoreResult:
        with self._lock:
            if role.id not in self._roles:
                return StoreResult.failed(f"Role with id '{role.id}' not found.")
            del self._roles[role.id]
            return StoreResult.success()
