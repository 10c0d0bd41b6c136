"""Identity manager service: uniform user and role administration.

``IdentityManagerService`` exposes query/create/delete/get/set-property and
claim operations over an account store, driven by metadata that describes
which properties exist and how to read and write them.

Architecture:
    Admin front end ──> IdentityManagerService ──> PropertyRegistry (dispatch)
                                │
                                └──> UserStore / RoleStore ──> persistence

Every operation returns an ``IdentityManagerResult``. Unknown property types,
role operations without a role store, and create requests lacking a
mandatory property raise instead (see ``core.exceptions``).

Usage:
    service = IdentityManagerService(InMemoryUserStore(tokens), InMemoryRoleStore())
    created = service.create_user([
        PropertyValue("username", "alice"),
        PropertyValue("password", "P@ss1"),
    ])
    service.set_user_property(created.result.subject, "email", "alice@example.com")
"""
from __future__ import annotations
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, List, Optional, Sequence

from .constants import ClaimTypes, INVALID_SUBJECT, LOCKED, LOCKOUT_ENABLED, TWO_FACTOR
from .entities import Claim, IdentityRole, IdentityUser, ROLE_BASE_FIELDS, USER_BASE_FIELDS
from .exceptions import (
    InvalidPropertyTypeError,
    MissingRequiredPropertyError,
    RolesNotSupportedError,
    UnsupportedStoreError,
)
from .metadata import (
    ClaimProperty,
    IdentityManagerMetadata,
    PropertyDataType,
    PropertyMetadata,
    PropertyRegistry,
    RoleMetadata,
    UserMetadata,
)
from .query import query
from .results import (
    ClaimValue,
    CreateResult,
    IdentityManagerResult,
    PropertyValue,
    QueryResult,
    RoleDetail,
    RoleSummary,
    UserDetail,
    UserSummary,
)

logger = logging.getLogger(__name__)

LOCKOUT_FOREVER = datetime.max.replace(tzinfo=timezone.utc)
LOCKOUT_NEVER = datetime.min.replace(tzinfo=timezone.utc)

AuditHook = Callable[..., Any]


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def _first_error(store_result) -> IdentityManagerResult:
    return IdentityManagerResult.failure(store_result.errors[0])


class IdentityManagerService:
    """Uniform identity administration over a user store and an optional role store.

    Args:
        user_store: Account store for users (must support queryable users)
        role_store: Account store for roles; None disables role operations
        metadata: Static metadata to serve instead of the standard metadata
        metadata_provider: Callable producing metadata (mutually exclusive with ``metadata``)
        include_account_properties: Expose custom entity fields in standard metadata
        user_type: Entity class instantiated for new users
        role_type: Entity class instantiated for new roles
        role_claim_type: Claim type advertised for roles
        claim_properties: Extra user properties backed by claims
        query_case_sensitive: Match query filters case-sensitively
        cache_metadata: Compute metadata once and reuse it
        audit: Callable ``(event_type, subject, *, operator, details, success)``
        operator: Operator name recorded in audit events

    Raises:
        ValueError: If ``user_store`` is missing or both metadata sources are given
        UnsupportedStoreError: If the user store cannot enumerate users
    """

    def __init__(
        self,
        user_store,
        role_store=None,
        *,
        metadata: Optional[IdentityManagerMetadata] = None,
        metadata_provider: Optional[Callable[[], IdentityManagerMetadata]] = None,
        include_account_properties: bool = True,
        user_type: type = IdentityUser,
        role_type: type = IdentityRole,
        role_claim_type: str = ClaimTypes.ROLE,
        claim_properties: Iterable[ClaimProperty] = (),
        query_case_sensitive: bool = False,
        cache_metadata: bool = True,
        audit: Optional[AuditHook] = None,
        operator: str = "identity-manager",
    ):
        if user_store is None:
            raise ValueError("user_store is required")
        if metadata is not None and metadata_provider is not None:
            raise ValueError("Pass either metadata or metadata_provider, not both")

        self.capabilities = user_store.capabilities
        if not self.capabilities.supports_queryable_users:
            raise UnsupportedStoreError("User store must support queryable users.")

        self.user_store = user_store
        self.role_store = role_store
        self.user_type = user_type
        self.role_type = role_type
        self.role_claim_type = role_claim_type
        self.claim_properties = tuple(claim_properties)
        self.query_case_sensitive = query_case_sensitive
        self.cache_metadata = cache_metadata
        self.audit = audit
        self.operator = operator

        if metadata is not None:
            self._metadata_provider = lambda: metadata
        elif metadata_provider is not None:
            self._metadata_provider = metadata_provider
        else:
            self._metadata_provider = lambda: self.get_standard_metadata(include_account_properties)
        self._metadata: Optional[IdentityManagerMetadata] = None

    # ─────────────────────────────────────────────────────────────────────────
    # Metadata
    # ─────────────────────────────────────────────────────────────────────────

    def get_metadata(self) -> IdentityManagerMetadata:
        if self.cache_metadata and self._metadata is not None:
            return self._metadata
        metadata = self._metadata_provider()
        if self.cache_metadata:
            self._metadata = metadata
        return metadata

    def get_standard_metadata(self, include_account_properties: bool = True) -> IdentityManagerMetadata:
        """Build metadata from the user store's capabilities.

        Update properties appear only for capabilities the store advertises,
        followed by claim-backed properties and, optionally, the custom fields
        of ``user_type``.
        """
        caps = self.capabilities
        update: List[PropertyMetadata] = []
        if caps.supports_password:
            update.append(self._password_property())
        if caps.supports_email:
            update.append(PropertyMetadata.from_functions(
                ClaimTypes.EMAIL, self.get_email, self.set_email, "Email", PropertyDataType.EMAIL
            ))
        if caps.supports_phone_number:
            update.append(PropertyMetadata.from_functions(
                ClaimTypes.PHONE, self.get_phone, self.set_phone, "Phone", PropertyDataType.STRING
            ))
        if caps.supports_two_factor:
            update.append(PropertyMetadata.from_functions(
                TWO_FACTOR, self.get_two_factor_enabled, self.set_two_factor_enabled,
                "Two Factor Enabled", PropertyDataType.BOOLEAN, value_type=bool,
            ))
        if caps.supports_lockout:
            update.append(PropertyMetadata.from_functions(
                LOCKOUT_ENABLED, self.get_lockout_enabled, self.set_lockout_enabled,
                "Lockout Enabled", PropertyDataType.BOOLEAN, value_type=bool,
            ))
            update.append(PropertyMetadata.from_functions(
                LOCKED, self.get_locked_out, self.set_locked_out,
                "Locked Out", PropertyDataType.BOOLEAN, value_type=bool,
            ))

        if caps.supports_claims:
            for claim in self.claim_properties:
                update.append(self.get_metadata_for_claim(claim.type, claim.name, claim.data_type, claim.required))

        if include_account_properties:
            update.extend(PropertyMetadata.from_type(self.user_type, *USER_BASE_FIELDS))

        create = [
            PropertyMetadata.from_property(
                self.user_type, "username", ClaimTypes.USERNAME, name="Username", required=True
            ),
            self._password_property(),
        ]

        user = UserMetadata(
            supports_create=True,
            supports_delete=True,
            supports_claims=caps.supports_claims,
            create_properties=create,
            update_properties=update,
        )

        role_update: List[PropertyMetadata] = []
        if include_account_properties:
            role_update.extend(PropertyMetadata.from_type(self.role_type, *ROLE_BASE_FIELDS))

        role = RoleMetadata(
            role_claim_type=self.role_claim_type,
            supports_create=True,
            supports_delete=True,
            create_properties=[
                PropertyMetadata.from_property(self.role_type, "name", ClaimTypes.NAME, name="Name", required=True)
            ],
            update_properties=role_update,
        )

        return IdentityManagerMetadata(user_metadata=user, role_metadata=role)

    def _password_property(self) -> PropertyMetadata:
        return PropertyMetadata.from_functions(
            ClaimTypes.PASSWORD, lambda user: None, self.set_password,
            "Password", PropertyDataType.PASSWORD, required=True,
        )

    def get_metadata_for_claim(
        self,
        type: str,
        name: Optional[str] = None,
        data_type: PropertyDataType = PropertyDataType.STRING,
        required: bool = False,
    ) -> PropertyMetadata:
        """Describe a user property stored as claims of ``type``."""
        return PropertyMetadata.from_functions(
            type, self.get_for_claim(type), self.set_for_claim(type), name, data_type, required
        )

    def get_for_claim(self, type: str) -> Callable[[Any], Optional[str]]:
        def _get(user: Any) -> Optional[str]:
            return next((c.value for c in self.user_store.get_claims(user) if c.type == type), None)
        return _get

    def set_for_claim(self, type: str) -> Callable[[Any, Optional[str]], IdentityManagerResult]:
        def _set(user: Any, value: Optional[str]) -> IdentityManagerResult:
            for claim in [c for c in self.user_store.get_claims(user) if c.type == type]:
                result = self.user_store.remove_claim(user, claim)
                if not result.succeeded:
                    return _first_error(result)

            if not _is_blank(value):
                result = self.user_store.add_claim(user, Claim(type, value))
                if not result.succeeded:
                    return _first_error(result)

            return IdentityManagerResult.success()
        return _set

    # ─────────────────────────────────────────────────────────────────────────
    # Property accessors used by the standard metadata
    # ─────────────────────────────────────────────────────────────────────────

    def set_password(self, user: Any, password: Optional[str]) -> IdentityManagerResult:
        """Reset the password by issuing a reset token and redeeming it at once."""
        token = self.user_store.generate_password_reset_token(user)
        result = self.user_store.reset_password(user, token, password or "")
        if not result.succeeded:
            return _first_error(result)
        return IdentityManagerResult.success()

    def get_email(self, user: Any) -> Optional[str]:
        return self.user_store.get_email(user)

    def set_email(self, user: Any, email: Optional[str]) -> IdentityManagerResult:
        """Set the email; a non-blank email is confirmed immediately."""
        result = self.user_store.set_email(user, email)
        if not result.succeeded:
            return _first_error(result)

        if not _is_blank(email):
            token = self.user_store.generate_email_confirmation_token(user)
            result = self.user_store.confirm_email(user, token)
            if not result.succeeded:
                return _first_error(result)

        return IdentityManagerResult.success()

    def get_phone(self, user: Any) -> Optional[str]:
        return self.user_store.get_phone_number(user)

    def set_phone(self, user: Any, phone: Optional[str]) -> IdentityManagerResult:
        """Set the phone number; a non-blank number goes through the change-confirmation flow."""
        result = self.user_store.set_phone_number(user, phone)
        if not result.succeeded:
            return _first_error(result)

        if not _is_blank(phone):
            token = self.user_store.generate_change_phone_number_token(user, phone)
            result = self.user_store.change_phone_number(user, phone, token)
            if not result.succeeded:
                return _first_error(result)

        return IdentityManagerResult.success()

    def get_two_factor_enabled(self, user: Any) -> bool:
        return self.user_store.get_two_factor_enabled(user)

    def set_two_factor_enabled(self, user: Any, enabled: Optional[bool]) -> IdentityManagerResult:
        result = self.user_store.set_two_factor_enabled(user, bool(enabled))
        if not result.succeeded:
            return _first_error(result)
        return IdentityManagerResult.success()

    def get_lockout_enabled(self, user: Any) -> bool:
        return self.user_store.get_lockout_enabled(user)

    def set_lockout_enabled(self, user: Any, enabled: Optional[bool]) -> IdentityManagerResult:
        result = self.user_store.set_lockout_enabled(user, bool(enabled))
        if not result.succeeded:
            return _first_error(result)
        return IdentityManagerResult.success()

    def get_locked_out(self, user: Any) -> bool:
        """A user is locked while the lockout end lies in the future."""
        lockout_end = self.user_store.get_lockout_end(user)
        if lockout_end is None:
            return False
        if lockout_end.tzinfo is None:
            lockout_end = lockout_end.replace(tzinfo=timezone.utc)
        return lockout_end > datetime.now(timezone.utc)

    def set_locked_out(self, user: Any, locked: Optional[bool]) -> IdentityManagerResult:
        result = self.user_store.set_lockout_end(user, LOCKOUT_FOREVER if locked else LOCKOUT_NEVER)
        if not result.succeeded:
            return _first_error(result)
        return IdentityManagerResult.success()

    def display_name_from_user(self, user: Any) -> Optional[str]:
        if self.capabilities.supports_claims:
            name = next(
                (c.value for c in self.user_store.get_claims(user) if c.type == ClaimTypes.NAME),
                None,
            )
            if not _is_blank(name):
                return name
        return None

    # ─────────────────────────────────────────────────────────────────────────
    # Users
    # ─────────────────────────────────────────────────────────────────────────

    def query_users(
        self, filter: Optional[str] = None, start: int = 0, count: int = -1
    ) -> IdentityManagerResult[QueryResult[UserSummary]]:
        page = query(
            self.user_store.users(),
            key=lambda user: user.username,
            filter=filter,
            start=start,
            count=count,
            case_sensitive=self.query_case_sensitive,
        )
        items = [
            UserSummary(subject=str(user.id), username=user.username, name=self.display_name_from_user(user))
            for user in page.items
        ]
        return IdentityManagerResult.success(
            QueryResult(start=page.start, count=page.count, total=page.total, filter=filter, items=items)
        )

    def create_user(self, properties: Iterable[PropertyValue]) -> IdentityManagerResult[CreateResult]:
        """Create a user from property values.

        Exactly one ``username`` and one ``password`` value are required. All
        other values are applied to the new entity before it is persisted once.

        Raises:
            ValueError: If ``properties`` is None
            MissingRequiredPropertyError: If username or password is missing or repeated
            InvalidPropertyTypeError: If a value targets an unknown create property
        """
        if properties is None:
            raise ValueError("properties is required")
        properties = list(properties)

        username = self._single(properties, ClaimTypes.USERNAME).value
        password = self._single(properties, ClaimTypes.PASSWORD).value

        excluded = {ClaimTypes.USERNAME, ClaimTypes.PASSWORD}
        other_properties = [p for p in properties if p.type not in excluded]

        create_props = self.get_metadata().user_metadata.get_create_properties()

        user = self.user_type(username=username)
        for prop in other_properties:
            result = self._set_user_property(create_props, user, prop.type, prop.value)
            if not result.is_success:
                return IdentityManagerResult.failure(*result.errors)

        store_result = self.user_store.create(user, password)
        if not store_result.succeeded:
            logger.info("User store rejected new user '%s': %s", username, list(store_result.errors))
            self._audit("user_create", "", success=False, username=username, errors=list(store_result.errors))
            return IdentityManagerResult.failure(*store_result.errors)

        logger.info("Created user '%s' (subject=%s)", username, user.id)
        self._audit("user_create", str(user.id), username=username)
        return IdentityManagerResult.success(CreateResult(subject=str(user.id)))

    def delete_user(self, subject: str) -> IdentityManagerResult:
        user = self.user_store.find_by_id(subject)
        if user is None:
            return IdentityManagerResult.failure(INVALID_SUBJECT)

        result = self.user_store.delete(user)
        if not result.succeeded:
            self._audit("user_delete", subject, success=False, errors=list(result.errors))
            return IdentityManagerResult.failure(*result.errors)

        logger.info("Deleted user '%s' (subject=%s)", user.username, subject)
        self._audit("user_delete", subject, username=user.username)
        return IdentityManagerResult.success()

    def get_user(self, subject: str) -> IdentityManagerResult[Optional[UserDetail]]:
        """Return the user's details, or a successful empty result when unknown."""
        user = self.user_store.find_by_id(subject)
        if user is None:
            return IdentityManagerResult.success(None)

        detail = UserDetail(
            subject=subject,
            username=user.username,
            name=self.display_name_from_user(user),
        )

        update_props = self.get_metadata().user_metadata.update_properties
        detail.properties = [
            PropertyValue(type=prop.type, value=self._get_user_property(update_props, user, prop.type))
            for prop in update_props
        ]

        if self.capabilities.supports_claims:
            detail.claims = [ClaimValue(type=c.type, value=c.value) for c in self.user_store.get_claims(user) or []]

        return IdentityManagerResult.success(detail)

    def set_user_property(self, subject: str, type: str, value: Optional[str]) -> IdentityManagerResult:
        user = self.user_store.find_by_id(subject)
        if user is None:
            return IdentityManagerResult.failure(INVALID_SUBJECT)

        errors = list(self.validate_user_property(type, value))
        if errors:
            return IdentityManagerResult.failure(*errors)

        update_props = self.get_metadata().user_metadata.update_properties
        result = self._set_user_property(update_props, user, type, value)
        if not result.is_success:
            return result

        store_result = self.user_store.update(user)
        if not store_result.succeeded:
            self._audit("user_property_set", subject, success=False, property=type, errors=list(store_result.errors))
            return IdentityManagerResult.failure(*store_result.errors)

        self._audit("user_property_set", subject, property=type)
        return IdentityManagerResult.success()

    def add_user_claim(self, subject: str, type: str, value: str) -> IdentityManagerResult:
        """Add a claim unless the same (type, value) pair is already present."""
        user = self.user_store.find_by_id(subject)
        if user is None:
            return IdentityManagerResult.failure(INVALID_SUBJECT)

        existing = self.user_store.get_claims(user)
        if not any(c.type == type and c.value == value for c in existing):
            result = self.user_store.add_claim(user, Claim(type, value))
            if not result.succeeded:
                return IdentityManagerResult.failure(*result.errors)
            self._audit("user_claim_add", subject, claim_type=type)

        return IdentityManagerResult.success()

    def remove_user_claim(self, subject: str, type: str, value: str) -> IdentityManagerResult:
        user = self.user_store.find_by_id(subject)
        if user is None:
            return IdentityManagerResult.failure(INVALID_SUBJECT)

        result = self.user_store.remove_claim(user, Claim(type, value))
        if not result.succeeded:
            return IdentityManagerResult.failure(*result.errors)

        self._audit("user_claim_remove", subject, claim_type=type)
        return IdentityManagerResult.success()

    # ─────────────────────────────────────────────────────────────────────────
    # Roles
    # ─────────────────────────────────────────────────────────────────────────

    def query_roles(
        self, filter: Optional[str] = None, start: int = 0, count: int = -1
    ) -> IdentityManagerResult[QueryResult[RoleSummary]]:
        self._validate_supports_roles()

        page = query(
            self.role_store.roles(),
            key=lambda role: role.name,
            filter=filter,
            start=start,
            count=count,
            case_sensitive=self.query_case_sensitive,
        )
        items = [
            RoleSummary(subject=str(role.id), name=role.name, description=getattr(role, "description", None))
            for role in page.items
        ]
        return IdentityManagerResult.success(
            QueryResult(start=page.start, count=page.count, total=page.total, filter=filter, items=items)
        )

    def create_role(self, properties: Iterable[PropertyValue]) -> IdentityManagerResult[CreateResult]:
        self._validate_supports_roles()
        if properties is None:
            raise ValueError("properties is required")
        properties = list(properties)

        name = self._single(properties, ClaimTypes.NAME).value
        other_properties = [p for p in properties if p.type != ClaimTypes.NAME]

        create_props = self.get_metadata().role_metadata.get_create_properties()

        role = self.role_type(name=name)
        for prop in other_properties:
            result = self._set_role_property(create_props, role, prop.type, prop.value)
            if not result.is_success:
                return IdentityManagerResult.failure(*result.errors)

        store_result = self.role_store.create(role)
        if not store_result.succeeded:
            self._audit("role_create", "", success=False, name=name, errors=list(store_result.errors))
            return IdentityManagerResult.failure(*store_result.errors)

        logger.info("Created role '%s' (subject=%s)", name, role.id)
        self._audit("role_create", str(role.id), name=name)
        return IdentityManagerResult.success(CreateResult(subject=str(role.id)))

    def delete_role(self, subject: str) -> IdentityManagerResult:
        self._validate_supports_roles()

        role = self.role_store.find_by_id(subject)
        if role is None:
            return IdentityManagerResult.failure(INVALID_SUBJECT)

        result = self.role_store.delete(role)
        if not result.succeeded:
            return IdentityManagerResult.failure(*result.errors)

        logger.info("Deleted role '%s' (subject=%s)", role.name, subject)
        self._audit("role_delete", subject, name=role.name)
        return IdentityManagerResult.success()

    def get_role(self, subject: str) -> IdentityManagerResult[Optional[RoleDetail]]:
        self._validate_supports_roles()

        role = self.role_store.find_by_id(subject)
        if role is None:
            return IdentityManagerResult.success(None)

        detail = RoleDetail(subject=subject, name=role.name, description=getattr(role, "description", None))

        update_props = self.get_metadata().role_metadata.update_properties
        detail.properties = [
            PropertyValue(type=prop.type, value=self._get_role_property(update_props, role, prop.type))
            for prop in update_props
        ]
        return IdentityManagerResult.success(detail)

    def set_role_property(self, subject: str, type: str, value: Optional[str]) -> IdentityManagerResult:
        self._validate_supports_roles()

        role = self.role_store.find_by_id(subject)
        if role is None:
            return IdentityManagerResult.failure(INVALID_SUBJECT)

        errors = list(self.validate_role_property(type, value))
        if errors:
            return IdentityManagerResult.failure(*errors)

        update_props = self.get_metadata().role_metadata.update_properties
        result = self._set_role_property(update_props, role, type, value)
        if not result.is_success:
            return result

        store_result = self.role_store.update(role)
        if not store_result.succeeded:
            return IdentityManagerResult.failure(*store_result.errors)

        self._audit("role_property_set", subject, property=type)
        return IdentityManagerResult.success()

    # ─────────────────────────────────────────────────────────────────────────
    # Extension points & dispatch
    # ─────────────────────────────────────────────────────────────────────────

    def validate_user_property(self, type: str, value: Optional[str]) -> Sequence[str]:
        """Pre-flight check for user property edits; override to add rules."""
        return ()

    def validate_role_property(self, type: str, value: Optional[str]) -> Sequence[str]:
        """Pre-flight check for role property edits; override to add rules."""
        return ()

    def _get_user_property(self, registry: PropertyRegistry, user: Any, type: str) -> Optional[str]:
        found, value = registry.try_get(user, type)
        if not found:
            raise InvalidPropertyTypeError(type)
        return value

    def _set_user_property(
        self, registry: PropertyRegistry, user: Any, type: str, value: Optional[str]
    ) -> IdentityManagerResult:
        found, result = registry.try_set(user, type, value)
        if not found:
            raise InvalidPropertyTypeError(type)
        logger.debug("Applied user property '%s' (success=%s)", type, result.is_success)
        return result

    def _get_role_property(self, registry: PropertyRegistry, role: Any, type: str) -> Optional[str]:
        found, value = registry.try_get(role, type)
        if not found:
            raise InvalidPropertyTypeError(type)
        return value

    def _set_role_property(
        self, registry: PropertyRegistry, role: Any, type: str, value: Optional[str]
    ) -> IdentityManagerResult:
        found, result = registry.try_set(role, type, value)
        if not found:
            raise InvalidPropertyTypeError(type)
        return result

    def _validate_supports_roles(self) -> None:
        if self.role_store is None:
            raise RolesNotSupportedError()

    @staticmethod
    def _single(properties: List[PropertyValue], type: str) -> PropertyValue:
        matches = [p for p in properties if p.type == type]
        if len(matches) != 1:
            raise MissingRequiredPropertyError(type, len(matches))
        return matches[0]

    def _audit(self, event_type: str, subject: str, success: bool = True, **details: Any) -> None:
        if self.audit is None:
            return
        self.audit(event_type, subject, operator=self.operator, details=details, success=success)
