"""Facade tests for metadata derivation and custom profile fields."""
from dataclasses import dataclass
from typing import Optional
from unittest.mock import MagicMock

import pytest

from identity_manager.core.entities import IdentityUser, USER_BASE_FIELDS
from identity_manager.core.exceptions import DuplicatePropertyError
from identity_manager.core.metadata import (
    ClaimProperty,
    IdentityManagerMetadata,
    PropertyDataType,
    PropertyMetadata,
    RoleMetadata,
    UserMetadata,
)
from identity_manager.core.results import PropertyValue
from identity_manager.core.service import IdentityManagerService
from identity_manager.stores.base import StoreCapabilities
from identity_manager.stores.memory import InMemoryUserStore


@dataclass
class StaffUser(IdentityUser):
    first_name: Optional[str] = None
    floor: Optional[int] = None


@dataclass
class PhoneUser(IdentityUser):
    phone: Optional[str] = None


def _types(registry):
    return [p.type for p in registry]


class TestStandardMetadata:
    def test_full_capabilities(self, service):
        user = service.get_metadata().user_metadata

        assert _types(user.create_properties) == ["username", "password"]
        assert _types(user.update_properties) == [
            "password", "email", "phone", "two_factor", "locked_enabled", "locked",
        ]
        assert user.supports_claims is True
        assert user.supports_create and user.supports_delete

    def test_depends_on_store_capabilities(self, token_provider):
        caps = StoreCapabilities(
            supports_email=False, supports_phone_number=False, supports_lockout=False, supports_claims=False
        )
        service = IdentityManagerService(InMemoryUserStore(token_provider, capabilities=caps))

        user = service.get_metadata().user_metadata

        assert _types(user.update_properties) == ["password", "two_factor"]
        assert user.supports_claims is False

    def test_password_descriptor(self, service):
        password = service.get_metadata().user_metadata.update_properties.find("password")
        assert password.data_type is PropertyDataType.PASSWORD
        assert password.required is True
        assert password.get(IdentityUser(password_hash="secret")) is None

    def test_data_types(self, service):
        update = service.get_metadata().user_metadata.update_properties
        assert update.find("email").data_type is PropertyDataType.EMAIL
        assert update.find("locked").data_type is PropertyDataType.BOOLEAN
        assert update.find("locked").name == "Locked Out"

    def test_custom_fields_are_exposed(self, user_store):
        service = IdentityManagerService(user_store, user_type=StaffUser)

        update = service.get_metadata().user_metadata.update_properties

        assert _types(update)[-2:] == ["first_name", "floor"]
        assert update.find("floor").data_type is PropertyDataType.NUMBER

    def test_custom_fields_can_be_hidden(self, user_store):
        service = IdentityManagerService(user_store, user_type=StaffUser, include_account_properties=False)
        assert "first_name" not in _types(service.get_metadata().user_metadata.update_properties)

    def test_colliding_custom_field_is_rejected(self, user_store):
        service = IdentityManagerService(user_store, user_type=PhoneUser)
        with pytest.raises(DuplicatePropertyError):
            service.get_metadata()

    def test_claim_properties_are_listed(self, user_store):
        service = IdentityManagerService(
            user_store,
            claim_properties=[
                ClaimProperty("name", "Display Name", required=True),
                ClaimProperty("website", data_type=PropertyDataType.URL),
            ],
        )

        user = service.get_metadata().user_metadata

        assert _types(user.update_properties)[-2:] == ["name", "website"]
        assert user.update_properties.find("website").data_type is PropertyDataType.URL
        assert _types(user.get_create_properties()) == ["username", "password", "name"]

    def test_claim_properties_hidden_without_claim_support(self, token_provider):
        store = InMemoryUserStore(token_provider, capabilities=StoreCapabilities(supports_claims=False))
        service = IdentityManagerService(store, claim_properties=[ClaimProperty("department", required=True)])

        user = service.get_metadata().user_metadata

        assert "department" not in _types(user.update_properties)
        assert _types(user.get_create_properties()) == ["username", "password"]

    def test_role_metadata(self, user_store, role_store):
        service = IdentityManagerService(user_store, role_store, role_claim_type="http://schemas/role")

        role = service.get_metadata().role_metadata

        assert role.role_claim_type == "http://schemas/role"
        assert _types(role.create_properties) == ["name"]
        assert _types(role.update_properties) == ["description"]
        assert role.supports_claims is False

    def test_metadata_for_claim(self, service, create_user, user_store):
        subject = create_user()
        user = user_store.find_by_id(subject)
        prop = service.get_metadata_for_claim("nickname", "Nickname")

        assert prop.set(user, "Ally").is_success
        assert prop.get(user_store.find_by_id(subject)) == "Ally"


class TestMetadataSources:
    def test_metadata_is_cached(self, user_store):
        provider = MagicMock(return_value=IdentityManagerMetadata())
        service = IdentityManagerService(user_store, metadata_provider=provider)

        first = service.get_metadata()
        second = service.get_metadata()

        assert first is second
        provider.assert_called_once()

    def test_caching_can_be_disabled(self, user_store):
        provider = MagicMock(return_value=IdentityManagerMetadata())
        service = IdentityManagerService(user_store, metadata_provider=provider, cache_metadata=False)

        service.get_metadata()
        service.get_metadata()

        assert provider.call_count == 2

    def test_static_metadata(self, user_store):
        metadata = IdentityManagerMetadata()
        service = IdentityManagerService(user_store, metadata=metadata)
        assert service.get_metadata() is metadata

    def test_create_stops_at_first_failing_property(self, user_store):
        metadata = IdentityManagerMetadata(
            user_metadata=UserMetadata(
                create_properties=[
                    PropertyMetadata.from_property(StaffUser, "username", required=True),
                    PropertyMetadata.from_property(StaffUser, "floor"),
                    PropertyMetadata.from_property(StaffUser, "first_name"),
                ],
            ),
            role_metadata=RoleMetadata(),
        )
        service = IdentityManagerService(user_store, metadata=metadata, user_type=StaffUser)

        result = service.create_user([
            PropertyValue("username", "alice"),
            PropertyValue("password", "P@ss1"),
            PropertyValue("floor", "ground"),
            PropertyValue("first_name", "Alice"),
        ])

        assert result.errors == ("Invalid value for Floor",)
        assert user_store.users() == []

    def test_custom_fields_round_trip_through_create_and_update(self, user_store):
        metadata = IdentityManagerMetadata(
            user_metadata=UserMetadata(
                create_properties=[PropertyMetadata.from_property(StaffUser, "floor")],
                update_properties=PropertyMetadata.from_type(StaffUser, *USER_BASE_FIELDS),
            ),
        )
        service = IdentityManagerService(user_store, metadata=metadata, user_type=StaffUser)

        subject = service.create_user([
            PropertyValue("username", "alice"),
            PropertyValue("password", "P@ss1"),
            PropertyValue("floor", "4"),
        ]).result.subject
        service.set_user_property(subject, "first_name", "Alice")

        stored = user_store.find_by_id(subject)
        assert isinstance(stored, StaffUser)
        assert stored.floor == 4
        assert stored.first_name == "Alice"
