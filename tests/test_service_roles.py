"""Facade tests for role administration."""
from unittest.mock import MagicMock

import pytest

from identity_manager.core.entities import IdentityRole
from identity_manager.core.exceptions import (
    InvalidPropertyTypeError,
    MissingRequiredPropertyError,
    RolesNotSupportedError,
)
from identity_manager.core.results import PropertyValue
from identity_manager.core.service import IdentityManagerService
from identity_manager.stores.base import StoreResult


def _create_role(service, name, description=None):
    values = [PropertyValue("name", name)]
    if description is not None:
        values.append(PropertyValue("description", description))
    result = service.create_role(values)
    assert result.is_success, result.errors
    return result.result.subject


class TestRoleCrud:
    def test_create_and_get(self, service):
        subject = _create_role(service, "analyst", "Read-only access")

        detail = service.get_role(subject).result

        assert detail.name == "analyst"
        assert detail.description == "Read-only access"
        assert [(p.type, p.value) for p in detail.properties] == [("description", "Read-only access")]

    def test_duplicate_name(self, service, role_store):
        _create_role(service, "analyst")

        result = service.create_role([PropertyValue("name", "Analyst")])

        assert result.errors == ("Role name 'Analyst' is already taken.",)
        assert len(role_store.roles()) == 1

    def test_name_is_required(self, service):
        with pytest.raises(MissingRequiredPropertyError):
            service.create_role([PropertyValue("description", "no name")])

    def test_unknown_create_property_raises(self, service):
        with pytest.raises(InvalidPropertyTypeError):
            service.create_role([PropertyValue("name", "analyst"), PropertyValue("color", "blue")])

    def test_query_roles(self, service):
        for name in ["manager", "analyst", "Auditor", "iam-operator"]:
            _create_role(service, name)

        page = service.query_roles("a", 1, 2).result

        assert page.total == 4
        assert [r.name for r in page.items] == ["Auditor", "iam-operator"]

    def test_set_role_property(self, service, role_store):
        subject = _create_role(service, "analyst")

        assert service.set_role_property(subject, "description", "Reports only").is_success
        assert role_store.find_by_id(subject).description == "Reports only"

    def test_unknown_role_property_raises(self, service):
        subject = _create_role(service, "analyst")
        with pytest.raises(InvalidPropertyTypeError):
            service.set_role_property(subject, "color", "blue")

    def test_unknown_subject_asymmetry(self, service):
        assert service.delete_role("nope").errors == ("Invalid subject",)
        assert service.set_role_property("nope", "description", "x").errors == ("Invalid subject",)
        fetched = service.get_role("nope")
        assert fetched.is_success and fetched.result is None

    def test_delete_role(self, service, role_store):
        subject = _create_role(service, "analyst")
        assert service.delete_role(subject).is_success
        assert role_store.roles() == []

    def test_role_validation_hook(self, user_store, role_store):
        class StrictService(IdentityManagerService):
            def validate_role_property(self, type, value):
                return ["Descriptions are frozen"]

        service = StrictService(user_store, role_store)
        subject = _create_role(service, "analyst", "initial")

        assert service.set_role_property(subject, "description", "changed").errors == ("Descriptions are frozen",)
        assert role_store.find_by_id(subject).description == "initial"


def test_set_role_property_reports_store_failure(user_store):
    role = IdentityRole(name="analyst")
    role_store = MagicMock()
    role_store.find_by_id.return_value = role
    role_store.update.return_value = StoreResult.failed("Role was modified concurrently")
    service = IdentityManagerService(user_store, role_store)

    result = service.set_role_property(role.id, "description", "x")

    assert result.errors == ("Role was modified concurrently",)


@pytest.mark.parametrize(
    "call",
    [
        lambda s: s.query_roles(),
        lambda s: s.create_role([PropertyValue("name", "analyst")]),
        lambda s: s.delete_role("id"),
        lambda s: s.get_role("id"),
        lambda s: s.set_role_property("id", "description", "x"),
    ],
)
def test_role_operations_require_role_store(user_store, call):
    service = IdentityManagerService(user_store)
    with pytest.raises(RolesNotSupportedError, match="Roles Not Supported"):
        call(service)
