"""Property descriptors and entity metadata.

A ``PropertyMetadata`` binds a property type (the key an administrative
client sends, e.g. ``"email"``) to a display name, a data type and a pair of
accessors over an entity. Values always cross this boundary as strings;
typed accessors are wrapped so conversion happens here and not in the
facade.

Descriptors are grouped in a ``PropertyRegistry`` which rejects duplicate
types and acts as the dispatcher: ``try_get`` / ``try_set`` look a type up
and invoke its accessor.

Usage:
    email = PropertyMetadata.from_functions(
        "email", get_email, set_email, "Email", PropertyDataType.EMAIL
    )
    registry = PropertyRegistry([email, *PropertyMetadata.from_type(StaffUser)])
    found, result = registry.try_set(user, "email", "alice@example.com")
"""
from __future__ import annotations
import dataclasses
import typing
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Iterator, Optional, Sequence

from .exceptions import DuplicatePropertyError
from .results import IdentityManagerResult

Getter = Callable[[Any], Optional[str]]
Setter = Callable[[Any, Optional[str]], IdentityManagerResult]

SUPPORTED_VALUE_TYPES = (str, bool, int)


class PropertyDataType(str, Enum):
    STRING = "String"
    NUMBER = "Number"
    BOOLEAN = "Boolean"
    EMAIL = "Email"
    PASSWORD = "Password"
    URL = "Url"


def display_name_for(attribute: str) -> str:
    """Derive a display name from an attribute name (``first_name`` -> ``First Name``)."""
    return " ".join(part.capitalize() for part in attribute.split("_") if part)


def render_value(value: Any) -> Optional[str]:
    """Render a typed value as the string sent to clients."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def parse_value(raw: Optional[str], value_type: type, optional: bool = True) -> tuple[bool, Any]:
    """Parse a client string into ``value_type``.

    Returns:
        Tuple of (ok, parsed value)
    """
    if value_type is str:
        return True, raw
    text = (raw or "").strip()
    if not text:
        return optional, None
    if value_type is bool:
        lowered = text.lower()
        if lowered == "true":
            return True, True
        if lowered == "false":
            return True, False
        return False, None
    if value_type is int:
        try:
            return True, int(text)
        except ValueError:
            return False, None
    return False, None


def _unwrap_optional(annotation: Any) -> tuple[Any, bool]:
    if typing.get_origin(annotation) is typing.Union:
        args = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        if len(args) == 1:
            return args[0], True
    return annotation, False


def _data_type_for(attribute: str, value_type: type) -> PropertyDataType:
    lowered = attribute.lower()
    if "password" in lowered:
        return PropertyDataType.PASSWORD
    if "email" in lowered:
        return PropertyDataType.EMAIL
    if value_type is bool:
        return PropertyDataType.BOOLEAN
    if value_type is int:
        return PropertyDataType.NUMBER
    return PropertyDataType.STRING


def _as_result(outcome: Any) -> IdentityManagerResult:
    if outcome is None:
        return IdentityManagerResult.success()
    return outcome


@dataclass(frozen=True)
class PropertyMetadata:
    """Descriptor for one editable attribute of an entity.

    Attributes:
        type: Unique key of the property within its registry
        name: Display name
        data_type: Rendering hint for clients
        required: Whether a value must be supplied on create
        getter: Returns the current value as a string (or None)
        setter: Applies a string value, returning a result
    """
    type: str
    name: str
    data_type: PropertyDataType
    getter: Getter = field(repr=False, compare=False)
    setter: Setter = field(repr=False, compare=False)
    required: bool = False

    def get(self, entity: Any) -> Optional[str]:
        return self.getter(entity)

    def set(self, entity: Any, value: Optional[str]) -> IdentityManagerResult:
        return _as_result(self.setter(entity, value))

    @classmethod
    def from_functions(
        cls,
        type: str,
        getter: Callable[[Any], Any],
        setter: Callable[[Any, Any], Optional[IdentityManagerResult]],
        name: Optional[str] = None,
        data_type: PropertyDataType = PropertyDataType.STRING,
        required: bool = False,
        value_type: type = str,
    ) -> "PropertyMetadata":
        """Bind a property type to arbitrary accessor functions.

        Args:
            type: Property type key
            getter: Callable returning the typed value for an entity
            setter: Callable applying a typed value; may return None for success
            name: Display name (defaults to the type)
            data_type: Rendering hint
            required: Required on create
            value_type: str, bool or int; drives string conversion

        Returns:
            Property descriptor
        """
        if value_type not in SUPPORTED_VALUE_TYPES:
            raise TypeError(f"Unsupported value type {value_type!r} for property {type}")
        display = name or type

        def _get(entity: Any) -> Optional[str]:
            return render_value(getter(entity))

        def _set(entity: Any, raw: Optional[str]) -> IdentityManagerResult:
            ok, parsed = parse_value(raw, value_type)
            if not ok:
                return IdentityManagerResult.failure(f"Invalid value for {display}")
            return _as_result(setter(entity, parsed))

        return cls(
            type=type,
            name=display,
            data_type=data_type,
            getter=_get,
            setter=_set,
            required=required,
        )

    @classmethod
    def from_property(
        cls,
        entity_type: type,
        attribute: str,
        type: Optional[str] = None,
        name: Optional[str] = None,
        required: bool = False,
    ) -> "PropertyMetadata":
        """Expose a plain dataclass attribute as a property.

        The value type is read from the attribute's annotation.

        Raises:
            AttributeError: If ``entity_type`` declares no such attribute
            TypeError: If the attribute type is not str, bool or int
        """
        hints = typing.get_type_hints(entity_type)
        if attribute not in hints:
            raise AttributeError(f"{entity_type.__name__} has no attribute '{attribute}'")
        value_type, optional = _unwrap_optional(hints[attribute])
        if value_type not in SUPPORTED_VALUE_TYPES:
            raise TypeError(f"Attribute '{attribute}' has unsupported type {value_type!r}")
        display = name or display_name_for(attribute)

        def _get(entity: Any) -> Optional[str]:
            return render_value(getattr(entity, attribute))

        def _set(entity: Any, raw: Optional[str]) -> IdentityManagerResult:
            ok, parsed = parse_value(raw, value_type, optional)
            if not ok:
                return IdentityManagerResult.failure(f"Invalid value for {display}")
            setattr(entity, attribute, parsed)
            return IdentityManagerResult.success()

        return cls(
            type=type or attribute,
            name=display,
            data_type=_data_type_for(attribute, value_type),
            getter=_get,
            setter=_set,
            required=required,
        )

    @classmethod
    def from_type(cls, entity_type: type, *exclude: str) -> list["PropertyMetadata"]:
        """Derive descriptors for every public str/int/bool field of a dataclass."""
        excluded = set(exclude)
        hints = typing.get_type_hints(entity_type)
        descriptors = []
        for item in dataclasses.fields(entity_type):
            if item.name.startswith("_") or item.name in excluded:
                continue
            value_type, _ = _unwrap_optional(hints.get(item.name))
            if value_type not in SUPPORTED_VALUE_TYPES:
                continue
            descriptors.append(cls.from_property(entity_type, item.name))
        return descriptors


class PropertyRegistry(Sequence[PropertyMetadata]):
    """Ordered, immutable collection of property descriptors.

    Raises:
        DuplicatePropertyError: If two descriptors share a type
    """

    def __init__(self, descriptors: Iterable[PropertyMetadata] = ()):
        items = tuple(descriptors)
        seen: set[str] = set()
        for descriptor in items:
            if descriptor.type in seen:
                raise DuplicatePropertyError(descriptor.type)
            seen.add(descriptor.type)
        self._items = items

    def __getitem__(self, index):
        return self._items[index]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[PropertyMetadata]:
        return iter(self._items)

    def __repr__(self) -> str:
        return f"PropertyRegistry({[d.type for d in self._items]!r})"

    @property
    def types(self) -> list[str]:
        return [d.type for d in self._items]

    def find(self, property_type: str) -> Optional[PropertyMetadata]:
        return next((d for d in self._items if d.type == property_type), None)

    def try_get(self, entity: Any, property_type: str) -> tuple[bool, Optional[str]]:
        descriptor = self.find(property_type)
        if descriptor is None:
            return False, None
        return True, descriptor.get(entity)

    def try_set(
        self, entity: Any, property_type: str, value: Optional[str]
    ) -> tuple[bool, Optional[IdentityManagerResult]]:
        descriptor = self.find(property_type)
        if descriptor is None:
            return False, None
        return True, descriptor.set(entity, value)


def _as_registry(value: Iterable[PropertyMetadata]) -> PropertyRegistry:
    if isinstance(value, PropertyRegistry):
        return value
    return PropertyRegistry(value)


@dataclass(frozen=True)
class EntityMetadata:
    create_properties: PropertyRegistry = field(default_factory=PropertyRegistry)
    update_properties: PropertyRegistry = field(default_factory=PropertyRegistry)
    supports_create: bool = True
    supports_delete: bool = True
    supports_claims: bool = False

    def __post_init__(self):
        object.__setattr__(self, "create_properties", _as_registry(self.create_properties))
        object.__setattr__(self, "update_properties", _as_registry(self.update_properties))

    def get_create_properties(self) -> PropertyRegistry:
        """Create properties plus every required update property not already listed."""
        existing = set(self.create_properties.types)
        extra = [p for p in self.update_properties if p.required and p.type not in existing]
        return PropertyRegistry([*self.create_properties, *extra])


@dataclass(frozen=True)
class UserMetadata(EntityMetadata):
    pass


@dataclass(frozen=True)
class RoleMetadata(EntityMetadata):
    role_claim_type: str = "role"


@dataclass(frozen=True)
class ClaimProperty:
    """Declares a user property stored as a claim of the same type."""
    type: str
    name: Optional[str] = None
    data_type: PropertyDataType = PropertyDataType.STRING
    required: bool = False


@dataclass(frozen=True)
class IdentityManagerMetadata:
    user_metadata: UserMetadata = field(default_factory=UserMetadata)
    role_metadata: RoleMetadata = field(default_factory=RoleMetadata)
