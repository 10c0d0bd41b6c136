"""Identity manager exceptions.

Recoverable outcomes (rejected values, unknown subjects, store failures) are
reported through ``IdentityManagerResult``. The exceptions below signal
setup defects or malformed caller input and abort the current call.
"""


class IdentityManagerError(Exception):
    """Base exception for all identity manager operations."""
    pass


class InvalidPropertyTypeError(IdentityManagerError):
    """A property type has no descriptor in the relevant registry.

    Attributes:
        property_type: The unknown property type
    """

    def __init__(self, property_type: str):
        self.property_type = property_type
        super().__init__(f"Invalid property type {property_type}")


class DuplicatePropertyError(IdentityManagerError):
    """Two descriptors with the same type were registered together."""

    def __init__(self, property_type: str):
        self.property_type = property_type
        super().__init__(f"Duplicate property type {property_type}")


class RolesNotSupportedError(IdentityManagerError):
    """A role operation was invoked but no role store is configured."""

    def __init__(self, message: str = "Roles Not Supported"):
        super().__init__(message)


class MissingRequiredPropertyError(IdentityManagerError, ValueError):
    """Create input lacks exactly one value for a mandatory property."""

    def __init__(self, property_type: str, found: int):
        self.property_type = property_type
        self.found = found
        super().__init__(
            f"Expected exactly one '{property_type}' property, got {found}"
        )


class UnsupportedStoreError(IdentityManagerError):
    """The account store cannot back the identity manager."""
    pass


class MetadataFileError(IdentityManagerError):
    """Metadata definition file is missing or malformed."""
    pass
