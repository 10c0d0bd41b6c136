"""Result wrapper and transfer objects returned by the identity manager.

Every facade operation returns an ``IdentityManagerResult``: either a
success carrying a payload, or a failure carrying one or more
human-readable error strings.

Usage:
    result = service.get_user(subject)
    if result.is_success:
        detail = result.result
    else:
        print(result.errors)
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Generic, List, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class IdentityManagerResult(Generic[T]):
    """Uniform outcome of an identity manager operation.

    Attributes:
        result: Payload on success (may legitimately be None)
        errors: Error messages on failure (empty on success)
    """
    result: Optional[T] = None
    errors: tuple[str, ...] = ()

    @property
    def is_success(self) -> bool:
        return not self.errors

    @classmethod
    def success(cls, result: Optional[T] = None) -> "IdentityManagerResult[T]":
        return cls(result=result)

    @classmethod
    def failure(cls, *errors: str) -> "IdentityManagerResult[T]":
        """Build a failed result.

        Raises:
            ValueError: If no error message is provided
        """
        messages = tuple(str(err) for err in errors if err)
        if not messages:
            raise ValueError("A failed result requires at least one error message")
        return cls(errors=messages)


@dataclass(frozen=True)
class PropertyValue:
    """Wire representation of a single property edit."""
    type: str
    value: Optional[str] = None


@dataclass(frozen=True)
class ClaimValue:
    type: str
    value: str


@dataclass(frozen=True)
class CreateResult:
    subject: str


@dataclass
class QueryResult(Generic[T]):
    """One page of a filtered, name-ordered collection.

    ``start`` and ``count`` echo the normalised request; ``total`` is the
    number of matches before paging.
    """
    start: int
    count: int
    total: int
    filter: Optional[str] = None
    items: List[T] = field(default_factory=list)


@dataclass
class UserSummary:
    subject: str
    username: str
    name: Optional[str] = None


@dataclass
class UserDetail(UserSummary):
    properties: List[PropertyValue] = field(default_factory=list)
    claims: Optional[List[ClaimValue]] = None


@dataclass
class RoleSummary:
    subject: str
    name: str
    description: Optional[str] = None


@dataclass
class RoleDetail(RoleSummary):
    properties: List[PropertyValue] = field(default_factory=list)
