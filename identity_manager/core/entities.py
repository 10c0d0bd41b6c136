"""User and role entities managed through an account store.

Applications add profile fields by subclassing:

    @dataclass
    class StaffUser(IdentityUser):
        first_name: Optional[str] = None
        department: Optional[str] = None

Extra public str/int/bool fields are picked up by
``PropertyMetadata.from_type`` and exposed as editable properties.
"""
from __future__ import annotations
import uuid
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import List, Optional


def _new_stamp() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class Claim:
    type: str
    value: str


@dataclass
class IdentityUser:
    username: str = ""
    id: str = field(default_factory=_new_stamp)
    email: Optional[str] = None
    email_confirmed: bool = False
    phone_number: Optional[str] = None
    phone_number_confirmed: bool = False
    two_factor_enabled: bool = False
    lockout_enabled: bool = False
    lockout_end: Optional[datetime] = None
    password_hash: Optional[str] = None
    security_stamp: str = field(default_factory=_new_stamp)
    concurrency_stamp: str = field(default_factory=_new_stamp)
    claims: List[Claim] = field(default_factory=list)


@dataclass
class IdentityRole:
    name: str = ""
    id: str = field(default_factory=_new_stamp)
    description: Optional[str] = None
    concurrency_stamp: str = field(default_factory=_new_stamp)


# Fields owned by the identity system itself; never exposed as custom fields.
USER_BASE_FIELDS = frozenset(f.name for f in fields(IdentityUser))
ROLE_BASE_FIELDS = frozenset(f.name for f in fields(IdentityRole)) - {"description"}
