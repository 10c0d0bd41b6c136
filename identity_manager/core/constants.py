"""Well-known property and claim type names."""


class ClaimTypes:
    SUBJECT = "sub"
    USERNAME = "username"
    PASSWORD = "password"
    NAME = "name"
    EMAIL = "email"
    PHONE = "phone"
    ROLE = "role"


TWO_FACTOR = "two_factor"
LOCKOUT_ENABLED = "locked_enabled"
LOCKED = "locked"

INVALID_SUBJECT = "Invalid subject"
