"""Input validation helpers used by account stores."""
from __future__ import annotations

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 64
EMAIL_MAX_LENGTH = 254
USERNAME_ALLOWED_SPECIALS = {".", "-", "_", "@", "+"}


def validate_username(username: str) -> str:
    """Validate a username without rewriting it.

    Args:
        username: Username as submitted

    Returns:
        The username, unchanged

    Raises:
        ValueError: If username is invalid
    """
    if not username or not username.strip():
        raise ValueError("Username is required")
    if len(username) < USERNAME_MIN_LENGTH:
        raise ValueError(f"Username must be at least {USERNAME_MIN_LENGTH} characters")
    if len(username) > USERNAME_MAX_LENGTH:
        raise ValueError(f"Username must not exceed {USERNAME_MAX_LENGTH} characters")
    if any(not (char.isalnum() or char in USERNAME_ALLOWED_SPECIALS) for char in username):
        raise ValueError(f"Username '{username}' is invalid, can only contain letters, digits or .-_@+")
    return username


def validate_email(email: str) -> str:
    """Validate email address.

    Args:
        email: Email address to validate

    Returns:
        Normalized email address

    Raises:
        ValueError: If email is invalid
    """
    email = email.strip().lower()
    if not email or "@" not in email:
        raise ValueError(f"Email '{email}' is invalid")

    local, domain = email.rsplit("@", 1)
    if not local or not domain or "." not in domain:
        raise ValueError(f"Email '{email}' is invalid")
    if len(email) > EMAIL_MAX_LENGTH:
        raise ValueError("Email exceeds maximum length")

    return email


def validate_password(password: str, min_length: int = 4) -> list[str]:
    """Check a password against the store's policy.

    Returns:
        List of policy violations (empty when the password is acceptable)
    """
    errors = []
    if not password:
        return ["Password is required"]
    if len(password) < min_length:
        errors.append(f"Passwords must be at least {min_length} characters")
    if password.strip() != password:
        errors.append("Passwords must not start or end with whitespace")
    return errors


def validate_role_name(name: str) -> str:
    """Validate a role name.

    Raises:
        ValueError: If the name is blank or contains unsafe characters
    """
    if not name or not name.strip():
        raise ValueError("Role name is required")
    if len(name) > 128:
        raise ValueError("Role name exceeds maximum length")
    if any(char in name for char in "<>\"'`;&|$/"):
        raise ValueError(f"Role name '{name}' contains invalid characters")
    return name
