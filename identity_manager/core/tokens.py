"""Purpose-bound security tokens for password reset and confirmation flows.

A token is ``base64url(issued_at:signature)`` where the signature is
HMAC-SHA256 over the purpose, the user id, the user's security stamp, an
optional modifier (e.g. the new phone number) and the issue time. Rotating
the security stamp invalidates every outstanding token for that user.
"""
from __future__ import annotations
import base64
import hashlib
import hmac
import time
from typing import Any, Optional

PASSWORD_RESET = "ResetPassword"
EMAIL_CONFIRMATION = "EmailConfirmation"
CHANGE_PHONE_NUMBER = "ChangePhoneNumber"

DEFAULT_LIFESPAN_SECONDS = 24 * 60 * 60


class TokenProvider:
    """Issue and validate HMAC-signed tokens.

    Usage:
        provider = TokenProvider(b"signing-key")
        token = provider.generate(PASSWORD_RESET, user)
        assert provider.validate(PASSWORD_RESET, user, token)
    """

    def __init__(self, secret: bytes | str, lifespan_seconds: int = DEFAULT_LIFESPAN_SECONDS):
        if isinstance(secret, str):
            secret = secret.encode("utf-8")
        if not secret:
            raise ValueError("Token signing secret must not be empty")
        self._secret = secret
        self.lifespan_seconds = lifespan_seconds

    def _sign(self, purpose: str, user: Any, modifier: str, issued_at: int) -> str:
        payload = "|".join([
            purpose,
            str(getattr(user, "id", "") or ""),
            str(getattr(user, "security_stamp", "") or ""),
            modifier,
            str(issued_at),
        ])
        return hmac.new(self._secret, payload.encode("utf-8"), hashlib.sha256).hexdigest()

    def generate(self, purpose: str, user: Any, modifier: Optional[str] = None) -> str:
        issued_at = int(time.time())
        signature = self._sign(purpose, user, modifier or "", issued_at)
        raw = f"{issued_at}:{signature}".encode("ascii")
        return base64.urlsafe_b64encode(raw).decode("ascii")

    def validate(self, purpose: str, user: Any, token: Optional[str], modifier: Optional[str] = None) -> bool:
        if not token:
            return False
        try:
            raw = base64.urlsafe_b64decode(token.encode("ascii")).decode("ascii")
            issued_text, signature = raw.split(":", 1)
            issued_at = int(issued_text)
        except (ValueError, UnicodeError):
            return False

        if time.time() - issued_at > self.lifespan_seconds:
            return False

        expected = self._sign(purpose, user, modifier or "", issued_at)
        return hmac.compare_digest(expected, signature)
