"""Settings loader with environment variable and Docker secrets integration."""
from __future__ import annotations
import os
import secrets
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

SECRETS_DIR = Path("/run/secrets")
STORE_BACKENDS = ("memory", "keycloak")


def _load_secret_from_file(secret_name: str, env_var: str | None = None) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).

    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)

    Args:
        secret_name: Name of the secret file in /run/secrets
        env_var: Optional environment variable name to check as fallback

    Returns:
        Secret value or None if not found
    """
    secret_file = SECRETS_DIR / secret_name

    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
            if secret_value:
                print(f"[settings] ✓ Loaded {secret_name} from /run/secrets")
                return secret_value
        except OSError as e:
            print(f"[settings] ✗ Failed to read /run/secrets/{secret_name}: {e}")

    if env_var:
        secret_value = os.getenv(env_var)
        if secret_value:
            return secret_value

    return None


def _env_flag(var_name: str, default: bool) -> bool:
    return os.environ.get(var_name, str(default)).strip().lower() == "true"


def _env_int(var_name: str, default: int) -> int:
    raw = os.environ.get(var_name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"Environment variable {var_name} must be an integer, got {raw!r}.")


@dataclass
class AppConfig:
    """Identity manager configuration container."""
    # Mode
    demo_mode: bool

    # Facade
    store_backend: str = "memory"
    roles_enabled: bool = True
    include_account_properties: bool = True
    role_claim_type: str = "role"
    query_case_sensitive: bool = False
    metadata_file: str = ""

    # Accounts
    password_min_length: int = 4
    token_secret: str = ""
    token_lifespan_seconds: int = 24 * 60 * 60

    # Keycloak back-end
    keycloak_url: str = ""
    keycloak_realm: str = "demo"
    keycloak_service_realm: str = "demo"
    keycloak_service_client_id: str = "automation-cli"
    keycloak_service_client_secret: str = ""

    # Audit
    audit_enabled: bool = True
    audit_log_dir: str = ".runtime/audit"
    audit_log_signing_key: str = ""


def load_settings() -> AppConfig:
    """Load identity manager settings from environment and /run/secrets.

    Raises:
        RuntimeError: If a value required outside demo mode is missing or malformed
    """
    demo_mode = _env_flag("DEMO_MODE", False)

    store_backend = os.environ.get("IDM_STORE_BACKEND", "memory").strip().lower()
    if store_backend not in STORE_BACKENDS:
        raise RuntimeError(
            f"IDM_STORE_BACKEND must be one of {', '.join(STORE_BACKENDS)}, got {store_backend!r}."
        )

    # Token signing key
    token_secret = _load_secret_from_file("idm_token_secret", "IDM_TOKEN_SECRET")
    if not token_secret:
        if not demo_mode:
            raise RuntimeError("IDM_TOKEN_SECRET not found in /run/secrets or environment")
        token_secret = secrets.token_urlsafe(48)
        print("[demo-mode] Generated temporary IDM_TOKEN_SECRET")

    # Keycloak
    keycloak_url = os.environ.get("KEYCLOAK_URL", "http://127.0.0.1:8080" if demo_mode else "")
    keycloak_realm = os.environ.get("KEYCLOAK_REALM", "demo")
    keycloak_service_realm = os.environ.get("KEYCLOAK_SERVICE_REALM", keycloak_realm)
    keycloak_service_client_id = os.environ.get("KEYCLOAK_SERVICE_CLIENT_ID", "automation-cli")
    keycloak_service_client_secret = _load_secret_from_file(
        "keycloak_service_client_secret",
        "KEYCLOAK_SERVICE_CLIENT_SECRET",
    ) or ""

    if store_backend == "keycloak":
        if not keycloak_url:
            raise RuntimeError("KEYCLOAK_URL is required when IDM_STORE_BACKEND=keycloak.")
        if not keycloak_service_client_secret:
            if not demo_mode:
                raise RuntimeError(
                    "KEYCLOAK_SERVICE_CLIENT_SECRET not found. "
                    "Set DEMO_MODE=true or provide secret via Docker secrets or environment variable."
                )
            keycloak_service_client_secret = "demo-service-secret"
            print("[demo-mode] Using default for KEYCLOAK_SERVICE_CLIENT_SECRET")

    # Audit log signing key
    audit_log_signing_key = _load_secret_from_file("audit_log_signing_key", "AUDIT_LOG_SIGNING_KEY") or ""
    if audit_log_signing_key:
        os.environ["AUDIT_LOG_SIGNING_KEY"] = audit_log_signing_key

    config = AppConfig(
        demo_mode=demo_mode,
        store_backend=store_backend,
        roles_enabled=_env_flag("IDM_ROLES_ENABLED", True),
        include_account_properties=_env_flag("IDM_INCLUDE_ACCOUNT_PROPERTIES", True),
        role_claim_type=os.environ.get("IDM_ROLE_CLAIM_TYPE", "role").strip() or "role",
        query_case_sensitive=_env_flag("IDM_QUERY_CASE_SENSITIVE", False),
        metadata_file=os.environ.get("IDM_METADATA_FILE", "").strip(),
        password_min_length=_env_int("IDM_PASSWORD_MIN_LENGTH", 4),
        token_secret=token_secret,
        token_lifespan_seconds=_env_int("IDM_TOKEN_LIFESPAN_SECONDS", 24 * 60 * 60),
        keycloak_url=keycloak_url,
        keycloak_realm=keycloak_realm,
        keycloak_service_realm=keycloak_service_realm,
        keycloak_service_client_id=keycloak_service_client_id,
        keycloak_service_client_secret=keycloak_service_client_secret,
        audit_enabled=_env_flag("AUDIT_ENABLED", True),
        audit_log_dir=os.environ.get("AUDIT_LOG_DIR", ".runtime/audit").strip() or ".runtime/audit",
        audit_log_signing_key=audit_log_signing_key,
    )

    mode_label = "DEMO" if demo_mode else "PRODUCTION"
    print(f"[settings] Mode={mode_label}; backend={store_backend}; realm={keycloak_realm}")
    return config


_settings: Optional[AppConfig] = None


def get_settings(reload: bool = False) -> AppConfig:
    """Return the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None or reload:
        _settings = load_settings()
    return _settings
