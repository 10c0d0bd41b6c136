import pytest

from identity_manager.config import settings

ENV_VARS = [
    "DEMO_MODE",
    "IDM_STORE_BACKEND",
    "IDM_ROLES_ENABLED",
    "IDM_INCLUDE_ACCOUNT_PROPERTIES",
    "IDM_ROLE_CLAIM_TYPE",
    "IDM_QUERY_CASE_SENSITIVE",
    "IDM_METADATA_FILE",
    "IDM_PASSWORD_MIN_LENGTH",
    "IDM_TOKEN_SECRET",
    "IDM_TOKEN_LIFESPAN_SECONDS",
    "KEYCLOAK_URL",
    "KEYCLOAK_REALM",
    "KEYCLOAK_SERVICE_REALM",
    "KEYCLOAK_SERVICE_CLIENT_ID",
    "KEYCLOAK_SERVICE_CLIENT_SECRET",
    "AUDIT_ENABLED",
    "AUDIT_LOG_DIR",
    "AUDIT_LOG_SIGNING_KEY",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr(settings, "SECRETS_DIR", tmp_path)
    return tmp_path


def test_demo_mode_defaults(clean_env, monkeypatch):
    monkeypatch.setenv("DEMO_MODE", "true")

    cfg = settings.load_settings()

    assert cfg.demo_mode is True
    assert cfg.store_backend == "memory"
    assert cfg.roles_enabled is True
    assert cfg.include_account_properties is True
    assert cfg.role_claim_type == "role"
    assert cfg.query_case_sensitive is False
    assert cfg.password_min_length == 4
    assert cfg.token_lifespan_seconds == 86400
    assert cfg.token_secret  # generated
    assert cfg.audit_enabled is True
    assert cfg.audit_log_dir == ".runtime/audit"


def test_token_secret_required_outside_demo_mode(clean_env):
    with pytest.raises(RuntimeError, match="IDM_TOKEN_SECRET"):
        settings.load_settings()


def test_token_secret_from_run_secrets(clean_env, monkeypatch):
    (clean_env / "idm_token_secret").write_text("from-file\n")
    monkeypatch.setenv("IDM_TOKEN_SECRET", "from-env")

    assert settings.load_settings().token_secret == "from-file"


def test_token_secret_from_environment(clean_env, monkeypatch):
    monkeypatch.setenv("IDM_TOKEN_SECRET", "from-env")
    assert settings.load_settings().token_secret == "from-env"


def test_flags_and_numbers(clean_env, monkeypatch):
    monkeypatch.setenv("IDM_TOKEN_SECRET", "x")
    monkeypatch.setenv("IDM_ROLES_ENABLED", "false")
    monkeypatch.setenv("IDM_QUERY_CASE_SENSITIVE", "TRUE")
    monkeypatch.setenv("IDM_PASSWORD_MIN_LENGTH", "12")
    monkeypatch.setenv("IDM_ROLE_CLAIM_TYPE", "groups")
    monkeypatch.setenv("AUDIT_ENABLED", "false")
    monkeypatch.setenv("AUDIT_LOG_DIR", "/var/log/idm")

    cfg = settings.load_settings()

    assert cfg.roles_enabled is False
    assert cfg.query_case_sensitive is True
    assert cfg.password_min_length == 12
    assert cfg.role_claim_type == "groups"
    assert cfg.audit_enabled is False
    assert cfg.audit_log_dir == "/var/log/idm"


def test_malformed_number(clean_env, monkeypatch):
    monkeypatch.setenv("IDM_TOKEN_SECRET", "x")
    monkeypatch.setenv("IDM_PASSWORD_MIN_LENGTH", "many")
    with pytest.raises(RuntimeError, match="IDM_PASSWORD_MIN_LENGTH"):
        settings.load_settings()


def test_unknown_backend(clean_env, monkeypatch):
    monkeypatch.setenv("IDM_TOKEN_SECRET", "x")
    monkeypatch.setenv("IDM_STORE_BACKEND", "ldap")
    with pytest.raises(RuntimeError, match="IDM_STORE_BACKEND"):
        settings.load_settings()


def test_keycloak_backend_requires_client_secret(clean_env, monkeypatch):
    monkeypatch.setenv("IDM_TOKEN_SECRET", "x")
    monkeypatch.setenv("IDM_STORE_BACKEND", "keycloak")
    monkeypatch.setenv("KEYCLOAK_URL", "https://localhost")
    with pytest.raises(RuntimeError, match="KEYCLOAK_SERVICE_CLIENT_SECRET"):
        settings.load_settings()


def test_keycloak_backend_requires_url(clean_env, monkeypatch):
    monkeypatch.setenv("IDM_TOKEN_SECRET", "x")
    monkeypatch.setenv("IDM_STORE_BACKEND", "keycloak")
    with pytest.raises(RuntimeError, match="KEYCLOAK_URL"):
        settings.load_settings()


def test_keycloak_backend_demo_defaults(clean_env, monkeypatch):
    monkeypatch.setenv("DEMO_MODE", "true")
    monkeypatch.setenv("IDM_STORE_BACKEND", "keycloak")
    monkeypatch.setenv("KEYCLOAK_REALM", "corp")

    cfg = settings.load_settings()

    assert cfg.keycloak_url == "http://127.0.0.1:8080"
    assert cfg.keycloak_service_realm == "corp"
    assert cfg.keycloak_service_client_id == "automation-cli"
    assert cfg.keycloak_service_client_secret == "demo-service-secret"


def test_get_settings_is_memoised(clean_env, monkeypatch):
    monkeypatch.setenv("DEMO_MODE", "true")
    monkeypatch.setattr(settings, "_settings", None)

    first = settings.get_settings()

    assert settings.get_settings() is first
    assert settings.get_settings(reload=True) is not first
