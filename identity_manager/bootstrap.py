"""Wire stores, metadata and audit into an ``IdentityManagerService``.

Usage:
    from identity_manager.bootstrap import create_service

    service = create_service()              # settings from the environment
    service = create_service(AppConfig(...))  # explicit configuration
"""
from __future__ import annotations
import logging
from typing import Optional

from identity_manager import audit
from identity_manager.config.metadata_file import load_claim_properties
from identity_manager.config.settings import AppConfig, get_settings
from identity_manager.core.entities import IdentityRole, IdentityUser
from identity_manager.core.service import IdentityManagerService
from identity_manager.core.tokens import TokenProvider
from identity_manager.stores.memory import InMemoryRoleStore, InMemoryUserStore

logger = logging.getLogger(__name__)


def _keycloak_stores(config: AppConfig, tokens: TokenProvider):
    from identity_manager.stores.keycloak import (
        KeycloakClient,
        KeycloakRoleStore,
        KeycloakUser,
        KeycloakUserStore,
    )

    client = KeycloakClient(config.keycloak_url)
    client.authenticate_service_account(
        config.keycloak_service_realm,
        config.keycloak_service_client_id,
        config.keycloak_service_client_secret,
    )
    user_store = KeycloakUserStore(client, config.keycloak_realm, tokens)
    role_store = KeycloakRoleStore(client, config.keycloak_realm) if config.roles_enabled else None
    return user_store, role_store, KeycloakUser


def create_service(config: Optional[AppConfig] = None) -> IdentityManagerService:
    """Build the identity manager for the configured back-end.

    Raises:
        MetadataFileError: If ``metadata_file`` is set but cannot be loaded
        KeycloakAuthenticationError: If the Keycloak service account is rejected
    """
    config = config or get_settings()
    tokens = TokenProvider(config.token_secret, config.token_lifespan_seconds)

    if config.store_backend == "keycloak":
        user_store, role_store, user_type = _keycloak_stores(config, tokens)
    else:
        user_store = InMemoryUserStore(tokens, password_min_length=config.password_min_length)
        role_store = InMemoryRoleStore() if config.roles_enabled else None
        user_type = IdentityUser

    if config.audit_enabled:
        audit.configure_log_dir(config.audit_log_dir)

    claim_properties = load_claim_properties(config.metadata_file) if config.metadata_file else []

    logger.info(
        "Identity manager ready (backend=%s, roles=%s, claim properties=%d)",
        config.store_backend, role_store is not None, len(claim_properties),
    )

    return IdentityManagerService(
        user_store,
        role_store,
        include_account_properties=config.include_account_properties,
        user_type=user_type,
        role_type=IdentityRole,
        role_claim_type=config.role_claim_type,
        claim_properties=claim_properties,
        query_case_sensitive=config.query_case_sensitive,
        audit=audit.safe_log_event if config.audit_enabled else None,
    )
