"""Identity manager package.

To build a configured service:
    from identity_manager.bootstrap import create_service

To use the facade directly:
    from identity_manager.core.service import IdentityManagerService
    from identity_manager.stores import InMemoryUserStore, InMemoryRoleStore
"""
# Note: Keycloak stores are not imported by default so the in-memory
# back-end works without a Keycloak server.
