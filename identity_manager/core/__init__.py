"""Core Identity Management Module

Store-agnostic logic for administering users and roles.

Module Structure:
    - metadata.py    : Property descriptors, registries and entity metadata
    - query.py       : Filter / sort / paginate over entity sequences
    - service.py     : IdentityManagerService facade
    - results.py     : Result envelope and transfer objects
    - entities.py    : IdentityUser, IdentityRole, Claim
    - tokens.py      : Purpose-bound HMAC tokens
    - validators.py  : Username, email, password and role name checks
    - constants.py   : Well-known property and claim types
    - exceptions.py  : Configuration and input errors

Usage Pattern:
    Import explicitly when needed:
        from identity_manager.core.service import IdentityManagerService
        from identity_manager.core.results import PropertyValue
        from identity_manager.core.metadata import PropertyMetadata, PropertyDataType
"""
