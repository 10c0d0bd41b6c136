"""Load claim-backed user properties from a YAML file.

Format:
    user:
      claims:
        - type: name
          name: Display Name
          data_type: String
          required: false
"""
from __future__ import annotations
import logging
from pathlib import Path
from typing import Any, List

import yaml

from identity_manager.core.exceptions import MetadataFileError
from identity_manager.core.metadata import ClaimProperty, PropertyDataType

logger = logging.getLogger(__name__)


def _parse_data_type(raw: Any, index: int) -> PropertyDataType:
    if raw is None:
        return PropertyDataType.STRING
    for data_type in PropertyDataType:
        if str(raw).lower() == data_type.value.lower():
            return data_type
    raise MetadataFileError(f"claims[{index}]: unknown data_type {raw!r}")


def parse_claim_properties(document: Any) -> List[ClaimProperty]:
    """Convert a parsed YAML document into claim property declarations."""
    if document is None:
        return []
    if not isinstance(document, dict):
        raise MetadataFileError("Metadata file must contain a mapping at the top level")

    user_section = document.get("user") or {}
    if not isinstance(user_section, dict):
        raise MetadataFileError("'user' must be a mapping")

    entries = user_section.get("claims") or []
    if not isinstance(entries, list):
        raise MetadataFileError("'user.claims' must be a list")

    claims = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise MetadataFileError(f"claims[{index}] must be a mapping")
        claim_type = str(entry.get("type") or "").strip()
        if not claim_type:
            raise MetadataFileError(f"claims[{index}]: 'type' is required")
        required = entry.get("required", False)
        if not isinstance(required, bool):
            raise MetadataFileError(f"claims[{index}]: 'required' must be true or false")
        claims.append(ClaimProperty(
            type=claim_type,
            name=entry.get("name") or None,
            data_type=_parse_data_type(entry.get("data_type"), index),
            required=required,
        ))
    return claims


def load_claim_properties(path: str | Path) -> List[ClaimProperty]:
    """Read and validate a metadata YAML file.

    Raises:
        MetadataFileError: If the file is missing, unreadable or malformed
    """
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as handle:
            document = yaml.safe_load(handle)
    except OSError as e:
        raise MetadataFileError(f"Cannot read metadata file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise MetadataFileError(f"Invalid YAML in metadata file {path}: {e}") from e

    claims = parse_claim_properties(document)
    logger.info("Loaded %d claim properties from %s", len(claims), path)
    return claims
