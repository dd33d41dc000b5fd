"""
Configuration Loader (``onboarding_config.loader``).

Responsibility
--------------
Loads the YAML label catalog and parses it into a frozen
``LabelCatalog``.  Build/test tooling: runtime callers go through
``onboarding_config.get_active_config()``.

Invariants enforced
-------------------
* Every label mapping is total over its closed enum: a missing or an
  unknown key raises ``ValueError``.  No silent defaults.
* ``compute_checksum`` is a deterministic SHA-256 over canonical JSON.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing top-level keys  -> ``KeyError`` propagates.
* Partial or unknown mapping keys, blank labels  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, TypeVar

import yaml

from onboarding_config.schema import LabelCatalog
from onboarding_kernel.domain.notification import NotificationType
from onboarding_kernel.domain.onboarding import Requirement
from onboarding_kernel.domain.party import (
    AccountStatus,
    DocumentCategory,
    Role,
    WorkflowStep,
)

E = TypeVar("E", bound=Enum)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _enum_key(enum_type: type[E], key: Any) -> E:
    if issubclass(enum_type, Role):
        return Role[str(key)]
    return enum_type(str(key))


def parse_total_mapping(
    enum_type: type[E],
    data: dict[str, Any],
    section: str,
) -> MappingProxyType:
    """
    Parse ``data`` into a read-only mapping keyed by every member of ``enum_type``.

    Role mappings are keyed by member name (``HEAD``); all other enums by
    value.

    Raises:
        ValueError: On an unknown key, a missing member or a blank label.
    """
    if not isinstance(data, dict):
        raise ValueError(f"{section}: expected a mapping, got {type(data).__name__}")

    parsed: dict[E, str] = {}
    for key, label in data.items():
        try:
            member = _enum_key(enum_type, key)
        except (KeyError, ValueError):
            raise ValueError(f"{section}: unknown key {key!r}") from None
        if not isinstance(label, str) or not label.strip():
            raise ValueError(f"{section}: blank label for {key!r}")
        parsed[member] = label

    missing = [m for m in enum_type if m not in parsed]
    if missing:
        names = ", ".join(m.name for m in missing)
        raise ValueError(f"{section}: missing labels for {names}")

    return MappingProxyType({m: parsed[m] for m in enum_type})


def parse_catalog(data: dict[str, Any]) -> LabelCatalog:
    """
    Parse a ``LabelCatalog`` from a dict.

    Raises:
        KeyError: If a required section is absent.
        ValueError: If a section is not total or the subtype list is empty.
    """
    subtypes = data["identity_subtypes"]
    if not subtypes:
        raise ValueError("identity_subtypes: at least one subtype is required")

    try:
        top_approver = Role[str(data["top_approver_role"])]
    except KeyError:
        raise ValueError(
            f"top_approver_role: unknown role {data['top_approver_role']!r}"
        ) from None

    return LabelCatalog(
        version=str(data.get("version", "1.0")),
        requirement_labels=parse_total_mapping(
            Requirement, data["requirement_labels"], "requirement_labels",
        ),
        step_labels=parse_total_mapping(
            WorkflowStep, data["step_labels"], "step_labels",
        ),
        account_status_labels=parse_total_mapping(
            AccountStatus, data["account_status_labels"], "account_status_labels",
        ),
        role_labels=parse_total_mapping(Role, data["role_labels"], "role_labels"),
        document_category_labels=parse_total_mapping(
            DocumentCategory, data["document_category_labels"], "document_category_labels",
        ),
        notification_type_labels=parse_total_mapping(
            NotificationType, data["notification_type_labels"], "notification_type_labels",
        ),
        identity_subtypes=frozenset(str(s).strip().upper() for s in subtypes),
        top_approver_role=top_approver,
        checksum=compute_checksum(data),
    )


def load_catalog(path: Path) -> LabelCatalog:
    """Load and parse a catalog file."""
    return parse_catalog(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
