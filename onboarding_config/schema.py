"""
Configuration Schema (``onboarding_config.schema``).

Responsibility
--------------
Frozen dataclass describing the label catalog: every user-facing label
the lifecycle core produces, the identity-document subtypes the
checklist accepts, and the role that acts as top approver.

Architecture position
---------------------
**Config layer** -- pure data definitions.  Imports kernel domain enums
only, so each mapping can be keyed by the closed set it labels.

Invariants enforced
-------------------
* Every mapping is total over its enum (checked by the loader).
* Mappings are read-only ``MappingProxyType`` views.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType

from onboarding_kernel.domain.notification import NotificationType
from onboarding_kernel.domain.onboarding import Requirement
from onboarding_kernel.domain.party import (
    AccountStatus,
    DocumentCategory,
    Role,
    WorkflowStep,
)


@dataclass(frozen=True)
class LabelCatalog:
    """Display labels and checklist settings, loaded from ``catalog.yaml``."""

    version: str
    requirement_labels: MappingProxyType[Requirement, str]
    step_labels: MappingProxyType[WorkflowStep, str]
    account_status_labels: MappingProxyType[AccountStatus, str]
    role_labels: MappingProxyType[Role, str]
    document_category_labels: MappingProxyType[DocumentCategory, str]
    notification_type_labels: MappingProxyType[NotificationType, str]
    identity_subtypes: frozenset[str]
    top_approver_role: Role
    checksum: str = ""

    def requirement_label(self, requirement: Requirement) -> str:
        return self.requirement_labels[requirement]

    def step_label(self, step: WorkflowStep) -> str:
        return self.step_labels[step]

    def is_top_approver(self, role: Role | None) -> bool:
        """True if ``role`` holds the top approver grant."""
        return role is not None and Role(role) == self.top_approver_role
