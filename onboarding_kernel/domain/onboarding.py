"""
Onboarding domain types (``onboarding_kernel.domain.onboarding``).

Responsibility
--------------
Value objects produced by the requirement evaluator and the onboarding
state deriver, and the result type returned by onboarding transitions.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* ``REQUIREMENT_ORDER`` fixes the order of checklist rules; the
  ``missing`` list of an evaluation always follows it.
* ``RequirementEvaluation.is_apt`` is True iff ``missing`` is empty.
* ``OnboardingState`` is never persisted and never cached beyond a
  single evaluation.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from onboarding_kernel.domain.party import ReviewOutcome, WorkflowStep


class Requirement(str, Enum):
    """Named onboarding prerequisites, declared in checklist order."""

    FULL_NAME = "full_name"
    TAX_DOCUMENT = "tax_document"
    EMAIL = "email"
    PHONE = "phone"
    POSTAL_ADDRESS = "postal_address"
    PRIMARY_PAYMENT_METHOD = "primary_payment_method"
    IDENTITY_DOCUMENT = "identity_document"
    RESIDENCE_PROOF = "residence_proof"


REQUIREMENT_ORDER: tuple[Requirement, ...] = tuple(Requirement)


@dataclass(frozen=True)
class RequirementEvaluation:
    """Result of evaluating the checklist for one party.

    ``unmet`` holds the requirement tags; ``missing`` holds their display
    labels in the same order.
    """

    unmet: tuple[Requirement, ...]
    missing: tuple[str, ...]

    def __post_init__(self) -> None:
        if len(self.unmet) != len(self.missing):
            raise ValueError("unmet and missing must have the same length")

    @property
    def is_apt(self) -> bool:
        return not self.unmet


@dataclass(frozen=True)
class OnboardingState:
    """Derived onboarding state rendered by callers and read by guards.

    ``persisted_step`` is the stored ``workflow_step``; ``step`` is the
    authoritative derived step.  They differ when the checklist has made
    an unsubmitted party apt, when a stored approval has not yet been
    folded into the stored step, or when a rejection forces a step.
    """

    step: WorkflowStep
    persisted_step: WorkflowStep
    is_apt: bool
    missing_requirements: tuple[str, ...]
    analysis_outcome: ReviewOutcome
    analysis_reason: str | None
    registration_outcome: ReviewOutcome
    registration_reason: str | None
    has_contract_document: bool

    @property
    def awaiting_submission(self) -> bool:
        """Apt but not yet submitted for analysis."""
        return self.persisted_step == WorkflowStep.APTITUDE and self.is_apt

    @property
    def is_completed(self) -> bool:
        return self.step == WorkflowStep.COMPLETED


class OnboardingAction(str, Enum):
    """Actor-initiated onboarding transitions."""

    SUBMIT = "submit"
    APPROVE_ANALYSIS = "approve_analysis"
    REJECT_ANALYSIS = "reject_analysis"
    RECORD_PASSWORD = "record_password"
    APPROVE_REGISTRATION = "approve_registration"
    REJECT_REGISTRATION = "reject_registration"


# Actions that require the top approver role.
TOP_APPROVER_ACTIONS: frozenset[OnboardingAction] = frozenset({
    OnboardingAction.APPROVE_ANALYSIS,
    OnboardingAction.REJECT_ANALYSIS,
    OnboardingAction.APPROVE_REGISTRATION,
    OnboardingAction.REJECT_REGISTRATION,
})


@dataclass(frozen=True)
class OnboardingTransitionResult:
    """Outcome of an onboarding transition.

    ``applied`` is False when the transition had already been applied
    and the call was an idempotent no-op.
    """

    action: OnboardingAction
    applied: bool
    state: OnboardingState
