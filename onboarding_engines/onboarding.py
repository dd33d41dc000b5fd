"""
Onboarding state deriver.

Responsibility:
    Compute the authoritative onboarding step from the persisted workflow
    flags and a fresh checklist evaluation.  The result is never persisted
    and never cached across calls.

Architecture position:
    Engines -- pure function, no I/O besides the trace record.

Invariants enforced:
    - Derivation starts from the persisted ``workflow_step``; rules
      1-4 advance the running step at most one stage each, in pipeline
      order.
    - Rejections are applied last and always win.
    - The derived step is never behind the persisted step except when a
      rejection forces it back.
    - A party with both outcomes rejected is inconsistent and raises.

Failure modes:
    - InconsistentWorkflowStateError when analysis and registration are
      both rejected.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from onboarding_engines.tracer import traced_engine
from onboarding_kernel.domain.onboarding import OnboardingState, RequirementEvaluation
from onboarding_kernel.domain.party import (
    DocumentCategory,
    DocumentRecord,
    ReviewOutcome,
    WorkflowFlags,
    WorkflowStep,
)
from onboarding_kernel.exceptions import InconsistentWorkflowStateError


def has_contract_document(documents: Iterable[DocumentRecord]) -> bool:
    """True if any non-rejected contract document is on file."""
    return any(
        d.category == DocumentCategory.CONTRACT and d.counts_toward_requirements
        for d in documents
    )


def advance_step(
    step: WorkflowStep,
    is_apt: bool,
    flags: WorkflowFlags,
) -> WorkflowStep:
    """Apply the forward rules to ``step`` in pipeline order."""
    if step == WorkflowStep.APTITUDE and is_apt:
        step = WorkflowStep.ANALYSIS
    if step == WorkflowStep.ANALYSIS and flags.analysis_outcome == ReviewOutcome.APPROVED:
        step = WorkflowStep.PASSWORD
    if step == WorkflowStep.PASSWORD and flags.has_password:
        step = WorkflowStep.REGISTRATION
    if step == WorkflowStep.REGISTRATION and flags.registration_outcome == ReviewOutcome.APPROVED:
        step = WorkflowStep.COMPLETED
    return step


@traced_engine("onboarding_state", "1.0", fingerprint_fields=("evaluation", "flags", "contract_on_file"))
def derive_onboarding_state(
    evaluation: RequirementEvaluation,
    flags: WorkflowFlags,
    contract_on_file: bool = False,
    party_id: UUID | None = None,
) -> OnboardingState:
    """
    Derive the current onboarding state.

    Args:
        evaluation: Fresh checklist evaluation.
        flags: Persisted workflow flags.
        contract_on_file: Whether a usable contract document exists.
        party_id: Only used to label errors.

    Returns:
        OnboardingState for rendering and transition guards.

    Raises:
        InconsistentWorkflowStateError: If both review outcomes are rejected.
    """
    analysis_rejected = flags.analysis_outcome == ReviewOutcome.REJECTED
    registration_rejected = flags.registration_outcome == ReviewOutcome.REJECTED
    if analysis_rejected and registration_rejected:
        raise InconsistentWorkflowStateError(
            entity_id=str(party_id) if party_id is not None else "<unknown>",
            current_state=flags.workflow_step.value,
            reason="analysis and registration are both rejected",
        )

    step = advance_step(flags.workflow_step, evaluation.is_apt, flags)

    if analysis_rejected:
        step = WorkflowStep.ANALYSIS
    elif registration_rejected:
        step = WorkflowStep.REGISTRATION

    return OnboardingState(
        step=step,
        persisted_step=flags.workflow_step,
        is_apt=evaluation.is_apt,
        missing_requirements=evaluation.missing,
        analysis_outcome=flags.analysis_outcome,
        analysis_reason=flags.analysis_reason,
        registration_outcome=flags.registration_outcome,
        registration_reason=flags.registration_reason,
        has_contract_document=contract_on_file,
    )
