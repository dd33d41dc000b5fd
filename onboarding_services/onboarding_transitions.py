"""
onboarding_services.onboarding_transitions -- Onboarding transition handler.

Responsibility:
    Executes actor-initiated onboarding commands (submit, analysis and
    registration verdicts, password set) against a freshly derived
    state.  Thin coordinator: the checklist and the step derivation are
    delegated to the pure engines, persistence to the party store.

Architecture position:
    Services layer.  May import from onboarding_engines/,
    onboarding_config/ and onboarding_kernel/ (domain, services).

Invariants enforced:
    - Check order for every command: party exists, party not archiving
      or archived, role declared, already-applied no-op, step
      precondition, guarded write.
    - Writes are guarded on the flags the decision was based on, so a
      concurrent verdict surfaces as StoreConflictError instead of being
      overwritten.
    - Re-invoking an applied command returns ``applied=False`` and the
      current state.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from onboarding_config import LabelCatalog, get_active_config
from onboarding_engines.onboarding import (
    advance_step,
    derive_onboarding_state,
    has_contract_document,
)
from onboarding_engines.requirements import evaluate_requirements
from onboarding_kernel.domain.onboarding import (
    TOP_APPROVER_ACTIONS,
    OnboardingAction,
    OnboardingState,
    OnboardingTransitionResult,
)
from onboarding_kernel.domain.party import (
    PartySnapshot,
    ReviewOutcome,
    WorkflowStep,
)
from onboarding_kernel.domain.stores import DocumentStore, PartyStore, PaymentMethodStore
from onboarding_kernel.exceptions import ForbiddenError, InvalidTransitionError
from onboarding_kernel.logging_config import LogContext, get_logger
from onboarding_kernel.services.party_records_service import (
    DocumentService,
    PaymentMethodService,
)
from onboarding_kernel.services.party_service import PartyService

logger = get_logger("services.onboarding_transitions")


class OnboardingTransitionHandler:
    """
    Applies onboarding commands for one party at a time.

    Contract:
        Every command re-derives the state from the live stores before
        deciding.  Returns ``OnboardingTransitionResult`` whose ``state``
        is derived after the write.

    Non-goals:
        - Does NOT decide who holds the top approver role; callers declare
          it with ``actor_is_top_approver``.
        - Does NOT commit; the caller owns the transaction.
    """

    def __init__(
        self,
        parties: PartyStore,
        payment_methods: PaymentMethodStore,
        documents: DocumentStore,
        catalog: LabelCatalog | None = None,
    ):
        self._parties = parties
        self._payment_methods = payment_methods
        self._documents = documents
        self._catalog = catalog or get_active_config()

    @classmethod
    def from_session(
        cls,
        session: Session,
        catalog: LabelCatalog | None = None,
    ) -> OnboardingTransitionHandler:
        """Build a handler over the SQLAlchemy stores of ``session``."""
        return cls(
            PartyService(session),
            PaymentMethodService(session),
            DocumentService(session),
            catalog=catalog,
        )

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def _derive(self, party: PartySnapshot) -> OnboardingState:
        documents = self._documents.list_by_party(party.id)
        evaluation = evaluate_requirements(
            party.profile,
            self._payment_methods.list_by_party(party.id),
            documents,
            catalog=self._catalog,
        )
        return derive_onboarding_state(
            evaluation,
            party.flags,
            has_contract_document(documents),
            party_id=party.id,
        )

    def _load(self, party_id: UUID) -> tuple[PartySnapshot, OnboardingState]:
        party = self._parties.get(party_id)
        return party, self._derive(party)

    def current_state(self, party_id: UUID) -> OnboardingState:
        """
        Derive the onboarding state from the live stores.

        Raises:
            PartyNotFoundError: If party doesn't exist.
            InconsistentWorkflowStateError: If both verdicts are rejected.
        """
        return self._load(party_id)[1]

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def _authorize(
        self,
        party: PartySnapshot,
        action: OnboardingAction,
        actor_is_top_approver: bool,
    ) -> None:
        if party.is_archival:
            raise ForbiddenError(
                str(party.id),
                action.value,
                f"account is {party.account_status.value}",
            )
        if action in TOP_APPROVER_ACTIONS and not actor_is_top_approver:
            raise ForbiddenError(
                str(party.id),
                action.value,
                f"requires the {self._catalog.top_approver_role.name} role",
            )

    @staticmethod
    def _require_reason(party: PartySnapshot, action: OnboardingAction, reason: str) -> str:
        if reason is None or not reason.strip():
            raise InvalidTransitionError(
                entity_id=str(party.id),
                action=action.value,
                current_state=party.flags.workflow_step.value,
                reason="a rejection reason is required",
            )
        return reason.strip()

    def _require_step(
        self,
        party: PartySnapshot,
        state: OnboardingState,
        action: OnboardingAction,
        allowed: tuple[WorkflowStep, ...],
    ) -> None:
        if state.step not in allowed:
            expected = " or ".join(self._catalog.step_label(s) for s in allowed)
            raise InvalidTransitionError(
                entity_id=str(party.id),
                action=action.value,
                current_state=state.step.value,
                reason=f"party must be at step {expected}",
            )

    # ------------------------------------------------------------------
    # Write side
    # ------------------------------------------------------------------

    def _noop(
        self,
        party: PartySnapshot,
        state: OnboardingState,
        action: OnboardingAction,
    ) -> OnboardingTransitionResult:
        logger.info(
            "onboarding_transition",
            extra={
                "party_id": str(party.id),
                "action": action.value,
                "from_step": state.step.value,
                "to_step": state.step.value,
                "applied": False,
            },
        )
        return OnboardingTransitionResult(action=action, applied=False, state=state)

    def _apply(
        self,
        party: PartySnapshot,
        state: OnboardingState,
        action: OnboardingAction,
        fields: dict[str, Any],
        expected: dict[str, Any],
        actor_id: UUID | None,
    ) -> OnboardingTransitionResult:
        updated = self._parties.update(
            party.id, fields, expected=expected, actor_id=actor_id,
        )
        new_state = self._derive(updated)
        logger.info(
            "onboarding_transition",
            extra={
                "party_id": str(party.id),
                "action": action.value,
                "from_step": state.step.value,
                "to_step": new_state.step.value,
                "persisted_step": new_state.persisted_step.value,
                "applied": True,
            },
        )
        return OnboardingTransitionResult(action=action, applied=True, state=new_state)

    def submit(self, party_id: UUID, actor_id: UUID | None = None) -> OnboardingTransitionResult:
        """
        Submit an apt party for analysis.

        No-op once the persisted step is past aptitude.

        Raises:
            PartyNotFoundError, ForbiddenError, InvalidTransitionError
                (checklist not complete), StoreConflictError.
        """
        action = OnboardingAction.SUBMIT
        with LogContext.bind(party_id=party_id, actor_id=actor_id):
            party, state = self._load(party_id)
            self._authorize(party, action, actor_is_top_approver=False)

            if party.flags.workflow_step != WorkflowStep.APTITUDE:
                return self._noop(party, state, action)
            if not state.is_apt:
                raise InvalidTransitionError(
                    entity_id=str(party_id),
                    action=action.value,
                    current_state=state.step.value,
                    reason="missing " + ", ".join(state.missing_requirements),
                )

            return self._apply(
                party, state, action,
                fields={"workflow_step": WorkflowStep.ANALYSIS},
                expected={"workflow_step": WorkflowStep.APTITUDE},
                actor_id=actor_id,
            )

    def approve_analysis(
        self,
        party_id: UUID,
        actor_id: UUID | None = None,
        actor_is_top_approver: bool = False,
    ) -> OnboardingTransitionResult:
        """
        Approve the analysis of a submitted party.

        Persists the approval and folds it into the stored step.

        Raises:
            PartyNotFoundError, ForbiddenError, InvalidTransitionError,
                StoreConflictError.
        """
        action = OnboardingAction.APPROVE_ANALYSIS
        with LogContext.bind(party_id=party_id, actor_id=actor_id):
            party, state = self._load(party_id)
            self._authorize(party, action, actor_is_top_approver)

            if party.flags.analysis_outcome == ReviewOutcome.APPROVED:
                return self._noop(party, state, action)
            self._require_step(party, state, action, (WorkflowStep.ANALYSIS,))
            if party.flags.workflow_step == WorkflowStep.APTITUDE:
                raise InvalidTransitionError(
                    entity_id=str(party_id),
                    action=action.value,
                    current_state=state.step.value,
                    reason="party has not been submitted for analysis",
                )

            approved = replace(party.flags, analysis_outcome=ReviewOutcome.APPROVED)
            return self._apply(
                party, state, action,
                fields={
                    "analysis_outcome": ReviewOutcome.APPROVED,
                    "analysis_reason": None,
                    "workflow_step": advance_step(WorkflowStep.ANALYSIS, state.is_apt, approved),
                },
                expected={
                    "analysis_outcome": party.flags.analysis_outcome,
                    "workflow_step": party.flags.workflow_step,
                },
                actor_id=actor_id,
            )

    def reject_analysis(
        self,
        party_id: UUID,
        reason: str,
        actor_id: UUID | None = None,
        actor_is_top_approver: bool = False,
    ) -> OnboardingTransitionResult:
        """
        Reject the analysis with a reason.

        Allowed at step analysis, and at step password until the password
        is set, so an approval can be revoked.  The stored step returns to
        analysis.

        Raises:
            PartyNotFoundError, ForbiddenError, InvalidTransitionError,
                StoreConflictError.
        """
        action = OnboardingAction.REJECT_ANALYSIS
        with LogContext.bind(party_id=party_id, actor_id=actor_id):
            party, state = self._load(party_id)
            self._authorize(party, action, actor_is_top_approver)
            reason = self._require_reason(party, action, reason)

            flags = party.flags
            if flags.analysis_outcome == ReviewOutcome.REJECTED and flags.analysis_reason == reason:
                return self._noop(party, state, action)
            self._require_step(
                party, state, action, (WorkflowStep.ANALYSIS, WorkflowStep.PASSWORD),
            )

            return self._apply(
                party, state, action,
                fields={
                    "analysis_outcome": ReviewOutcome.REJECTED,
                    "analysis_reason": reason,
                    "workflow_step": WorkflowStep.ANALYSIS,
                },
                expected={
                    "analysis_outcome": flags.analysis_outcome,
                    "workflow_step": flags.workflow_step,
                },
                actor_id=actor_id,
            )

    def record_password_set(
        self,
        party_id: UUID,
        actor_id: UUID | None = None,
    ) -> OnboardingTransitionResult:
        """
        Record that the party defined its password.

        Raises:
            PartyNotFoundError, ForbiddenError, InvalidTransitionError,
                StoreConflictError.
        """
        action = OnboardingAction.RECORD_PASSWORD
        with LogContext.bind(party_id=party_id, actor_id=actor_id):
            party, state = self._load(party_id)
            self._authorize(party, action, actor_is_top_approver=False)

            if party.flags.has_password:
                return self._noop(party, state, action)
            self._require_step(party, state, action, (WorkflowStep.PASSWORD,))

            with_password = replace(party.flags, has_password=True)
            return self._apply(
                party, state, action,
                fields={
                    "has_password": True,
                    "workflow_step": advance_step(WorkflowStep.PASSWORD, state.is_apt, with_password),
                },
                expected={
                    "has_password": False,
                    "workflow_step": party.flags.workflow_step,
                },
                actor_id=actor_id,
            )

    def approve_registration(
        self,
        party_id: UUID,
        actor_id: UUID | None = None,
        actor_is_top_approver: bool = False,
    ) -> OnboardingTransitionResult:
        """
        Give the final registration approval.

        Requires a contract document on file.

        Raises:
            PartyNotFoundError, ForbiddenError, InvalidTransitionError,
                StoreConflictError.
        """
        action = OnboardingAction.APPROVE_REGISTRATION
        with LogContext.bind(party_id=party_id, actor_id=actor_id):
            party, state = self._load(party_id)
            self._authorize(party, action, actor_is_top_approver)

            if party.flags.registration_outcome == ReviewOutcome.APPROVED:
                return self._noop(party, state, action)
            self._require_step(party, state, action, (WorkflowStep.REGISTRATION,))
            if not state.has_contract_document:
                raise InvalidTransitionError(
                    entity_id=str(party_id),
                    action=action.value,
                    current_state=state.step.value,
                    reason="no contract document on file",
                )

            return self._apply(
                party, state, action,
                fields={
                    "registration_outcome": ReviewOutcome.APPROVED,
                    "registration_reason": None,
                    "workflow_step": WorkflowStep.COMPLETED,
                },
                expected={
                    "registration_outcome": party.flags.registration_outcome,
                    "workflow_step": party.flags.workflow_step,
                },
                actor_id=actor_id,
            )

    def reject_registration(
        self,
        party_id: UUID,
        reason: str,
        actor_id: UUID | None = None,
        actor_is_top_approver: bool = False,
    ) -> OnboardingTransitionResult:
        """
        Reject the final registration with a reason.

        Raises:
            PartyNotFoundError, ForbiddenError, InvalidTransitionError,
                StoreConflictError.
        """
        action = OnboardingAction.REJECT_REGISTRATION
        with LogContext.bind(party_id=party_id, actor_id=actor_id):
            party, state = self._load(party_id)
            self._authorize(party, action, actor_is_top_approver)
            reason = self._require_reason(party, action, reason)

            flags = party.flags
            if (
                flags.registration_outcome == ReviewOutcome.REJECTED
                and flags.registration_reason == reason
            ):
                return self._noop(party, state, action)
            self._require_step(party, state, action, (WorkflowStep.REGISTRATION,))

            return self._apply(
                party, state, action,
                fields={
                    "registration_outcome": ReviewOutcome.REJECTED,
                    "registration_reason": reason,
                    "workflow_step": WorkflowStep.REGISTRATION,
                },
                expected={
                    "registration_outcome": flags.registration_outcome,
                    "workflow_step": flags.workflow_step,
                },
                actor_id=actor_id,
            )
