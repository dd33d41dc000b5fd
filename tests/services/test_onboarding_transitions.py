"""
Tests for OnboardingTransitionHandler against the SQLAlchemy stores.

Walks the pipeline end to end (checklist, submit, analysis, password,
registration), then covers idempotence, role and archive gates, and
precondition failures.
"""

from uuid import uuid4

import pytest

from onboarding_kernel.domain.onboarding import OnboardingAction
from onboarding_kernel.domain.party import (
    AccountStatus,
    DocumentCategory,
    DocumentStatus,
    PaymentMethodKind,
    ReviewOutcome,
    WorkflowStep,
)
from onboarding_kernel.exceptions import (
    ForbiddenError,
    InconsistentWorkflowStateError,
    InvalidTransitionError,
    PartyNotFoundError,
    StoreConflictError,
)
from onboarding_kernel.services import DocumentService, PartyService, PaymentMethodService
from onboarding_services import OnboardingTransitionHandler


@pytest.fixture
def submitted(make_party, handler, actor_id):
    """An apt party with a contract on file, submitted for analysis."""
    party = make_party(apt=True, contract=True)
    handler.submit(party.id, actor_id=actor_id)
    return party


@pytest.fixture
def at_password(submitted, handler, head_id):
    handler.approve_analysis(submitted.id, actor_id=head_id, actor_is_top_approver=True)
    return submitted


@pytest.fixture
def at_registration(at_password, handler, actor_id):
    handler.record_password_set(at_password.id, actor_id=actor_id)
    return at_password


# =============================================================================
# Scenarios
# =============================================================================


class TestScenarios:
    def test_party_without_links_stays_at_aptitude(self, make_party, handler):
        """No documents and no payment method: not apt, step aptitude."""
        party = make_party()

        state = handler.current_state(party.id)

        assert "Conta Bancária Ativa" in state.missing_requirements
        assert "Documento de Identidade" in state.missing_requirements
        assert "Comprovante de Residência" in state.missing_requirements
        assert not state.is_apt
        assert state.step == WorkflowStep.APTITUDE

    def test_completing_checklist_shows_analysis_without_persisting(
        self, make_party, handler, party_service, payment_method_service,
        document_service, complete_profile, actor_id,
    ):
        party = make_party(profile=complete_profile)
        assert handler.current_state(party.id).step == WorkflowStep.APTITUDE

        payment_method_service.add_payment_method(
            party.id, actor_id, PaymentMethodKind.PIX, is_primary=True, pix_key="maria@example.com",
        )
        document_service.add_document(party.id, actor_id, DocumentCategory.IDENTITY, "CNH")
        document_service.add_document(party.id, actor_id, DocumentCategory.RESIDENCE_PROOF)

        state = handler.current_state(party.id)
        assert state.is_apt
        assert state.missing_requirements == ()
        assert state.step == WorkflowStep.ANALYSIS
        assert party_service.get(party.id).flags.workflow_step == WorkflowStep.APTITUDE

    def test_submit_then_approve_analysis_reaches_password(
        self, make_party, handler, party_service, actor_id, head_id,
    ):
        party = make_party(apt=True)

        submit = handler.submit(party.id, actor_id=actor_id)
        assert submit.applied
        assert party_service.get(party.id).flags.workflow_step == WorkflowStep.ANALYSIS

        approve = handler.approve_analysis(party.id, actor_id=head_id, actor_is_top_approver=True)
        assert approve.applied
        assert party_service.get(party.id).flags.analysis_outcome == ReviewOutcome.APPROVED

        assert handler.current_state(party.id).step == WorkflowStep.PASSWORD

    def test_reject_analysis_after_step_advanced(self, at_password, handler, head_id):
        """A late analysis rejection sends the party back to analysis with its reason."""
        result = handler.reject_analysis(
            at_password.id, "missing signature", actor_id=head_id, actor_is_top_approver=True,
        )

        assert result.applied
        state = handler.current_state(at_password.id)
        assert state.step == WorkflowStep.ANALYSIS
        assert state.analysis_outcome == ReviewOutcome.REJECTED
        assert state.analysis_reason == "missing signature"


class TestFullPipeline:
    def test_reaches_completed(self, at_registration, handler, party_service, head_id):
        result = handler.approve_registration(
            at_registration.id, actor_id=head_id, actor_is_top_approver=True,
        )

        assert result.applied
        assert result.state.is_completed
        flags = party_service.get(at_registration.id).flags
        assert flags.workflow_step == WorkflowStep.COMPLETED
        assert flags.registration_outcome == ReviewOutcome.APPROVED
        assert flags.has_password

    def test_password_set_persists_registration_step(self, at_password, handler, party_service, actor_id):
        result = handler.record_password_set(at_password.id, actor_id=actor_id)

        assert result.state.step == WorkflowStep.REGISTRATION
        snapshot = party_service.get(at_password.id)
        assert snapshot.flags.has_password
        assert snapshot.flags.workflow_step == WorkflowStep.REGISTRATION

    def test_registration_rejection_then_approval(self, at_registration, handler, head_id):
        handler.reject_registration(
            at_registration.id, "contrato sem assinatura", actor_id=head_id, actor_is_top_approver=True,
        )
        rejected = handler.current_state(at_registration.id)
        assert rejected.step == WorkflowStep.REGISTRATION
        assert rejected.registration_reason == "contrato sem assinatura"

        approved = handler.approve_registration(
            at_registration.id, actor_id=head_id, actor_is_top_approver=True,
        )

        assert approved.state.step == WorkflowStep.COMPLETED
        assert approved.state.registration_reason is None

    def test_analysis_rejection_then_approval(self, submitted, handler, head_id):
        handler.reject_analysis(submitted.id, "RG ilegível", actor_id=head_id, actor_is_top_approver=True)

        result = handler.approve_analysis(submitted.id, actor_id=head_id, actor_is_top_approver=True)

        assert result.applied
        assert result.state.step == WorkflowStep.PASSWORD
        assert result.state.analysis_reason is None

    def test_version_increments_on_each_write(self, submitted, handler, party_service, head_id):
        before = party_service.get(submitted.id).version

        handler.approve_analysis(submitted.id, actor_id=head_id, actor_is_top_approver=True)

        assert party_service.get(submitted.id).version == before + 1


# =============================================================================
# Idempotence
# =============================================================================


class TestIdempotence:
    def test_submit_twice(self, make_party, handler, actor_id):
        party = make_party(apt=True)

        first = handler.submit(party.id, actor_id=actor_id)
        second = handler.submit(party.id, actor_id=actor_id)

        assert first.applied
        assert not second.applied
        assert first.state == second.state

    def test_approve_analysis_twice(self, submitted, handler, head_id):
        first = handler.approve_analysis(submitted.id, actor_id=head_id, actor_is_top_approver=True)
        second = handler.approve_analysis(submitted.id, actor_id=head_id, actor_is_top_approver=True)

        assert first.applied
        assert not second.applied
        assert first.state == second.state

    def test_approve_registration_twice(self, at_registration, handler, head_id):
        first = handler.approve_registration(at_registration.id, actor_id=head_id, actor_is_top_approver=True)
        second = handler.approve_registration(at_registration.id, actor_id=head_id, actor_is_top_approver=True)

        assert not second.applied
        assert first.state == second.state

    def test_record_password_twice(self, at_password, handler, actor_id):
        handler.record_password_set(at_password.id, actor_id=actor_id)

        assert not handler.record_password_set(at_password.id, actor_id=actor_id).applied

    def test_reject_with_same_reason_is_noop(self, submitted, handler, head_id):
        handler.reject_analysis(submitted.id, "foto borrada", actor_id=head_id, actor_is_top_approver=True)

        again = handler.reject_analysis(
            submitted.id, "  foto borrada ", actor_id=head_id, actor_is_top_approver=True,
        )

        assert not again.applied

    def test_reject_with_new_reason_updates_it(self, submitted, handler, head_id):
        handler.reject_analysis(submitted.id, "foto borrada", actor_id=head_id, actor_is_top_approver=True)

        again = handler.reject_analysis(
            submitted.id, "documento vencido", actor_id=head_id, actor_is_top_approver=True,
        )

        assert again.applied
        assert again.state.analysis_reason == "documento vencido"

    def test_submit_after_approval_is_noop(self, at_password, handler, actor_id):
        result = handler.submit(at_password.id, actor_id=actor_id)

        assert not result.applied
        assert result.state.step == WorkflowStep.PASSWORD


# =============================================================================
# Gates
# =============================================================================

ALL_OPERATIONS = [
    ("submit", lambda h, pid, who: h.submit(pid, actor_id=who)),
    ("approve_analysis", lambda h, pid, who: h.approve_analysis(pid, actor_id=who, actor_is_top_approver=True)),
    ("reject_analysis", lambda h, pid, who: h.reject_analysis(pid, "x", actor_id=who, actor_is_top_approver=True)),
    ("record_password", lambda h, pid, who: h.record_password_set(pid, actor_id=who)),
    ("approve_registration", lambda h, pid, who: h.approve_registration(pid, actor_id=who, actor_is_top_approver=True)),
    ("reject_registration", lambda h, pid, who: h.reject_registration(pid, "x", actor_id=who, actor_is_top_approver=True)),
]


class TestArchiveGate:
    @pytest.mark.parametrize("status", [AccountStatus.ARCHIVING, AccountStatus.ARCHIVED])
    @pytest.mark.parametrize("name,operation", ALL_OPERATIONS)
    def test_archival_party_is_forbidden(self, make_party, handler, head_id, status, name, operation):
        party = make_party(apt=True, contract=True, account_status=status)

        with pytest.raises(ForbiddenError) as exc_info:
            operation(handler, party.id, head_id)

        assert exc_info.value.code == "FORBIDDEN"
        assert status.value in str(exc_info.value)

    def test_archive_gate_applies_to_already_applied_commands(
        self, at_password, handler, party_service, head_id,
    ):
        party_service.update(at_password.id, {"account_status": AccountStatus.ARCHIVED})

        with pytest.raises(ForbiddenError):
            handler.approve_analysis(at_password.id, actor_id=head_id, actor_is_top_approver=True)

    def test_current_state_still_readable_when_archived(self, make_party, handler):
        party = make_party(apt=True, account_status=AccountStatus.ARCHIVED)

        assert handler.current_state(party.id).step == WorkflowStep.ANALYSIS


class TestRoleGate:
    @pytest.mark.parametrize(
        "operation",
        [
            lambda h, pid: h.approve_analysis(pid, actor_is_top_approver=False),
            lambda h, pid: h.reject_analysis(pid, "x", actor_is_top_approver=False),
            lambda h, pid: h.approve_registration(pid, actor_is_top_approver=False),
            lambda h, pid: h.reject_registration(pid, "x", actor_is_top_approver=False),
        ],
    )
    def test_verdicts_require_top_approver(self, submitted, handler, operation):
        with pytest.raises(ForbiddenError) as exc_info:
            operation(handler, submitted.id)

        assert "HEAD" in exc_info.value.reason

    def test_role_checked_before_precondition(self, make_party, handler):
        """A non-approver gets Forbidden even when the step is wrong too."""
        party = make_party()

        with pytest.raises(ForbiddenError):
            handler.approve_registration(party.id, actor_is_top_approver=False)


class TestPreconditions:
    def test_unknown_party(self, handler):
        with pytest.raises(PartyNotFoundError):
            handler.submit(uuid4())

    def test_submit_when_not_apt(self, make_party, handler):
        party = make_party()

        with pytest.raises(InvalidTransitionError) as exc_info:
            handler.submit(party.id)

        assert "Conta Bancária Ativa" in exc_info.value.reason

    def test_approve_analysis_before_submit(self, make_party, handler, head_id):
        party = make_party(apt=True)

        with pytest.raises(InvalidTransitionError) as exc_info:
            handler.approve_analysis(party.id, actor_id=head_id, actor_is_top_approver=True)

        assert "submitted" in exc_info.value.reason

    def test_approve_analysis_at_aptitude(self, make_party, handler, head_id):
        party = make_party()

        with pytest.raises(InvalidTransitionError):
            handler.approve_analysis(party.id, actor_id=head_id, actor_is_top_approver=True)

    @pytest.mark.parametrize("reason", ["", "   "])
    def test_rejection_requires_reason(self, submitted, handler, head_id, reason):
        with pytest.raises(InvalidTransitionError):
            handler.reject_analysis(submitted.id, reason, actor_id=head_id, actor_is_top_approver=True)

    def test_reject_analysis_after_password_set(self, at_registration, handler, head_id):
        with pytest.raises(InvalidTransitionError):
            handler.reject_analysis(
                at_registration.id, "tarde demais", actor_id=head_id, actor_is_top_approver=True,
            )

    def test_record_password_during_analysis(self, submitted, handler):
        with pytest.raises(InvalidTransitionError):
            handler.record_password_set(submitted.id)

    def test_reject_registration_during_analysis(self, submitted, handler, head_id):
        with pytest.raises(InvalidTransitionError):
            handler.reject_registration(submitted.id, "x", actor_id=head_id, actor_is_top_approver=True)

    def test_approve_registration_requires_contract(
        self, make_party, handler, actor_id, head_id,
    ):
        party = make_party(apt=True)
        handler.submit(party.id, actor_id=actor_id)
        handler.approve_analysis(party.id, actor_id=head_id, actor_is_top_approver=True)
        handler.record_password_set(party.id, actor_id=actor_id)

        with pytest.raises(InvalidTransitionError) as exc_info:
            handler.approve_registration(party.id, actor_id=head_id, actor_is_top_approver=True)

        assert "contract" in exc_info.value.reason

    def test_rejected_contract_blocks_registration(
        self, at_registration, handler, document_service, actor_id, head_id,
    ):
        contract = next(
            d for d in document_service.list_by_party(at_registration.id)
            if d.category == DocumentCategory.CONTRACT
        )
        document_service.set_document_status(contract.id, DocumentStatus.REJECTED, actor_id)

        with pytest.raises(InvalidTransitionError):
            handler.approve_registration(at_registration.id, actor_id=head_id, actor_is_top_approver=True)

    def test_both_rejected_surfaces_inconsistency(self, submitted, handler, party_service):
        party_service.update(
            submitted.id,
            {
                "analysis_outcome": ReviewOutcome.REJECTED,
                "registration_outcome": ReviewOutcome.REJECTED,
            },
        )

        with pytest.raises(InconsistentWorkflowStateError):
            handler.current_state(submitted.id)


# =============================================================================
# Concurrency
# =============================================================================


class _RacingPartyStore:
    """Party store whose first update is preceded by a competing write."""

    def __init__(self, inner: PartyService, competing_fields: dict):
        self._inner = inner
        self._competing_fields = competing_fields
        self._raced = False

    def get(self, party_id):
        return self._inner.get(party_id)

    def update(self, party_id, fields, *, expected=None, actor_id=None):
        if not self._raced:
            self._raced = True
            self._inner.update(party_id, self._competing_fields)
        return self._inner.update(party_id, fields, expected=expected, actor_id=actor_id)


class TestConcurrentVerdicts:
    def test_lost_race_raises_conflict(self, submitted, session, catalog, party_service, head_id):
        racing = _RacingPartyStore(
            PartyService(session),
            {"analysis_outcome": ReviewOutcome.REJECTED, "analysis_reason": "outro revisor"},
        )
        handler = OnboardingTransitionHandler(
            racing, PaymentMethodService(session), DocumentService(session), catalog=catalog,
        )

        with pytest.raises(StoreConflictError):
            handler.approve_analysis(submitted.id, actor_id=head_id, actor_is_top_approver=True)

        flags = party_service.get(submitted.id).flags
        assert flags.analysis_outcome == ReviewOutcome.REJECTED
        assert flags.analysis_reason == "outro revisor"


# =============================================================================
# Logging
# =============================================================================


class TestTransitionLogging:
    def test_applied_transition_logged(self, make_party, handler, captured_logs, actor_id):
        party = make_party(apt=True)

        handler.submit(party.id, actor_id=actor_id)

        records = [r for r in captured_logs() if r["message"] == "onboarding_transition"]
        assert len(records) == 1
        assert records[0]["action"] == OnboardingAction.SUBMIT.value
        assert records[0]["applied"] is True
        assert records[0]["to_step"] == WorkflowStep.ANALYSIS.value
        assert records[0]["party_id"] == str(party.id)
        assert records[0]["actor_id"] == str(actor_id)

    def test_noop_logged_as_not_applied(self, submitted, handler, captured_logs, actor_id):
        handler.submit(submitted.id, actor_id=actor_id)

        records = [r for r in captured_logs() if r["message"] == "onboarding_transition"]
        assert records[-1]["applied"] is False

    def test_engines_emit_trace(self, make_party, handler, captured_logs):
        party = make_party()

        handler.current_state(party.id)

        engines = {r["engine_name"] for r in captured_logs() if r["message"] == "ONBOARDING_ENGINE_TRACE"}
        assert engines == {"requirements", "onboarding_state"}
