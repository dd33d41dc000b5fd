"""
Pytest fixtures for the onboarding lifecycle test suite.

Provides:
- A fresh in-memory SQLite database per test
- Store, handler and workflow fixtures bound to the test session
- Party factories for common starting points
- Structured log capture
"""

import json
import logging
from io import StringIO
from typing import Generator
from uuid import UUID

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

import onboarding_kernel.models  # noqa: F401  (registers all tables)
from onboarding_config import get_active_config
from onboarding_kernel.db.base import Base
from onboarding_kernel.domain.clock import DeterministicClock
from onboarding_kernel.domain.party import (
    AccountStatus,
    DocumentCategory,
    PartyKind,
    PartyProfile,
    PaymentMethodKind,
)
from onboarding_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from onboarding_kernel.services import (
    DocumentService,
    NotificationService,
    PartyService,
    PaymentMethodService,
)
from onboarding_services import ArchiveWorkflow, OnboardingTransitionHandler

TEST_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000001")
TEST_HEAD_ID = UUID("00000000-0000-0000-0000-0000000000aa")

COMPLETE_PROFILE = PartyProfile(
    full_name="Maria Souza",
    tax_document="123.456.789-09",
    email="maria@example.com",
    phone="(11) 91234-5678",
    street="Rua das Flores",
    number="100",
    district="Centro",
    city="São Paulo",
    state="SP",
    postal_code="01001-000",
)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture onboarding_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, handler):
            handler.submit(party_id)
            logs = captured_logs()
            assert any(r["message"] == "onboarding_transition" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("onboarding_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine():
    """Fresh in-memory SQLite database with all tables."""
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine) -> Generator[Session, None, None]:
    sess = Session(bind=engine, expire_on_commit=False)
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture
def actor_id() -> UUID:
    return TEST_ACTOR_ID


@pytest.fixture
def head_id() -> UUID:
    return TEST_HEAD_ID


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing."""
    return DeterministicClock()


@pytest.fixture
def catalog():
    return get_active_config()


# =============================================================================
# Stores and orchestrators
# =============================================================================


@pytest.fixture
def party_service(session) -> PartyService:
    return PartyService(session)


@pytest.fixture
def payment_method_service(session) -> PaymentMethodService:
    return PaymentMethodService(session)


@pytest.fixture
def document_service(session) -> DocumentService:
    return DocumentService(session)


@pytest.fixture
def notification_service(session, deterministic_clock) -> NotificationService:
    return NotificationService(session, clock=deterministic_clock)


@pytest.fixture
def handler(session, catalog) -> OnboardingTransitionHandler:
    return OnboardingTransitionHandler.from_session(session, catalog=catalog)


@pytest.fixture
def workflow(party_service, notification_service, catalog) -> ArchiveWorkflow:
    return ArchiveWorkflow(party_service, notification_service, catalog=catalog)


# =============================================================================
# Party factories
# =============================================================================


@pytest.fixture
def make_party(party_service, payment_method_service, document_service, actor_id):
    """
    Create a party.

    ``apt=True`` fills the profile and links a valid primary payment
    method plus identity and residence documents, so the checklist is
    complete.  ``contract=True`` also uploads a contract.
    """

    def _make(
        kind: PartyKind = PartyKind.CLIENT,
        apt: bool = False,
        contract: bool = False,
        account_status: AccountStatus = AccountStatus.PENDING,
        profile: PartyProfile | None = None,
    ):
        party = party_service.create_party(
            kind,
            actor_id,
            profile=profile or (COMPLETE_PROFILE if apt else PartyProfile()),
            account_status=account_status,
        )
        if apt:
            payment_method_service.add_payment_method(
                party.id, actor_id, PaymentMethodKind.BANK_ACCOUNT,
                is_primary=True, bank_code="341", branch="0001", account_number="12345-6",
            )
            document_service.add_document(
                party.id, actor_id, DocumentCategory.IDENTITY, "RG", "rg.pdf",
            )
            document_service.add_document(
                party.id, actor_id, DocumentCategory.RESIDENCE_PROOF, "Residencia", "conta_luz.pdf",
            )
        if contract:
            document_service.add_document(
                party.id, actor_id, DocumentCategory.CONTRACT, None, "contrato.pdf",
            )
        return party

    return _make


@pytest.fixture
def complete_profile() -> PartyProfile:
    return COMPLETE_PROFILE
