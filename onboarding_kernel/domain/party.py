"""
Party domain types (``onboarding_kernel.domain.party``).

Responsibility
--------------
Pure value objects describing a registered party (executive or client)
as the lifecycle core sees it: identity profile, linked payment methods
and documents, persisted onboarding flags, and account status.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``models/``, ``services/`` or outer layers.

Invariants enforced
-------------------
* ``ACCOUNT_STATUS_TRANSITIONS`` defines the only valid account status
  changes.  ``archiving`` and ``archived`` are never captured as a
  previous status.
* ``STEP_ORDER`` is the single forward order of onboarding steps.
* ``PartySnapshot`` is frozen; the core writes deltas back through a
  store, never by mutating a snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from uuid import UUID


class PartyKind(str, Enum):
    """The two kinds of parties subject to onboarding."""

    EXECUTIVE = "executive"
    CLIENT = "client"


class Role(IntEnum):
    """Platform roles with their persisted integer codes.

    HEAD is the top approver: it approves analysis and registration and
    resolves archive requests.
    """

    HEAD = 0
    EXECUTIVE_LEADER = 1
    EXECUTIVE = 2
    FINANCE = 3
    CLIENT = 4


# =========================================================================
# Onboarding step pipeline
# =========================================================================


class WorkflowStep(str, Enum):
    """Named stages of the onboarding pipeline."""

    APTITUDE = "aptitude"
    ANALYSIS = "analysis"
    PASSWORD = "password"
    REGISTRATION = "registration"
    COMPLETED = "completed"


STEP_ORDER: tuple[WorkflowStep, ...] = (
    WorkflowStep.APTITUDE,
    WorkflowStep.ANALYSIS,
    WorkflowStep.PASSWORD,
    WorkflowStep.REGISTRATION,
    WorkflowStep.COMPLETED,
)


def step_index(step: WorkflowStep) -> int:
    """Position of ``step`` in the forward pipeline."""
    return STEP_ORDER.index(step)


class ReviewOutcome(str, Enum):
    """Outcome of a top-approver review (analysis or final registration)."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# =========================================================================
# Account status lifecycle
# =========================================================================


class AccountStatus(str, Enum):
    """Account status, independent of the onboarding step."""

    ACTIVE = "active"
    PENDING = "pending"
    ARCHIVING = "archiving"
    ARCHIVED = "archived"
    DENIED = "denied"


ARCHIVAL_STATUSES: frozenset[AccountStatus] = frozenset({
    AccountStatus.ARCHIVING,
    AccountStatus.ARCHIVED,
})

_RESTORABLE: frozenset[AccountStatus] = frozenset({
    AccountStatus.ACTIVE,
    AccountStatus.PENDING,
    AccountStatus.DENIED,
})

ACCOUNT_STATUS_TRANSITIONS: dict[AccountStatus, frozenset[AccountStatus]] = {
    AccountStatus.ACTIVE: frozenset({AccountStatus.ARCHIVING, AccountStatus.ARCHIVED}),
    AccountStatus.PENDING: frozenset({AccountStatus.ARCHIVING, AccountStatus.ARCHIVED}),
    AccountStatus.DENIED: frozenset({AccountStatus.ARCHIVING, AccountStatus.ARCHIVED}),
    AccountStatus.ARCHIVING: frozenset({AccountStatus.ARCHIVED}) | _RESTORABLE,
    AccountStatus.ARCHIVED: _RESTORABLE,
}

# Fallback when an archived/archiving party has no captured previous status.
DEFAULT_RESTORE_STATUS = AccountStatus.PENDING


# =========================================================================
# Linked records
# =========================================================================


class PaymentMethodKind(str, Enum):
    BANK_ACCOUNT = "bank_account"
    PIX = "pix"


@dataclass(frozen=True)
class PaymentMethodRecord:
    """A payment method linked to exactly one party."""

    id: UUID
    party_id: UUID
    is_primary: bool
    is_valid: bool
    kind: PaymentMethodKind = PaymentMethodKind.BANK_ACCOUNT


class DocumentCategory(str, Enum):
    IDENTITY = "identity"
    RESIDENCE_PROOF = "residence-proof"
    CONTRACT = "contract"
    OTHER = "other"


class DocumentStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    REJECTED = "rejected"


@dataclass(frozen=True)
class DocumentRecord:
    """An uploaded document linked to exactly one party.

    ``doc_type`` is the subtype within the category (e.g. ``RG`` or
    ``CNH`` for identity documents).  It is normalized to upper case.
    """

    id: UUID
    party_id: UUID
    category: DocumentCategory
    doc_type: str | None = None
    status: DocumentStatus = DocumentStatus.PENDING
    file_name: str = ""

    def __post_init__(self) -> None:
        if self.doc_type is not None:
            object.__setattr__(self, "doc_type", self.doc_type.strip().upper())

    @property
    def counts_toward_requirements(self) -> bool:
        """Rejected uploads never satisfy a checklist rule."""
        return self.status != DocumentStatus.REJECTED


# =========================================================================
# Party snapshot
# =========================================================================


@dataclass(frozen=True)
class PartyProfile:
    """Identity fields read by the requirement checklist."""

    full_name: str | None = None
    tax_document: str | None = None
    email: str | None = None
    phone: str | None = None
    street: str | None = None
    number: str | None = None
    complement: str | None = None
    district: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None


@dataclass(frozen=True)
class WorkflowFlags:
    """Persisted onboarding flags.  The derived step starts from these."""

    workflow_step: WorkflowStep = WorkflowStep.APTITUDE
    analysis_outcome: ReviewOutcome = ReviewOutcome.PENDING
    analysis_reason: str | None = None
    has_password: bool = False
    registration_outcome: ReviewOutcome = ReviewOutcome.PENDING
    registration_reason: str | None = None


@dataclass(frozen=True)
class PartySnapshot:
    """Read-only view of a persisted party row.

    ``version`` increments on every write and backs optimistic checks.
    """

    id: UUID
    kind: PartyKind
    profile: PartyProfile = field(default_factory=PartyProfile)
    flags: WorkflowFlags = field(default_factory=WorkflowFlags)
    account_status: AccountStatus = AccountStatus.PENDING
    previous_account_status: AccountStatus | None = None
    version: int = 1

    @property
    def is_archival(self) -> bool:
        """True while archiving is pending or complete."""
        return self.account_status in ARCHIVAL_STATUSES
