"""
Module: onboarding_kernel.models.party
Responsibility: ORM persistence for executives and clients (parties) and the
    payment methods and documents they own.  The party row carries the
    persisted onboarding flags and the account status fields the lifecycle
    core reads and writes.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain value objects only.  MUST NOT import from services/.

Invariants enforced:
    - Status columns are limited to their closed domains by CHECK
      constraints.
    - At most one primary payment method per party (partial unique index).
    - previous_account_status is never 'archiving' or 'archived'.

Failure modes:
    - IntegrityError on a second primary payment method for a party, or on
      an out-of-domain status value.  The services layer translates it to
      StoreConflictError.

Audit relevance:
    previous_account_status preserves the pre-archive status so a denied
    request or a restore returns the party exactly where it was.
    TrackedBase.version increments on every guarded update.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    Text,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from onboarding_kernel.db.base import TrackedBase, UUIDString
from onboarding_kernel.domain.party import (
    AccountStatus,
    DocumentCategory,
    DocumentRecord,
    DocumentStatus,
    PartyKind,
    PartyProfile,
    PartySnapshot,
    PaymentMethodKind,
    PaymentMethodRecord,
    ReviewOutcome,
    WorkflowFlags,
    WorkflowStep,
)


def _in_clause(column: str, values) -> str:
    quoted = ", ".join(f"'{v.value}'" for v in values)
    return f"{column} IN ({quoted})"


class Party(TrackedBase):
    """
    An executive or client subject to onboarding and archival.

    Contract:
        Lifecycle columns (workflow_step, *_outcome, has_password,
        account_status, previous_account_status) are only written through
        guarded single-row updates in the services layer.

    Non-goals:
        - Does NOT validate document numbers or postal codes; that is a
          form-layer concern.
    """

    __tablename__ = "parties"

    __table_args__ = (
        CheckConstraint(_in_clause("kind", PartyKind), name="ck_parties_kind"),
        CheckConstraint(
            _in_clause("workflow_step", WorkflowStep),
            name="ck_parties_workflow_step",
        ),
        CheckConstraint(
            _in_clause("analysis_outcome", ReviewOutcome),
            name="ck_parties_analysis_outcome",
        ),
        CheckConstraint(
            _in_clause("registration_outcome", ReviewOutcome),
            name="ck_parties_registration_outcome",
        ),
        CheckConstraint(
            _in_clause("account_status", AccountStatus),
            name="ck_parties_account_status",
        ),
        CheckConstraint(
            "previous_account_status IS NULL OR "
            "previous_account_status IN ('active', 'pending', 'denied')",
            name="ck_parties_previous_account_status",
        ),
        Index("idx_party_kind", "kind"),
        Index("idx_party_account_status", "account_status"),
    )

    kind: Mapped[str] = mapped_column(String(20), nullable=False)

    # Identity profile (read by the requirement checklist)
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    tax_document: Mapped[str | None] = mapped_column(String(20), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    street: Mapped[str | None] = mapped_column(String(255), nullable=True)
    number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    complement: Mapped[str | None] = mapped_column(String(100), nullable=True)
    district: Mapped[str | None] = mapped_column(String(100), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    state: Mapped[str | None] = mapped_column(String(2), nullable=True)
    postal_code: Mapped[str | None] = mapped_column(String(9), nullable=True)

    # Onboarding flags
    workflow_step: Mapped[str] = mapped_column(
        String(20), nullable=False, default=WorkflowStep.APTITUDE.value,
    )
    analysis_outcome: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ReviewOutcome.PENDING.value,
    )
    analysis_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    has_password: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    registration_outcome: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ReviewOutcome.PENDING.value,
    )
    registration_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Account status
    account_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=AccountStatus.PENDING.value,
    )
    previous_account_status: Mapped[str | None] = mapped_column(
        String(20), nullable=True,
    )

    payment_methods: Mapped[list["PaymentMethod"]] = relationship(
        "PaymentMethod", back_populates="party", lazy="select",
    )
    documents: Mapped[list["Document"]] = relationship(
        "Document", back_populates="party", lazy="select",
    )

    def to_snapshot(self) -> PartySnapshot:
        """Convert ORM row to a frozen domain snapshot."""
        return PartySnapshot(
            id=self.id,
            kind=PartyKind(self.kind),
            profile=PartyProfile(
                full_name=self.full_name,
                tax_document=self.tax_document,
                email=self.email,
                phone=self.phone,
                street=self.street,
                number=self.number,
                complement=self.complement,
                district=self.district,
                city=self.city,
                state=self.state,
                postal_code=self.postal_code,
            ),
            flags=WorkflowFlags(
                workflow_step=WorkflowStep(self.workflow_step),
                analysis_outcome=ReviewOutcome(self.analysis_outcome),
                analysis_reason=self.analysis_reason,
                has_password=bool(self.has_password),
                registration_outcome=ReviewOutcome(self.registration_outcome),
                registration_reason=self.registration_reason,
            ),
            account_status=AccountStatus(self.account_status),
            previous_account_status=(
                AccountStatus(self.previous_account_status)
                if self.previous_account_status is not None
                else None
            ),
            version=self.version,
        )

    def __repr__(self) -> str:
        return f"<Party {self.id} {self.kind} step={self.workflow_step} status={self.account_status}>"


class PaymentMethod(TrackedBase):
    """A bank account or pix key owned by a party."""

    __tablename__ = "payment_methods"

    __table_args__ = (
        CheckConstraint(
            _in_clause("kind", PaymentMethodKind), name="ck_payment_methods_kind",
        ),
        Index("idx_payment_methods_party", "party_id"),
        Index(
            "uq_payment_methods_primary",
            "party_id",
            unique=True,
            postgresql_where=text("is_primary"),
            sqlite_where=text("is_primary"),
        ),
    )

    party_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("parties.id"), nullable=False,
    )
    kind: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentMethodKind.BANK_ACCOUNT.value,
    )
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_valid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    bank_code: Mapped[str | None] = mapped_column(String(10), nullable=True)
    branch: Mapped[str | None] = mapped_column(String(10), nullable=True)
    account_number: Mapped[str | None] = mapped_column(String(30), nullable=True)
    pix_key: Mapped[str | None] = mapped_column(String(255), nullable=True)

    party: Mapped[Party] = relationship("Party", back_populates="payment_methods")

    def to_record(self) -> PaymentMethodRecord:
        return PaymentMethodRecord(
            id=self.id,
            party_id=self.party_id,
            is_primary=bool(self.is_primary),
            is_valid=bool(self.is_valid),
            kind=PaymentMethodKind(self.kind),
        )


class Document(TrackedBase):
    """An uploaded document owned by a party.  File storage is external."""

    __tablename__ = "documents"

    __table_args__ = (
        CheckConstraint(
            _in_clause("category", DocumentCategory), name="ck_documents_category",
        ),
        CheckConstraint(
            _in_clause("status", DocumentStatus), name="ck_documents_status",
        ),
        Index("idx_documents_party_category", "party_id", "category"),
    )

    party_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("parties.id"), nullable=False,
    )
    category: Mapped[str] = mapped_column(String(30), nullable=False)
    doc_type: Mapped[str | None] = mapped_column(String(30), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DocumentStatus.PENDING.value,
    )
    file_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    party: Mapped[Party] = relationship("Party", back_populates="documents")

    def to_record(self) -> DocumentRecord:
        return DocumentRecord(
            id=self.id,
            party_id=self.party_id,
            category=DocumentCategory(self.category),
            doc_type=self.doc_type,
            status=DocumentStatus(self.status),
            file_name=self.file_name,
        )
