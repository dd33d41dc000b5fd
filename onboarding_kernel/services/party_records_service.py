"""
Stores for records linked to a party: payment methods and documents.

Both implement the read side the requirement checklist consumes
(``list_by_party``) plus the writes used during registration.  Returns
frozen records, never ORM entities.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select, update

from onboarding_kernel.domain.party import (
    DocumentCategory,
    DocumentRecord,
    DocumentStatus,
    PaymentMethodKind,
    PaymentMethodRecord,
)
from onboarding_kernel.exceptions import NotFoundError, PartyNotFoundError
from onboarding_kernel.logging_config import get_logger
from onboarding_kernel.models.party import Document, Party, PaymentMethod
from onboarding_kernel.services.base import BaseService, translate_store_errors

logger = get_logger("services.party_records")


def _require_party(session, party_id: UUID) -> None:
    with translate_store_errors("party.get", "Party", party_id):
        exists = session.get(Party, party_id)
    if exists is None:
        raise PartyNotFoundError(str(party_id))


class PaymentMethodService(BaseService[PaymentMethod]):
    """Payment methods owned by a party.  At most one is primary."""

    def list_by_party(self, party_id: UUID) -> list[PaymentMethodRecord]:
        stmt = (
            select(PaymentMethod)
            .where(PaymentMethod.party_id == party_id)
            .order_by(PaymentMethod.created_at, PaymentMethod.id)
        )
        with translate_store_errors("payment_method.list", "PaymentMethod", party_id):
            rows = self.session.execute(stmt).scalars().all()
        return [row.to_record() for row in rows]

    def add_payment_method(
        self,
        party_id: UUID,
        actor_id: UUID,
        kind: PaymentMethodKind = PaymentMethodKind.BANK_ACCOUNT,
        *,
        is_primary: bool = False,
        is_valid: bool = True,
        bank_code: str | None = None,
        branch: str | None = None,
        account_number: str | None = None,
        pix_key: str | None = None,
    ) -> PaymentMethodRecord:
        """
        Link a payment method to a party.

        Adding a primary method demotes the current primary in the same
        flush, so the partial unique index never sees two.

        Raises:
            PartyNotFoundError: If party doesn't exist.
            StoreConflictError: If a concurrent request added another primary.
        """
        _require_party(self.session, party_id)

        method = PaymentMethod(
            party_id=party_id,
            kind=kind.value,
            is_primary=is_primary,
            is_valid=is_valid,
            bank_code=bank_code,
            branch=branch,
            account_number=account_number,
            pix_key=pix_key,
            created_by_id=actor_id,
        )
        with translate_store_errors("payment_method.add", "PaymentMethod", party_id):
            if is_primary:
                self.session.execute(
                    update(PaymentMethod)
                    .where(PaymentMethod.party_id == party_id)
                    .where(PaymentMethod.is_primary.is_(True))
                    .values(is_primary=False, updated_by_id=actor_id)
                    .execution_options(synchronize_session="fetch")
                )
            self.session.add(method)
            self.session.flush()

        logger.info(
            "payment_method_added",
            extra={
                "party_id": str(party_id),
                "payment_method_id": str(method.id),
                "is_primary": is_primary,
            },
        )
        return method.to_record()


class DocumentService(BaseService[Document]):
    """Documents uploaded for a party.  File bytes live outside this store."""

    def list_by_party(self, party_id: UUID) -> list[DocumentRecord]:
        stmt = (
            select(Document)
            .where(Document.party_id == party_id)
            .order_by(Document.created_at, Document.id)
        )
        with translate_store_errors("document.list", "Document", party_id):
            rows = self.session.execute(stmt).scalars().all()
        return [row.to_record() for row in rows]

    def add_document(
        self,
        party_id: UUID,
        actor_id: UUID,
        category: DocumentCategory,
        doc_type: str | None = None,
        file_name: str = "",
        status: DocumentStatus = DocumentStatus.PENDING,
    ) -> DocumentRecord:
        """
        Record an uploaded document.

        Raises:
            PartyNotFoundError: If party doesn't exist.
        """
        _require_party(self.session, party_id)

        document = Document(
            party_id=party_id,
            category=category.value,
            doc_type=doc_type.strip().upper() if doc_type else None,
            status=status.value,
            file_name=file_name,
            created_by_id=actor_id,
        )
        with translate_store_errors("document.add", "Document", party_id):
            self.session.add(document)
            self.session.flush()

        logger.info(
            "document_added",
            extra={
                "party_id": str(party_id),
                "document_id": str(document.id),
                "category": category.value,
                "doc_type": document.doc_type,
            },
        )
        return document.to_record()

    def set_document_status(
        self,
        document_id: UUID,
        status: DocumentStatus,
        actor_id: UUID,
    ) -> DocumentRecord:
        """
        Review a document.  A rejected document stops counting toward the
        checklist on the next derivation.

        Raises:
            NotFoundError: If document doesn't exist.
        """
        with translate_store_errors("document.set_status", "Document", document_id):
            document = self.session.get(Document, document_id)
            if document is None:
                raise NotFoundError(f"Document not found: {document_id}")
            document.status = status.value
            document.updated_by_id = actor_id
            self.session.flush()

        logger.info(
            "document_status_changed",
            extra={"document_id": str(document_id), "status": status.value},
        )
        return document.to_record()
