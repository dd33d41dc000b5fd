"""
Store protocols (``onboarding_kernel.domain.stores``).

Responsibility
--------------
The narrow contracts the lifecycle core consumes from the persistence
tier.  Orchestrators depend on these protocols only; the SQLAlchemy
services in ``onboarding_kernel.services`` implement them.

Failure modes
-------------
Implementations raise the kernel taxonomy only: ``PartyNotFoundError`` /
``NotificationNotFoundError`` for missing rows, ``StoreConflictError``
when an ``expected`` guard no longer matches, ``StoreUnavailableError``
for transport failures.  Driver exceptions never escape untranslated.
"""

from __future__ import annotations

from typing import Any, Mapping, Protocol
from uuid import UUID

from onboarding_kernel.domain.notification import (
    Notification,
    NotificationDraft,
    NotificationFilter,
    NotificationStatus,
)
from onboarding_kernel.domain.party import (
    DocumentRecord,
    PartySnapshot,
    PaymentMethodRecord,
)


class PartyStore(Protocol):
    """Read a party snapshot and write back a delta."""

    def get(self, party_id: UUID) -> PartySnapshot:
        """Return the current snapshot or raise PartyNotFoundError."""
        ...

    def update(
        self,
        party_id: UUID,
        fields: Mapping[str, Any],
        *,
        expected: Mapping[str, Any] | None = None,
        actor_id: UUID | None = None,
    ) -> PartySnapshot:
        """Apply ``fields`` atomically iff every ``expected`` field still matches."""
        ...


class PaymentMethodStore(Protocol):
    def list_by_party(self, party_id: UUID) -> list[PaymentMethodRecord]:
        ...


class DocumentStore(Protocol):
    def list_by_party(self, party_id: UUID) -> list[DocumentRecord]:
        ...


class NotificationChannel(Protocol):
    """Durable, queryable store of pending and resolved cross-actor requests."""

    def create(self, draft: NotificationDraft) -> UUID:
        ...

    def query(self, criteria: NotificationFilter) -> list[Notification]:
        ...

    def update(
        self,
        notification_id: UUID,
        status: NotificationStatus,
        *,
        expected_statuses: frozenset[NotificationStatus] | None = None,
        resolved_by_id: UUID | None = None,
    ) -> Notification:
        ...
