"""
Notification domain types (``onboarding_kernel.domain.notification``).

Responsibility
--------------
Pure value objects for cross-actor requests: the closed set of
notification types, the status lifecycle, the draft used to create a
notification, the persisted view, and the query filter.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* ``NOTIFICATION_TRANSITIONS`` defines the only valid status changes.
  ``accepted`` and ``denied`` are terminal.
* Exactly one of ``recipient_id`` / ``target_role`` is set.
* Notifications are never deleted, only transitioned.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from onboarding_kernel.domain.party import Role


class NotificationType(str, Enum):
    ARCHIVE_REQUEST = "archive-request"
    ARCHIVE_CONTRACT = "archive-contract"
    WITHDRAWAL_REQUEST = "withdrawal-request"
    SCP_INFO = "scp-info"
    GENERIC = "generic"


class NotificationStatus(str, Enum):
    UNREAD = "unread"
    READ = "read"
    ACCEPTED = "accepted"
    DENIED = "denied"


NOTIFICATION_TRANSITIONS: dict[NotificationStatus, frozenset[NotificationStatus]] = {
    NotificationStatus.UNREAD: frozenset({
        NotificationStatus.READ,
        NotificationStatus.ACCEPTED,
        NotificationStatus.DENIED,
    }),
    NotificationStatus.READ: frozenset({
        NotificationStatus.ACCEPTED,
        NotificationStatus.DENIED,
    }),
    NotificationStatus.ACCEPTED: frozenset(),
    NotificationStatus.DENIED: frozenset(),
}

OPEN_NOTIFICATION_STATUSES: frozenset[NotificationStatus] = frozenset({
    NotificationStatus.UNREAD,
    NotificationStatus.READ,
})

TERMINAL_NOTIFICATION_STATUSES: frozenset[NotificationStatus] = frozenset({
    NotificationStatus.ACCEPTED,
    NotificationStatus.DENIED,
})


def _check_addressee(recipient_id: UUID | None, target_role: Role | None) -> None:
    if (recipient_id is None) == (target_role is None):
        raise ValueError(
            "Notification must be addressed to exactly one of recipient_id or target_role"
        )


@dataclass(frozen=True)
class NotificationDraft:
    """Everything needed to create a notification.  Status starts unread."""

    type: NotificationType
    sender_id: UUID | None
    recipient_id: UUID | None = None
    target_role: Role | None = None
    title: str = ""
    message: str = ""
    payload: dict[str, Any] = field(default_factory=dict)
    related_entity_id: UUID | None = None
    link: str | None = None

    def __post_init__(self) -> None:
        _check_addressee(self.recipient_id, self.target_role)


@dataclass(frozen=True)
class Notification:
    """Persisted notification, as read back from the channel."""

    id: UUID
    type: NotificationType
    status: NotificationStatus
    sender_id: UUID | None
    recipient_id: UUID | None
    target_role: Role | None
    title: str
    message: str
    payload: dict[str, Any]
    related_entity_id: UUID | None
    link: str | None
    created_at: datetime
    resolved_at: datetime | None = None
    resolved_by_id: UUID | None = None

    def __post_init__(self) -> None:
        _check_addressee(self.recipient_id, self.target_role)

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_NOTIFICATION_STATUSES


@dataclass(frozen=True)
class NotificationFilter:
    """Query filter for the notification channel.

    Every set field narrows the result (AND).  ``statuses`` matches any
    of the given values.  Results are ordered by ``created_at`` (newest
    first when ``newest_first``), then truncated to ``limit``.
    """

    related_entity_id: UUID | None = None
    type: NotificationType | None = None
    statuses: frozenset[NotificationStatus] | None = None
    recipient_id: UUID | None = None
    target_role: Role | None = None
    newest_first: bool = True
    limit: int | None = None
