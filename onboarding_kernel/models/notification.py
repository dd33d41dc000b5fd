"""
Module: onboarding_kernel.models.notification
Responsibility: ORM persistence for cross-actor notifications (archive
    requests, contract and withdrawal requests, informational notices).
Architecture position: Kernel > Models.  May import from db/base.py and
    domain value objects only.

Invariants enforced:
    - Status values limited to the notification lifecycle by CHECK
      constraint; transition rules are enforced by NotificationService.
    - Exactly one of recipient_id / target_role is set.
    - Rows are never deleted (ORM-level delete guard).

Audit relevance:
    A notification is the durable record of who asked for what, who
    answered, and when.  resolved_at / resolved_by_id are written once,
    on the terminal transition.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column

from onboarding_kernel.db.base import Base, UUIDString
from onboarding_kernel.domain.notification import (
    Notification,
    NotificationStatus,
    NotificationType,
)
from onboarding_kernel.domain.party import Role
from onboarding_kernel.exceptions import InvalidTransitionError


class NotificationModel(Base):
    """Persistent notification."""

    __tablename__ = "notifications"

    __table_args__ = (
        CheckConstraint(
            "status IN ('unread', 'read', 'accepted', 'denied')",
            name="ck_notifications_valid_status",
        ),
        CheckConstraint(
            "(recipient_id IS NULL AND target_role IS NOT NULL) OR "
            "(recipient_id IS NOT NULL AND target_role IS NULL)",
            name="ck_notifications_single_addressee",
        ),
        # Covers "latest open request for entity" lookups
        Index(
            "ix_notifications_entity_type_status",
            "related_entity_id", "type", "status", "created_at",
        ),
        Index("ix_notifications_recipient", "recipient_id", "created_at"),
        Index("ix_notifications_target_role", "target_role", "created_at"),
    )

    type: Mapped[str] = mapped_column(String(30), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=NotificationStatus.UNREAD.value,
    )
    sender_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    recipient_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    target_role: Mapped[int | None] = mapped_column(Integer, nullable=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    message: Mapped[str] = mapped_column(Text, nullable=False, default="")
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    related_entity_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    link: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    resolved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    resolved_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        return f"<Notification {self.id} {self.type} status={self.status}>"

    def to_dto(self) -> Notification:
        """Convert ORM model to frozen domain DTO."""
        return Notification(
            id=self.id,
            type=NotificationType(self.type),
            status=NotificationStatus(self.status),
            sender_id=self.sender_id,
            recipient_id=self.recipient_id,
            target_role=Role(self.target_role) if self.target_role is not None else None,
            title=self.title,
            message=self.message,
            payload=dict(self.payload or {}),
            related_entity_id=self.related_entity_id,
            link=self.link,
            created_at=self.created_at,
            resolved_at=self.resolved_at,
            resolved_by_id=self.resolved_by_id,
        )


@event.listens_for(NotificationModel, "before_delete")
def prevent_notification_delete(mapper, connection, target):
    """Notifications are an audit trail: transition them, never delete."""
    raise InvalidTransitionError(
        entity_id=str(target.id),
        action="delete",
        current_state=target.status,
        reason="notifications are transitioned, never deleted",
    )
