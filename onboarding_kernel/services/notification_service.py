"""
NotificationService -- durable channel for cross-actor requests.

Responsibility:
    Implements the ``NotificationChannel`` protocol: create a request
    addressed to a user or a role, query by entity/type/status, and move a
    notification through its status lifecycle.  Also serves the inbox
    read side (list, unread count, mark as read).

Architecture position:
    Kernel > Services -- imperative shell.  Time comes from an injected
    ``Clock`` so ``created_at`` ordering is deterministic under test.

Invariants enforced:
    - Only transitions in ``NOTIFICATION_TRANSITIONS`` are applied;
      ``accepted`` and ``denied`` are terminal.
    - Status changes are single-row guarded updates on the status read
      just before, so two resolvers cannot both terminate one request.
    - resolved_at / resolved_by_id are written once, on the terminal
      transition.

Failure modes:
    - NotificationNotFoundError if the id does not exist.
    - InvalidTransitionError if the lifecycle forbids the change.
    - StoreConflictError if the status changed concurrently or does not
      match ``expected_statuses``.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session

from onboarding_kernel.domain.clock import Clock, SystemClock
from onboarding_kernel.domain.notification import (
    NOTIFICATION_TRANSITIONS,
    TERMINAL_NOTIFICATION_STATUSES,
    Notification,
    NotificationDraft,
    NotificationFilter,
    NotificationStatus,
)
from onboarding_kernel.domain.party import Role
from onboarding_kernel.exceptions import (
    InvalidTransitionError,
    NotificationNotFoundError,
    StoreConflictError,
)
from onboarding_kernel.logging_config import get_logger
from onboarding_kernel.models.notification import NotificationModel
from onboarding_kernel.services.base import BaseService, translate_store_errors

logger = get_logger("services.notification")


class NotificationService(BaseService[NotificationModel]):
    """
    Notification channel backed by the ``notifications`` table.

    Contract:
        Returns frozen ``Notification`` DTOs.  Flushes only; the caller's
        ``session_scope`` commits.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Channel protocol
    # ------------------------------------------------------------------

    def create(self, draft: NotificationDraft) -> UUID:
        """Persist a new unread notification and return its id."""
        model = NotificationModel(
            type=draft.type.value,
            status=NotificationStatus.UNREAD.value,
            sender_id=draft.sender_id,
            recipient_id=draft.recipient_id,
            target_role=int(draft.target_role) if draft.target_role is not None else None,
            title=draft.title,
            message=draft.message,
            payload=dict(draft.payload),
            related_entity_id=draft.related_entity_id,
            link=draft.link,
            created_at=self._clock.now(),
        )
        with translate_store_errors("notification.create", "Notification"):
            self.session.add(model)
            self.session.flush()

        logger.info(
            "notification_created",
            extra={
                "notification_id": str(model.id),
                "notification_type": draft.type.value,
                "related_entity_id": str(draft.related_entity_id) if draft.related_entity_id else None,
                "target_role": model.target_role,
            },
        )
        return model.id

    def query(self, criteria: NotificationFilter) -> list[Notification]:
        """Return notifications matching every set field of ``criteria``."""
        stmt = select(NotificationModel)
        if criteria.related_entity_id is not None:
            stmt = stmt.where(NotificationModel.related_entity_id == criteria.related_entity_id)
        if criteria.type is not None:
            stmt = stmt.where(NotificationModel.type == criteria.type.value)
        if criteria.statuses is not None:
            stmt = stmt.where(
                NotificationModel.status.in_([s.value for s in criteria.statuses])
            )
        if criteria.recipient_id is not None:
            stmt = stmt.where(NotificationModel.recipient_id == criteria.recipient_id)
        if criteria.target_role is not None:
            stmt = stmt.where(NotificationModel.target_role == int(criteria.target_role))

        if criteria.newest_first:
            stmt = stmt.order_by(NotificationModel.created_at.desc(), NotificationModel.id.desc())
        else:
            stmt = stmt.order_by(NotificationModel.created_at.asc(), NotificationModel.id.asc())
        if criteria.limit is not None:
            stmt = stmt.limit(criteria.limit)

        with translate_store_errors("notification.query", "Notification"):
            rows = self.session.execute(stmt).scalars().all()
        return [row.to_dto() for row in rows]

    def update(
        self,
        notification_id: UUID,
        status: NotificationStatus,
        *,
        expected_statuses: frozenset[NotificationStatus] | None = None,
        resolved_by_id: UUID | None = None,
    ) -> Notification:
        """
        Move a notification to ``status``.

        Args:
            notification_id: Notification to transition.
            status: Target status.
            expected_statuses: Statuses the row must currently hold.
            resolved_by_id: Recorded on a terminal transition.

        Raises:
            NotificationNotFoundError: If the id does not exist.
            InvalidTransitionError: If the lifecycle forbids the change.
            StoreConflictError: If the current status is not expected, or
                changed between read and write.
        """
        current = self.get(notification_id)

        if expected_statuses is not None and current.status not in expected_statuses:
            raise StoreConflictError(
                "Notification",
                str(notification_id),
                detail=f"status is '{current.status.value}'",
            )
        if status not in NOTIFICATION_TRANSITIONS[current.status]:
            raise InvalidTransitionError(
                entity_id=str(notification_id),
                action=f"mark {status.value}",
                current_state=current.status.value,
                reason="not allowed by the notification lifecycle",
            )

        values: dict = {"status": status.value}
        if status in TERMINAL_NOTIFICATION_STATUSES:
            values["resolved_at"] = self._clock.now()
            values["resolved_by_id"] = resolved_by_id

        stmt = (
            update(NotificationModel)
            .where(NotificationModel.id == notification_id)
            .where(NotificationModel.status == current.status.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        with translate_store_errors("notification.update", "Notification", notification_id):
            rowcount = self.session.execute(stmt).rowcount

        if rowcount == 0:
            raise StoreConflictError(
                "Notification",
                str(notification_id),
                detail="status changed concurrently",
            )

        logger.info(
            "notification_status_changed",
            extra={
                "notification_id": str(notification_id),
                "from_status": current.status.value,
                "to_status": status.value,
            },
        )
        return self.get(notification_id)

    # ------------------------------------------------------------------
    # Inbox
    # ------------------------------------------------------------------

    def get(self, notification_id: UUID) -> Notification:
        """
        Raises:
            NotificationNotFoundError: If the id does not exist.
        """
        with translate_store_errors("notification.get", "Notification", notification_id):
            model = self.session.get(
                NotificationModel, notification_id, populate_existing=True,
            )
        if model is None:
            raise NotificationNotFoundError(str(notification_id))
        return model.to_dto()

    def _inbox_clause(self, user_id: UUID, role: Role | None):
        if role is None:
            return NotificationModel.recipient_id == user_id
        return or_(
            NotificationModel.recipient_id == user_id,
            NotificationModel.target_role == int(role),
        )

    def list_inbox(
        self,
        user_id: UUID,
        role: Role | None = None,
        limit: int | None = None,
    ) -> list[Notification]:
        """Notifications addressed to the user directly or to their role, newest first."""
        stmt = (
            select(NotificationModel)
            .where(self._inbox_clause(user_id, role))
            .order_by(NotificationModel.created_at.desc(), NotificationModel.id.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        with translate_store_errors("notification.list_inbox", "Notification", user_id):
            rows = self.session.execute(stmt).scalars().all()
        return [row.to_dto() for row in rows]

    def unread_count(self, user_id: UUID, role: Role | None = None) -> int:
        stmt = (
            select(func.count())
            .select_from(NotificationModel)
            .where(self._inbox_clause(user_id, role))
            .where(NotificationModel.status == NotificationStatus.UNREAD.value)
        )
        with translate_store_errors("notification.unread_count", "Notification", user_id):
            return int(self.session.execute(stmt).scalar_one())

    def mark_read(self, notification_id: UUID) -> Notification:
        """Mark an unread notification read.  Already-read or resolved ones are returned unchanged."""
        current = self.get(notification_id)
        if current.status != NotificationStatus.UNREAD:
            return current
        return self.update(
            notification_id,
            NotificationStatus.READ,
            expected_statuses=frozenset({NotificationStatus.UNREAD}),
        )
