"""
Tests for NotificationService.

Covers creation, the status lifecycle, guarded updates, the inbox read
side, and the no-delete guard.
"""

from uuid import uuid4

import pytest

from onboarding_kernel.domain.notification import (
    OPEN_NOTIFICATION_STATUSES,
    NotificationDraft,
    NotificationFilter,
    NotificationStatus,
    NotificationType,
)
from onboarding_kernel.domain.party import Role
from onboarding_kernel.exceptions import (
    InvalidTransitionError,
    NotificationNotFoundError,
    StoreConflictError,
)
from onboarding_kernel.models.notification import NotificationModel


def _to_role(sender_id, role=Role.HEAD, entity_id=None, kind=NotificationType.ARCHIVE_REQUEST):
    return NotificationDraft(
        type=kind, sender_id=sender_id, target_role=role, related_entity_id=entity_id,
    )


def _to_user(sender_id, recipient_id, kind=NotificationType.GENERIC):
    return NotificationDraft(type=kind, sender_id=sender_id, recipient_id=recipient_id)


class TestCreate:
    def test_create_and_get(self, notification_service, deterministic_clock, actor_id):
        entity_id = uuid4()
        draft = NotificationDraft(
            type=NotificationType.ARCHIVE_REQUEST,
            sender_id=actor_id,
            target_role=Role.HEAD,
            title="Solicitação de Arquivamento",
            message="Maria Souza (client)",
            payload={"party_id": str(entity_id)},
            related_entity_id=entity_id,
            link="/parties/123",
        )

        notification = notification_service.get(notification_service.create(draft))

        assert notification.status == NotificationStatus.UNREAD
        assert notification.type == NotificationType.ARCHIVE_REQUEST
        assert notification.target_role == Role.HEAD
        assert notification.recipient_id is None
        assert notification.payload == {"party_id": str(entity_id)}
        assert notification.link == "/parties/123"
        assert notification.created_at.replace(tzinfo=None) == deterministic_clock.now().replace(tzinfo=None)
        assert notification.resolved_at is None
        assert notification.is_open

    @pytest.mark.parametrize("recipient_id,target_role", [(None, None), (uuid4(), Role.HEAD)])
    def test_draft_needs_exactly_one_addressee(self, actor_id, recipient_id, target_role):
        with pytest.raises(ValueError):
            NotificationDraft(
                type=NotificationType.GENERIC,
                sender_id=actor_id,
                recipient_id=recipient_id,
                target_role=target_role,
            )

    def test_get_unknown(self, notification_service):
        with pytest.raises(NotificationNotFoundError):
            notification_service.get(uuid4())

    def test_create_is_logged(self, notification_service, captured_logs, actor_id):
        notification_id = notification_service.create(_to_role(actor_id))

        records = [r for r in captured_logs() if r["message"] == "notification_created"]
        assert records
        assert records[-1]["notification_id"] == str(notification_id)


class TestLifecycle:
    def test_unread_to_read_to_accepted(self, notification_service, actor_id, head_id):
        notification_id = notification_service.create(_to_role(actor_id))

        notification_service.update(notification_id, NotificationStatus.READ)
        resolved = notification_service.update(
            notification_id, NotificationStatus.ACCEPTED, resolved_by_id=head_id,
        )

        assert resolved.status == NotificationStatus.ACCEPTED
        assert resolved.resolved_by_id == head_id
        assert resolved.resolved_at is not None
        assert not resolved.is_open

    def test_unread_can_be_denied_directly(self, notification_service, actor_id, head_id):
        notification_id = notification_service.create(_to_role(actor_id))

        resolved = notification_service.update(
            notification_id, NotificationStatus.DENIED, resolved_by_id=head_id,
        )

        assert resolved.status == NotificationStatus.DENIED

    @pytest.mark.parametrize("terminal", [NotificationStatus.ACCEPTED, NotificationStatus.DENIED])
    @pytest.mark.parametrize("target", list(NotificationStatus))
    def test_terminal_statuses_never_change(self, notification_service, actor_id, head_id, terminal, target):
        notification_id = notification_service.create(_to_role(actor_id))
        notification_service.update(notification_id, terminal, resolved_by_id=head_id)

        with pytest.raises(InvalidTransitionError):
            notification_service.update(notification_id, target)

        assert notification_service.get(notification_id).status == terminal

    def test_read_cannot_go_back_to_unread(self, notification_service, actor_id):
        notification_id = notification_service.create(_to_role(actor_id))
        notification_service.update(notification_id, NotificationStatus.READ)

        with pytest.raises(InvalidTransitionError):
            notification_service.update(notification_id, NotificationStatus.UNREAD)

    def test_expected_status_mismatch_conflicts(self, notification_service, actor_id, head_id):
        notification_id = notification_service.create(_to_role(actor_id))
        notification_service.update(notification_id, NotificationStatus.DENIED, resolved_by_id=head_id)

        with pytest.raises(StoreConflictError):
            notification_service.update(
                notification_id,
                NotificationStatus.ACCEPTED,
                expected_statuses=OPEN_NOTIFICATION_STATUSES,
            )

    def test_update_unknown(self, notification_service):
        with pytest.raises(NotificationNotFoundError):
            notification_service.update(uuid4(), NotificationStatus.READ)

    def test_status_change_is_logged(self, notification_service, captured_logs, actor_id):
        notification_id = notification_service.create(_to_role(actor_id))

        notification_service.update(notification_id, NotificationStatus.READ)

        records = [r for r in captured_logs() if r["message"] == "notification_status_changed"]
        assert records[-1]["from_status"] == "unread"
        assert records[-1]["to_status"] == "read"

    def test_rows_are_never_deleted(self, notification_service, session, actor_id):
        notification_id = notification_service.create(_to_role(actor_id))
        model = session.get(NotificationModel, notification_id)

        session.delete(model)
        with pytest.raises(InvalidTransitionError):
            session.flush()


class TestQuery:
    def test_filters_combine(self, notification_service, deterministic_clock, actor_id):
        entity_id = uuid4()
        wanted = notification_service.create(_to_role(actor_id, entity_id=entity_id))
        deterministic_clock.advance()
        notification_service.create(
            _to_role(actor_id, entity_id=entity_id, kind=NotificationType.ARCHIVE_CONTRACT)
        )
        deterministic_clock.advance()
        notification_service.create(_to_role(actor_id, entity_id=uuid4()))

        matches = notification_service.query(
            NotificationFilter(related_entity_id=entity_id, type=NotificationType.ARCHIVE_REQUEST)
        )

        assert [n.id for n in matches] == [wanted]

    def test_order_and_limit(self, notification_service, deterministic_clock, actor_id):
        ids = []
        for _ in range(3):
            ids.append(notification_service.create(_to_role(actor_id)))
            deterministic_clock.advance(10)

        newest = notification_service.query(NotificationFilter(limit=2))
        oldest = notification_service.query(NotificationFilter(newest_first=False))

        assert [n.id for n in newest] == [ids[2], ids[1]]
        assert [n.id for n in oldest] == ids

    def test_status_filter(self, notification_service, deterministic_clock, actor_id, head_id):
        open_id = notification_service.create(_to_role(actor_id))
        deterministic_clock.advance()
        closed_id = notification_service.create(_to_role(actor_id))
        notification_service.update(closed_id, NotificationStatus.ACCEPTED, resolved_by_id=head_id)

        matches = notification_service.query(
            NotificationFilter(statuses=OPEN_NOTIFICATION_STATUSES)
        )

        assert [n.id for n in matches] == [open_id]

    def test_addressee_filters(self, notification_service, actor_id):
        user_id = uuid4()
        direct = notification_service.create(_to_user(actor_id, user_id))
        finance = notification_service.create(_to_role(actor_id, role=Role.FINANCE))

        assert [n.id for n in notification_service.query(NotificationFilter(recipient_id=user_id))] == [direct]
        assert [n.id for n in notification_service.query(NotificationFilter(target_role=Role.FINANCE))] == [finance]


class TestInbox:
    def test_inbox_includes_direct_and_role_addressed(
        self, notification_service, deterministic_clock, actor_id, head_id,
    ):
        to_head_role = notification_service.create(_to_role(actor_id, role=Role.HEAD))
        deterministic_clock.advance()
        to_head_user = notification_service.create(_to_user(actor_id, head_id))
        deterministic_clock.advance()
        notification_service.create(_to_role(actor_id, role=Role.FINANCE))
        notification_service.create(_to_user(actor_id, uuid4()))

        inbox = notification_service.list_inbox(head_id, role=Role.HEAD)

        assert [n.id for n in inbox] == [to_head_user, to_head_role]

    def test_inbox_without_role_only_direct(self, notification_service, actor_id, head_id):
        notification_service.create(_to_role(actor_id, role=Role.HEAD))
        direct = notification_service.create(_to_user(actor_id, head_id))

        assert [n.id for n in notification_service.list_inbox(head_id)] == [direct]

    def test_inbox_limit(self, notification_service, deterministic_clock, actor_id, head_id):
        for _ in range(3):
            notification_service.create(_to_user(actor_id, head_id))
            deterministic_clock.advance()

        assert len(notification_service.list_inbox(head_id, limit=2)) == 2

    def test_unread_count(self, notification_service, actor_id, head_id):
        first = notification_service.create(_to_role(actor_id, role=Role.HEAD))
        notification_service.create(_to_user(actor_id, head_id))
        notification_service.create(_to_role(actor_id, role=Role.FINANCE))

        assert notification_service.unread_count(head_id, role=Role.HEAD) == 2

        notification_service.mark_read(first)

        assert notification_service.unread_count(head_id, role=Role.HEAD) == 1
        assert notification_service.unread_count(head_id) == 1

    def test_mark_read_is_noop_when_not_unread(self, notification_service, actor_id, head_id):
        notification_id = notification_service.create(_to_role(actor_id))
        notification_service.update(notification_id, NotificationStatus.DENIED, resolved_by_id=head_id)

        result = notification_service.mark_read(notification_id)

        assert result.status == NotificationStatus.DENIED

    def test_mark_read_twice(self, notification_service, actor_id):
        notification_id = notification_service.create(_to_role(actor_id))

        notification_service.mark_read(notification_id)
        result = notification_service.mark_read(notification_id)

        assert result.status == NotificationStatus.READ
