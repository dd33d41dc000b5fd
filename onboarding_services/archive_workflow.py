"""
onboarding_services.archive_workflow -- Archive / restore protocol.

Responsibility:
    Moves a party's account status through the archive protocol: a
    requester asks, the top approver accepts or denies through a
    notification, and the top approver may archive or restore directly.

Architecture position:
    Services layer.  Coordinates the party store and the notification
    channel; the status arithmetic lives in ``onboarding_kernel.domain.archive``.

Invariants enforced:
    - previous_account_status is captured before the first archival
      transition and never overwritten with archiving/archived.
    - Status writes are guarded on the status read just before.
    - A resolution acts on the newest open archive-request for the party.
    - Status and notification writes land together: if the notification
      write fails, the status write is restored before the error
      propagates.

Failure modes:
    - PartyNotFoundError, ForbiddenError (resolver/restorer not top
      approver), InvalidTransitionError (wrong status),
      NotificationNotFoundError (no open request), StoreConflictError.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from onboarding_config import LabelCatalog, get_active_config
from onboarding_kernel.domain.archive import (
    ArchiveDecision,
    ArchiveResult,
    capture_previous_status,
    restore_target,
)
from onboarding_kernel.domain.clock import Clock
from onboarding_kernel.domain.notification import (
    OPEN_NOTIFICATION_STATUSES,
    Notification,
    NotificationDraft,
    NotificationFilter,
    NotificationStatus,
    NotificationType,
)
from onboarding_kernel.domain.party import (
    ACCOUNT_STATUS_TRANSITIONS,
    AccountStatus,
    PartySnapshot,
)
from onboarding_kernel.domain.stores import NotificationChannel, PartyStore
from onboarding_kernel.exceptions import (
    ForbiddenError,
    InvalidTransitionError,
    NotificationNotFoundError,
)
from onboarding_kernel.logging_config import LogContext, get_logger
from onboarding_kernel.services.notification_service import NotificationService
from onboarding_kernel.services.party_service import PartyService

logger = get_logger("services.archive_workflow")


class ArchiveWorkflow:
    """
    Archive request, resolution and restore for parties.

    Contract:
        Every operation reads the party first and writes a single guarded
        status update.  Does NOT commit; the caller owns the transaction.
    """

    def __init__(
        self,
        parties: PartyStore,
        notifications: NotificationChannel,
        catalog: LabelCatalog | None = None,
    ):
        self._parties = parties
        self._notifications = notifications
        self._catalog = catalog or get_active_config()

    @classmethod
    def from_session(
        cls,
        session: Session,
        clock: Clock | None = None,
        catalog: LabelCatalog | None = None,
    ) -> ArchiveWorkflow:
        return cls(
            PartyService(session),
            NotificationService(session, clock=clock),
            catalog=catalog,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_open_archive_request(self, party_id: UUID) -> Notification | None:
        """Newest unread or read archive-request for the party, if any."""
        matches = self._notifications.query(
            NotificationFilter(
                related_entity_id=party_id,
                type=NotificationType.ARCHIVE_REQUEST,
                statuses=OPEN_NOTIFICATION_STATUSES,
                newest_first=True,
                limit=1,
            )
        )
        return matches[0] if matches else None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_top_approver(self, party_id: UUID, action: str, is_top_approver: bool) -> None:
        if not is_top_approver:
            raise ForbiddenError(
                str(party_id),
                action,
                f"requires the {self._catalog.top_approver_role.name} role",
            )

    @staticmethod
    def _require_status(party: PartySnapshot, action: str, status: AccountStatus) -> None:
        if party.account_status != status:
            raise InvalidTransitionError(
                entity_id=str(party.id),
                action=action,
                current_state=party.account_status.value,
                reason=f"account must be {status.value}",
            )

    @staticmethod
    def _require_transition(party: PartySnapshot, action: str, target: AccountStatus) -> None:
        if target not in ACCOUNT_STATUS_TRANSITIONS[party.account_status]:
            raise InvalidTransitionError(
                entity_id=str(party.id),
                action=action,
                current_state=party.account_status.value,
                reason=f"cannot move to {target.value}",
            )

    def _compensate(
        self,
        party_id: UUID,
        fields: dict[str, Any],
        expected: dict[str, Any],
        actor_id: UUID | None,
        operation: str,
    ) -> None:
        """Undo a status write after the paired notification write failed.

        A failure here is logged; the caller re-raises the original error
        and its transaction rollback discards both writes.
        """
        try:
            self._parties.update(party_id, fields, expected=expected, actor_id=actor_id)
        except Exception:
            logger.error(
                "archive_compensation_failed",
                extra={"party_id": str(party_id), "operation": operation},
                exc_info=True,
            )
        else:
            logger.warning(
                "archive_compensated",
                extra={"party_id": str(party_id), "operation": operation},
            )

    def _draft_request(self, party: PartySnapshot, requester_id: UUID) -> NotificationDraft:
        kind_label = party.kind.value
        name = party.profile.full_name or str(party.id)
        return NotificationDraft(
            type=NotificationType.ARCHIVE_REQUEST,
            sender_id=requester_id,
            target_role=self._catalog.top_approver_role,
            title=self._catalog.notification_type_labels[NotificationType.ARCHIVE_REQUEST],
            message=f"{name} ({kind_label})",
            payload={
                "requester_id": str(requester_id),
                "party_id": str(party.id),
                "party_kind": kind_label,
            },
            related_entity_id=party.id,
        )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def request_archive(
        self,
        party_id: UUID,
        requester_id: UUID,
        requester_is_top_approver: bool = False,
    ) -> ArchiveResult:
        """
        Ask to archive a party.

        A top approver archives directly.  Anyone else moves the party to
        archiving and raises an archive-request addressed to the top
        approver role.

        Raises:
            PartyNotFoundError: If party doesn't exist.
            InvalidTransitionError: If already archiving or archived.
            StoreConflictError: If the status changed concurrently.
        """
        action = "request_archive"
        with LogContext.bind(party_id=party_id, actor_id=requester_id):
            party = self._parties.get(party_id)
            if party.is_archival:
                raise InvalidTransitionError(
                    entity_id=str(party_id),
                    action=action,
                    current_state=party.account_status.value,
                    reason="archiving already requested or completed",
                )

            previous = capture_previous_status(
                party.account_status, party.previous_account_status,
            )
            target = (
                AccountStatus.ARCHIVED if requester_is_top_approver
                else AccountStatus.ARCHIVING
            )
            self._require_transition(party, action, target)
            updated = self._parties.update(
                party_id,
                {"account_status": target, "previous_account_status": previous},
                expected={"account_status": party.account_status},
                actor_id=requester_id,
            )

            notification_id = None
            if not requester_is_top_approver:
                try:
                    notification_id = self._notifications.create(
                        self._draft_request(party, requester_id)
                    )
                except Exception:
                    self._compensate(
                        party_id,
                        {
                            "account_status": party.account_status,
                            "previous_account_status": party.previous_account_status,
                        },
                        expected={"account_status": target},
                        actor_id=requester_id,
                        operation=action,
                    )
                    raise

            logger.info(
                "archive_requested",
                extra={
                    "party_id": str(party_id),
                    "from_status": party.account_status.value,
                    "to_status": updated.account_status.value,
                    "direct": requester_is_top_approver,
                    "notification_id": str(notification_id) if notification_id else None,
                },
            )
            return ArchiveResult(
                party_id=party_id,
                account_status=updated.account_status,
                previous_account_status=updated.previous_account_status,
                notification_id=notification_id,
            )

    def resolve_archive(
        self,
        party_id: UUID,
        decision: ArchiveDecision,
        resolver_id: UUID,
        resolver_is_top_approver: bool = False,
    ) -> ArchiveResult:
        """
        Accept or deny the pending archive request of a party.

        ``accepted`` archives the party; ``denied`` returns it to the
        status captured before the request (``pending`` if none).  The
        newest open archive-request is resolved with the same decision.

        Raises:
            PartyNotFoundError: If party doesn't exist.
            ForbiddenError: If the resolver is not top approver.
            InvalidTransitionError: If the party is not archiving.
            NotificationNotFoundError: If no open archive-request exists.
            StoreConflictError: If status or notification changed concurrently.
        """
        action = "resolve_archive"
        decision = ArchiveDecision(decision)
        with LogContext.bind(party_id=party_id, actor_id=resolver_id):
            party = self._parties.get(party_id)
            self._require_top_approver(party_id, action, resolver_is_top_approver)
            self._require_status(party, action, AccountStatus.ARCHIVING)

            request = self.find_open_archive_request(party_id)
            if request is None:
                raise NotificationNotFoundError(
                    str(party_id), detail="no open archive-request for party",
                )

            if decision == ArchiveDecision.ACCEPTED:
                target = AccountStatus.ARCHIVED
                note_status = NotificationStatus.ACCEPTED
            else:
                target = restore_target(party.previous_account_status)
                note_status = NotificationStatus.DENIED

            self._require_transition(party, action, target)
            updated = self._parties.update(
                party_id,
                {"account_status": target},
                expected={"account_status": AccountStatus.ARCHIVING},
                actor_id=resolver_id,
            )
            try:
                with LogContext.bind(notification_id=request.id):
                    self._notifications.update(
                        request.id,
                        note_status,
                        expected_statuses=OPEN_NOTIFICATION_STATUSES,
                        resolved_by_id=resolver_id,
                    )
            except Exception:
                self._compensate(
                    party_id,
                    {"account_status": AccountStatus.ARCHIVING},
                    expected={"account_status": target},
                    actor_id=resolver_id,
                    operation=action,
                )
                raise

            logger.info(
                "archive_resolved",
                extra={
                    "party_id": str(party_id),
                    "decision": decision.value,
                    "to_status": updated.account_status.value,
                    "notification_id": str(request.id),
                },
            )
            return ArchiveResult(
                party_id=party_id,
                account_status=updated.account_status,
                previous_account_status=updated.previous_account_status,
                notification_id=request.id,
            )

    def restore(
        self,
        party_id: UUID,
        requester_id: UUID,
        requester_is_top_approver: bool = False,
    ) -> ArchiveResult:
        """
        Return an archived party to its captured status (``pending`` if none).

        Raises:
            PartyNotFoundError: If party doesn't exist.
            ForbiddenError: If the requester is not top approver.
            InvalidTransitionError: If the party is not archived.
        """
        action = "restore"
        with LogContext.bind(party_id=party_id, actor_id=requester_id):
            party = self._parties.get(party_id)
            self._require_top_approver(party_id, action, requester_is_top_approver)
            self._require_status(party, action, AccountStatus.ARCHIVED)

            target = restore_target(party.previous_account_status)
            self._require_transition(party, action, target)
            updated = self._parties.update(
                party_id,
                {"account_status": target},
                expected={"account_status": AccountStatus.ARCHIVED},
                actor_id=requester_id,
            )

            logger.info(
                "account_restored",
                extra={"party_id": str(party_id), "to_status": target.value},
            )
            return ArchiveResult(
                party_id=party_id,
                account_status=updated.account_status,
                previous_account_status=updated.previous_account_status,
            )
