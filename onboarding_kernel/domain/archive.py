"""
Archive domain types (``onboarding_kernel.domain.archive``).

Pure helpers for the archive/restore protocol: which status to capture
before archiving and which status to restore to afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from onboarding_kernel.domain.party import (
    ARCHIVAL_STATUSES,
    DEFAULT_RESTORE_STATUS,
    AccountStatus,
)


class ArchiveDecision(str, Enum):
    """Top approver's answer to an archive request."""

    ACCEPTED = "accepted"
    DENIED = "denied"


@dataclass(frozen=True)
class ArchiveResult:
    """Account status after an archive workflow operation."""

    party_id: UUID
    account_status: AccountStatus
    previous_account_status: AccountStatus | None
    notification_id: UUID | None = None
    applied: bool = True


def capture_previous_status(
    current: AccountStatus,
    previous: AccountStatus | None,
) -> AccountStatus | None:
    """Status to store in ``previous_account_status`` before archiving.

    An archival status is never captured: if the party is already
    archiving or archived, the value captured earlier is kept.
    """
    if current in ARCHIVAL_STATUSES:
        return previous
    return current


def restore_target(previous: AccountStatus | None) -> AccountStatus:
    """Status a party returns to when archiving is denied or reverted."""
    if previous is None or previous in ARCHIVAL_STATUSES:
        return DEFAULT_RESTORE_STATUS
    return previous
