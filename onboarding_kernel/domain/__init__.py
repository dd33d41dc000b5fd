"""
Pure domain layer.

This module contains pure value objects and protocols with NO
dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

All domain objects are immutable and deterministic.
"""

from onboarding_kernel.domain.archive import (
    ArchiveDecision,
    ArchiveResult,
    capture_previous_status,
    restore_target,
)
from onboarding_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from onboarding_kernel.domain.notification import (
    NOTIFICATION_TRANSITIONS,
    OPEN_NOTIFICATION_STATUSES,
    Notification,
    NotificationDraft,
    NotificationFilter,
    NotificationStatus,
    NotificationType,
)
from onboarding_kernel.domain.onboarding import (
    REQUIREMENT_ORDER,
    OnboardingAction,
    OnboardingState,
    OnboardingTransitionResult,
    Requirement,
    RequirementEvaluation,
)
from onboarding_kernel.domain.party import (
    ACCOUNT_STATUS_TRANSITIONS,
    ARCHIVAL_STATUSES,
    STEP_ORDER,
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
    Role,
    WorkflowFlags,
    WorkflowStep,
)
from onboarding_kernel.domain.stores import (
    DocumentStore,
    NotificationChannel,
    PartyStore,
    PaymentMethodStore,
)
