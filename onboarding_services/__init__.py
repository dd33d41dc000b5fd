"""Orchestrators for onboarding transitions and the archive workflow."""

from onboarding_services.archive_workflow import ArchiveWorkflow
from onboarding_services.onboarding_transitions import OnboardingTransitionHandler

__all__ = [
    "ArchiveWorkflow",
    "OnboardingTransitionHandler",
]
