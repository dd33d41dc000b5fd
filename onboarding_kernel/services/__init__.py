"""Stores for the onboarding kernel (write side)."""

from onboarding_kernel.services.notification_service import NotificationService
from onboarding_kernel.services.party_records_service import (
    DocumentService,
    PaymentMethodService,
)
from onboarding_kernel.services.party_service import PartyService

__all__ = [
    "DocumentService",
    "NotificationService",
    "PartyService",
    "PaymentMethodService",
]
