"""ORM models for the onboarding kernel."""

from onboarding_kernel.models.notification import NotificationModel
from onboarding_kernel.models.party import Document, Party, PaymentMethod

__all__ = [
    "Document",
    "NotificationModel",
    "Party",
    "PaymentMethod",
]
