"""
Onboarding Kernel

Lifecycle core for executive and client parties:
- Requirement checklist and onboarding step derivation (pure)
- Guarded, idempotent onboarding transitions
- Two-party archive/restore protocol mediated by notifications
- Typed error taxonomy and structured logging
"""

__version__ = "0.1.0"
