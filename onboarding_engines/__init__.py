"""
Pure engines for the onboarding lifecycle.

Functions here take frozen kernel records and return frozen results.
They never touch a session or a store.
"""

from onboarding_engines.onboarding import (
    advance_step,
    derive_onboarding_state,
    has_contract_document,
)
from onboarding_engines.requirements import evaluate_requirements
from onboarding_engines.tracer import traced_engine

__all__ = [
    "advance_step",
    "derive_onboarding_state",
    "evaluate_requirements",
    "has_contract_document",
    "traced_engine",
]
