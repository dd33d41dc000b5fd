"""
Requirement checklist evaluator.

Responsibility:
    Decide which onboarding prerequisites a party still lacks, from its
    identity profile and linked payment methods and documents.  Produces
    the ordered list of human-readable labels the UI renders and the
    ``is_apt`` bit the state deriver consumes.

Architecture position:
    Engines -- pure functions over frozen kernel records.  Labels and the
    accepted identity subtypes come from the ``LabelCatalog``.

Invariants enforced:
    - Rules are evaluated in ``REQUIREMENT_ORDER``; ``missing`` follows it.
    - Blank or whitespace-only strings count as absent.
    - Rejected documents never satisfy a rule.
    - Same inputs always give the same evaluation.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence

from onboarding_config import LabelCatalog, get_active_config
from onboarding_engines.tracer import traced_engine
from onboarding_kernel.domain.onboarding import (
    REQUIREMENT_ORDER,
    Requirement,
    RequirementEvaluation,
)
from onboarding_kernel.domain.party import (
    DocumentCategory,
    DocumentRecord,
    PartyProfile,
    PaymentMethodRecord,
)


def _present(value: str | None) -> bool:
    return value is not None and bool(value.strip())


def has_full_postal_address(profile: PartyProfile) -> bool:
    """Street and postal code at minimum."""
    return _present(profile.street) and _present(profile.postal_code)


def has_active_primary_payment_method(methods: Iterable[PaymentMethodRecord]) -> bool:
    return any(m.is_primary and m.is_valid for m in methods)


def has_identity_document(
    documents: Iterable[DocumentRecord],
    identity_subtypes: frozenset[str],
) -> bool:
    return any(
        d.category == DocumentCategory.IDENTITY
        and d.counts_toward_requirements
        and d.doc_type in identity_subtypes
        for d in documents
    )


def has_residence_proof(documents: Iterable[DocumentRecord]) -> bool:
    return any(
        d.category == DocumentCategory.RESIDENCE_PROOF and d.counts_toward_requirements
        for d in documents
    )


def _rules(
    profile: PartyProfile,
    payment_methods: Sequence[PaymentMethodRecord],
    documents: Sequence[DocumentRecord],
    catalog: LabelCatalog,
) -> dict[Requirement, Callable[[], bool]]:
    return {
        Requirement.FULL_NAME: lambda: _present(profile.full_name),
        Requirement.TAX_DOCUMENT: lambda: _present(profile.tax_document),
        Requirement.EMAIL: lambda: _present(profile.email),
        Requirement.PHONE: lambda: _present(profile.phone),
        Requirement.POSTAL_ADDRESS: lambda: has_full_postal_address(profile),
        Requirement.PRIMARY_PAYMENT_METHOD: (
            lambda: has_active_primary_payment_method(payment_methods)
        ),
        Requirement.IDENTITY_DOCUMENT: (
            lambda: has_identity_document(documents, catalog.identity_subtypes)
        ),
        Requirement.RESIDENCE_PROOF: lambda: has_residence_proof(documents),
    }


@traced_engine("requirements", "1.0", fingerprint_fields=("profile", "payment_methods", "documents"))
def evaluate_requirements(
    profile: PartyProfile,
    payment_methods: Sequence[PaymentMethodRecord],
    documents: Sequence[DocumentRecord],
    catalog: LabelCatalog | None = None,
) -> RequirementEvaluation:
    """
    Evaluate the onboarding checklist for one party.

    Args:
        profile: Identity fields of the party.
        payment_methods: Payment methods linked to the party.
        documents: Documents linked to the party.
        catalog: Label catalog; defaults to the active configuration.

    Returns:
        RequirementEvaluation with unmet requirements and their labels in
        checklist order.
    """
    catalog = catalog or get_active_config()
    rules = _rules(profile, tuple(payment_methods), tuple(documents), catalog)

    unmet = tuple(req for req in REQUIREMENT_ORDER if not rules[req]())
    return RequirementEvaluation(
        unmet=unmet,
        missing=tuple(catalog.requirement_label(req) for req in unmet),
    )
