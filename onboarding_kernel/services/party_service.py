"""
Service layer for Party persistence.

Implements the ``PartyStore`` protocol (get a snapshot, write back a
guarded delta) plus the registration helpers used to create executives
and clients and edit their profile.

Returns ``PartySnapshot`` value objects, never ORM entities.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Mapping
from uuid import UUID

from sqlalchemy import update

from onboarding_kernel.domain.party import (
    AccountStatus,
    PartyKind,
    PartyProfile,
    PartySnapshot,
)
from onboarding_kernel.exceptions import PartyNotFoundError, StoreConflictError
from onboarding_kernel.logging_config import get_logger
from onboarding_kernel.models.party import Party
from onboarding_kernel.services.base import (
    BaseService,
    to_column_value,
    translate_store_errors,
)

logger = get_logger("services.party")

# Columns the lifecycle core may write through update().
LIFECYCLE_FIELDS: frozenset[str] = frozenset({
    "workflow_step",
    "analysis_outcome",
    "analysis_reason",
    "has_password",
    "registration_outcome",
    "registration_reason",
    "account_status",
    "previous_account_status",
})

PROFILE_FIELDS: frozenset[str] = frozenset(PartyProfile.__dataclass_fields__)

WRITABLE_FIELDS: frozenset[str] = LIFECYCLE_FIELDS | PROFILE_FIELDS


class PartyService(BaseService[Party]):
    """
    Party store.

    ``update`` issues a single ``UPDATE parties ... WHERE id = :id AND
    <expected>`` statement that also bumps ``version``.  A zero row count
    on an existing row means another request changed one of the expected
    fields first.
    """

    def _get_model(self, party_id: UUID) -> Party:
        with translate_store_errors("party.get", "Party", party_id):
            party = self.session.get(Party, party_id, populate_existing=True)
        if party is None:
            raise PartyNotFoundError(str(party_id))
        return party

    def get(self, party_id: UUID) -> PartySnapshot:
        """
        Get the current snapshot of a party.

        Raises:
            PartyNotFoundError: If party doesn't exist.
            StoreUnavailableError: On transport failure.
        """
        return self._get_model(party_id).to_snapshot()

    def update(
        self,
        party_id: UUID,
        fields: Mapping[str, Any],
        *,
        expected: Mapping[str, Any] | None = None,
        actor_id: UUID | None = None,
    ) -> PartySnapshot:
        """
        Atomically apply ``fields`` iff every ``expected`` field still matches.

        Args:
            party_id: Party to update.
            fields: Column name -> new value.  Enum members are stored by value.
            expected: Column name -> value the row must still hold.
            actor_id: Recorded as updated_by_id.

        Returns:
            The snapshot after the write.

        Raises:
            ValueError: If a field is not writable.
            PartyNotFoundError: If party doesn't exist.
            StoreConflictError: If an expected field no longer matches.
            StoreUnavailableError: On transport failure.
        """
        unknown = set(fields) - WRITABLE_FIELDS
        if unknown:
            raise ValueError(f"Not writable on Party: {sorted(unknown)}")

        values: dict[str, Any] = {k: to_column_value(v) for k, v in fields.items()}
        values["version"] = Party.version + 1
        if actor_id is not None:
            values["updated_by_id"] = actor_id

        stmt = update(Party).where(Party.id == party_id)
        for name, val in (expected or {}).items():
            column = getattr(Party, name)
            if val is None:
                stmt = stmt.where(column.is_(None))
            else:
                stmt = stmt.where(column == to_column_value(val))
        stmt = stmt.values(**values).execution_options(synchronize_session=False)

        with translate_store_errors("party.update", "Party", party_id):
            result = self.session.execute(stmt)
            rowcount = result.rowcount

        if rowcount == 0:
            current = self._get_model(party_id)
            logger.warning(
                "party_update_conflict",
                extra={
                    "party_id": str(party_id),
                    "expected": {k: to_column_value(v) for k, v in (expected or {}).items()},
                    "version": current.version,
                },
            )
            raise StoreConflictError(
                "Party",
                str(party_id),
                detail="expected " + ", ".join(sorted(expected or {})),
            )

        return self._get_model(party_id).to_snapshot()

    def create_party(
        self,
        kind: PartyKind,
        actor_id: UUID,
        profile: PartyProfile | None = None,
        account_status: AccountStatus = AccountStatus.PENDING,
    ) -> PartySnapshot:
        """
        Register a new executive or client at the start of onboarding.

        Returns:
            Created PartySnapshot (step aptitude, outcomes pending).
        """
        party = Party(
            kind=kind.value,
            account_status=account_status.value,
            created_by_id=actor_id,
            **asdict(profile or PartyProfile()),
        )
        with translate_store_errors("party.create", "Party"):
            self.session.add(party)
            self.session.flush()
        logger.info(
            "party_created",
            extra={"party_id": str(party.id), "kind": kind.value},
        )
        return self._get_model(party.id).to_snapshot()

    def update_profile(
        self,
        party_id: UUID,
        actor_id: UUID,
        **changes: str | None,
    ) -> PartySnapshot:
        """
        Edit identity profile fields.

        Note: lifecycle flags cannot be changed here; the checklist picks up
        the new profile on the next derivation.

        Raises:
            ValueError: If a name is not a profile field.
        """
        unknown = set(changes) - PROFILE_FIELDS
        if unknown:
            raise ValueError(f"Not profile fields: {sorted(unknown)}")
        return self.update(party_id, changes, actor_id=actor_id)
