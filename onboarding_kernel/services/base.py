"""
BaseService -- abstract base for all kernel stores.

Responsibility:
    Provides the common constructor and session-handling contract for
    every store in the kernel layer, and the translation of driver
    exceptions into the kernel's typed store errors.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit or rollback themselves.
    - No sqlalchemy exception escapes a store untranslated: conflicts
      become StoreConflictError, everything else StoreUnavailableError,
      with the original chained as ``__cause__``.
"""

from abc import ABC
from contextlib import contextmanager
from typing import Any, Generic, Iterator, TypeVar
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from onboarding_kernel.db.base import Base
from onboarding_kernel.exceptions import StoreConflictError, StoreUnavailableError
from onboarding_kernel.logging_config import get_logger

ModelType = TypeVar("ModelType", bound=Base)

logger = get_logger("services.store")


@contextmanager
def translate_store_errors(
    operation: str,
    entity_type: str,
    entity_id: UUID | str | None = None,
) -> Iterator[None]:
    """Re-raise sqlalchemy errors as kernel store errors.

    Kernel errors raised inside the block pass through untouched.
    """
    try:
        yield
    except (IntegrityError, StaleDataError) as exc:
        logger.warning(
            "store_conflict",
            extra={"operation": operation, "entity_type": entity_type, "entity_id": str(entity_id)},
        )
        raise StoreConflictError(
            entity_type,
            str(entity_id),
            detail=str(getattr(exc, "orig", None) or exc),
        ) from exc
    except SQLAlchemyError as exc:
        logger.error(
            "store_unavailable",
            extra={"operation": operation, "entity_type": entity_type, "entity_id": str(entity_id)},
            exc_info=True,
        )
        raise StoreUnavailableError(operation, detail=type(exc).__name__) from exc


def to_column_value(value: Any) -> Any:
    """Enum members are stored by value; everything else as-is."""
    return getattr(value, "value", value)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel stores.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
    """

    def __init__(self, session: Session):
        self.session = session
