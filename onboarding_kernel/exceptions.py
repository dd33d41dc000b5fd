"""
Typed Exception Hierarchy for the Onboarding Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the lifecycle core (web handlers, batch tools, tests) must react
to failures precisely: re-render the current state, deny a UI action, tell
the user a record no longer exists, or retry after a refresh.  Parsing
message strings for that is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        handler.approve_analysis(party_id, actor_id=head_id, actor_is_top_approver=True)
    except ForbiddenError as e:
        deny_action(e.code, e.reason)
    except InvalidTransitionError as e:
        rerender(e.current_state)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    OnboardingKernelError (base)
    |
    +-- InvalidTransitionError
    |   +-- InconsistentWorkflowStateError
    |
    +-- ForbiddenError
    |
    +-- NotFoundError
    |   +-- PartyNotFoundError
    |   +-- NotificationNotFoundError
    |
    +-- StoreError
        +-- StoreConflictError
        +-- StoreUnavailableError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category    | Code                        | When Raised
------------|-----------------------------|------------------------------------------
Transition  | INVALID_TRANSITION          | Precondition on step/status not met
            | INCONSISTENT_WORKFLOW_STATE | Persisted flags contradict each other
------------|-----------------------------|------------------------------------------
Access      | FORBIDDEN                   | Role precondition unmet or party archived
------------|-----------------------------|------------------------------------------
Lookup      | PARTY_NOT_FOUND             | Party ID doesn't exist
            | NOTIFICATION_NOT_FOUND      | Notification missing / no open request
------------|-----------------------------|------------------------------------------
Store       | STORE_CONFLICT              | Concurrent write lost the race
            | STORE_UNAVAILABLE           | Transport or infrastructure failure

===============================================================================
HANDLING PATTERNS
===============================================================================

* InvalidTransitionError / ForbiddenError -- recoverable; render str(e) as an
  explanatory message, never a raw backend error.
* NotFoundError -- recoverable; surface "record no longer exists".
* StoreConflictError -- recoverable; refresh and retry.
* StoreUnavailableError -- generic failure, retryable.  The originating
  driver exception is chained via ``__cause__``.

Nothing here is fatal to the process; every error is scoped to a single
operation.
"""


class OnboardingKernelError(Exception):
    """
    Base exception for all onboarding kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "ONBOARDING_KERNEL_ERROR"


# Transition-related exceptions


class InvalidTransitionError(OnboardingKernelError):
    """Precondition on the current step or account status was not met."""

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        entity_id: str,
        action: str,
        current_state: str,
        reason: str,
    ):
        self.entity_id = entity_id
        self.action = action
        self.current_state = current_state
        self.reason = reason
        super().__init__(
            f"Cannot {action} {entity_id} in state '{current_state}': {reason}"
        )


class InconsistentWorkflowStateError(InvalidTransitionError):
    """
    Persisted workflow flags contradict each other.

    Raised when both the analysis and the registration outcome are marked
    rejected at the same time.  The forward-only pipeline never produces
    that combination, so it indicates an out-of-band write.
    """

    code: str = "INCONSISTENT_WORKFLOW_STATE"

    def __init__(self, entity_id: str, current_state: str, reason: str):
        super().__init__(entity_id, "derive", current_state, reason)


# Access-related exceptions


class ForbiddenError(OnboardingKernelError):
    """The caller lacks the role the transition requires, or the party is archived."""

    code: str = "FORBIDDEN"

    def __init__(self, entity_id: str, action: str, reason: str):
        self.entity_id = entity_id
        self.action = action
        self.reason = reason
        super().__init__(f"Not allowed to {action} {entity_id}: {reason}")


# Lookup-related exceptions


class NotFoundError(OnboardingKernelError):
    """Base exception for missing records."""

    code: str = "NOT_FOUND"


class PartyNotFoundError(NotFoundError):
    """Party with given ID was not found."""

    code: str = "PARTY_NOT_FOUND"

    def __init__(self, party_id: str):
        self.party_id = party_id
        super().__init__(f"Party not found: {party_id}")


class NotificationNotFoundError(NotFoundError):
    """Notification was not found, or no open request matches."""

    code: str = "NOTIFICATION_NOT_FOUND"

    def __init__(self, reference: str, detail: str | None = None):
        self.reference = reference
        self.detail = detail
        message = f"Notification not found: {reference}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


# Store-related exceptions


class StoreError(OnboardingKernelError):
    """Base exception for persistence failures."""

    code: str = "STORE_ERROR"


class StoreConflictError(StoreError):
    """A concurrent write changed the row between read and update."""

    code: str = "STORE_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str, detail: str | None = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.detail = detail
        message = (
            f"Conflicting update on {entity_type} {entity_id}: "
            "record was modified by another request"
        )
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class StoreUnavailableError(StoreError):
    """The backing store could not be reached or failed mid-operation."""

    code: str = "STORE_UNAVAILABLE"

    def __init__(self, operation: str, detail: str | None = None):
        self.operation = operation
        self.detail = detail
        message = f"Store unavailable during {operation}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
