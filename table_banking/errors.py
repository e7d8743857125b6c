"""
Lending Error Hierarchy

Every failure the loan engine reports derives from LendingError so the
HTTP layer can map it to a status code in one place.
"""

from typing import Any, Dict, Optional


class LendingError(Exception):
    """Base exception for all loan engine errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        return self.message


class ValidationError(LendingError, ValueError):
    """Malformed or out-of-range input, identified by field."""

    def __init__(self, field: str, message: str):
        super().__init__(message, {"field": field})
        self.field = field


class ScheduleGenerationError(ValidationError):
    """The repayment schedule would contain no installments."""

    def __init__(self, message: str):
        super().__init__("due_date", message)


class AuthorizationError(LendingError):
    """Role or self-action violation. Never retried automatically."""


class IllegalTransitionError(LendingError):
    """The state machine rejected a transition; re-fetch current state."""

    def __init__(self, entity_id: str, current: str, target: str, message: Optional[str] = None):
        super().__init__(
            message or f"Cannot move {entity_id} from '{current}' to '{target}'",
            {"entity_id": entity_id, "current": current, "target": target}
        )
        self.entity_id = entity_id
        self.current = current
        self.target = target


class ReferentialError(LendingError):
    """A referenced group, loan, payment or membership does not exist."""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity.capitalize()} {entity_id} not found",
                         {"entity": entity, "entity_id": entity_id})
        self.entity = entity
        self.entity_id = entity_id


class PartialFailureError(LendingError):
    """
    A later step failed after an earlier one was committed.

    Committed state is left in place; ``stage`` names the step that failed
    so the caller can invoke the matching repair operation.
    """

    def __init__(self, loan_id: str, stage: str, cause: Optional[BaseException] = None):
        super().__init__(
            f"Loan {loan_id}: {stage} failed after approval was recorded",
            {"loan_id": loan_id, "stage": stage, "cause": str(cause) if cause else None}
        )
        self.loan_id = loan_id
        self.stage = stage
        self.cause = cause
