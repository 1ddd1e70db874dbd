"""
Error taxonomy for the recommendation engine.

Degraded distance data and empty candidate pools are not errors; they are
reported in the result and the audit snapshot instead.
"""

from typing import Any, Optional


class DispatchError(Exception):
    pass


class NotFoundError(DispatchError):
    """Job, contractor, assignment or weights-config version does not exist."""

    def __init__(self, entity: str, identifier: Any):
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} {identifier} not found")


class ValidationFailure(DispatchError):
    """Malformed input. Raised before any write, never partially applied."""

    def __init__(self, errors: list[str] | str):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class InvalidStateTransition(ValidationFailure):
    pass


class ConcurrencyConflict(DispatchError):
    """Version acquisition kept losing races after the bounded retries."""
    pass


class PersistenceUnavailable(DispatchError):
    """Reads required to proceed failed; no partial response is produced."""
    pass


class AuditPersistenceError(DispatchError):
    """
    The audit write failed after the ranking was final.
    The computed response is attached so callers can still use it.
    """

    def __init__(self, request_id: str, response: Optional[Any] = None):
        self.request_id = request_id
        self.response = response
        super().__init__(f"Failed to persist audit record for request {request_id}")
