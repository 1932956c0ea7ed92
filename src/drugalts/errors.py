"""
Exceptions raised by the alternatives engine.

Each failure mode gets its own type so callers (the CLI, an API layer)
can tell a bad request from a missing medicine from a storage outage.
An empty result is not an error and has no exception here.
"""


class AlternativesError(Exception):
    """Base class for all alternatives engine errors."""


class InvalidInputError(AlternativesError, ValueError):
    """The request is malformed (missing target, score or size out of range)."""


class MedicineNotFoundError(AlternativesError):
    """The target medicine id does not resolve to a catalog entry."""

    def __init__(self, medicine_id: str):
        self.medicine_id = medicine_id
        super().__init__(f"Medicine not found: {medicine_id}")


class StoreUnavailableError(AlternativesError):
    """A mandatory catalog store call failed or timed out."""

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Catalog store unavailable during {operation}: {reason}")


class RequestCancelledError(AlternativesError):
    """The caller cancelled the request before it completed."""
