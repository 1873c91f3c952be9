"""
Exception hierarchy for the Pricing Step Engine.

Every failure carries a stable error code so the surrounding screens can
react to a category of failure rather than to a message:

- PRICING_VALIDATION: a step is missing required fields
- PRICING_IMPORT_REJECTED: an import batch references unknown coverages or states
- PRICING_PERSISTENCE: a write to the step store failed
- PRICING_NOT_FOUND: a step id is not part of the loaded sequence
- PRICING_STALE_SEQUENCE: the step collection changed since it was loaded
- PRICING_IMPORT_INCOMPLETE: an import stopped partway through its writes
- PRICING_ORDERING: the order values no longer form a total order
"""

import json
from typing import Any

__all__ = [
    "PricingError",
    "StepValidationError",
    "ImportRejectedError",
    "CoverageResolutionError",
    "JurisdictionError",
    "PersistenceError",
    "StepNotFoundError",
    "StaleSequenceError",
    "ImportIncompleteError",
    "OrderingError",
]


class PricingError(Exception):
    """
    Base exception for all pricing engine errors.

    Attributes:
        code: Deterministic error code
        message: Human-readable description
        details: Additional context for the caller
    """

    code: str = "PRICING_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details if details is not None else {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for display or API responses."""
        return {"code": self.code, "message": self.message, "details": self.details}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class StepValidationError(PricingError):
    """A step (or imported row) is missing a required field."""

    code = "PRICING_VALIDATION"

    def __init__(self, errors: list[str], details: dict[str, Any] | None = None) -> None:
        self.errors = list(errors)
        merged = {"errors": self.errors, **(details or {})}
        super().__init__("; ".join(self.errors) or "Invalid step", merged)


class ImportRejectedError(PricingError):
    """An import batch was rejected before any write."""

    code = "PRICING_IMPORT_REJECTED"


class CoverageResolutionError(ImportRejectedError):
    """One or more coverage names in an import have no matching coverage."""

    def __init__(self, names: list[str]) -> None:
        self.names = list(names)
        super().__init__(
            "Invalid coverage codes: " + ", ".join(self.names),
            {"unresolved_coverages": self.names},
        )


class JurisdictionError(ImportRejectedError):
    """One or more jurisdiction codes in an import are not recognised."""

    def __init__(self, codes: list[str]) -> None:
        self.codes = list(codes)
        super().__init__(
            "Invalid states: " + ", ".join(self.codes),
            {"invalid_states": self.codes},
        )


class PersistenceError(PricingError):
    """A create, update, delete or reorder write failed."""

    code = "PRICING_PERSISTENCE"


class StepNotFoundError(PricingError):
    """The requested step is not in the sequence or the store."""

    code = "PRICING_NOT_FOUND"

    def __init__(self, step_id: str) -> None:
        self.step_id = step_id
        super().__init__(f"Step not found: {step_id}", {"step_id": step_id})


class StaleSequenceError(PricingError):
    """The step collection was modified since the caller's base version."""

    code = "PRICING_STALE_SEQUENCE"

    def __init__(self, expected: int, actual: int | None = None) -> None:
        self.expected = expected
        self.actual = actual
        message = f"Step sequence changed since version {expected}"
        if actual is not None:
            message += f" (now {actual})"
        super().__init__(message + "; reload before retrying", {"expected": expected, "actual": actual})


class ImportIncompleteError(PricingError):
    """An import stopped partway through its ladder of writes."""

    code = "PRICING_IMPORT_INCOMPLETE"

    def __init__(
        self,
        message: str,
        cursor: int,
        total: int,
        applied: list[Any] | None = None,
        rolled_back: bool = False,
    ) -> None:
        self.cursor = cursor
        self.total = total
        self.applied = list(applied or [])
        self.rolled_back = rolled_back
        super().__init__(
            message,
            {
                "cursor": cursor,
                "total": total,
                "applied": len(self.applied),
                "rolled_back": rolled_back,
            },
        )


class OrderingError(PricingError):
    """The order values of a sequence are not unique and dense."""

    code = "PRICING_ORDERING"
