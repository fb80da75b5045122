"""Exceptions for programmer-error conditions.

Recoverable outcomes (unfillable slots, constraint violations, oversized or
unsafe evaluation input) are reported through result objects instead.
"""


class FluencyError(Exception):
    """Base class for fluency-engine errors."""


class InvalidInputError(FluencyError, ValueError):
    """Raised when a caller passes values outside a function's contract."""


class InvalidTemplateError(InvalidInputError):
    """Raised when a task template cannot be composed at all (no slots, bad weights)."""
