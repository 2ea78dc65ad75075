from __future__ import annotations

"""Centralized, structured exception hierarchy for ratekeeper.

Every error raised by the package derives from `RatekeeperError` and carries a
machine-readable `code` for programmatic handling next to a human-readable
`message` for logs and callers.

The hierarchy is designed to:
- Keep configuration problems (`ValidationError`, `ConfigurationError`) apart
  from runtime problems (`LockAcquisitionError`, `StorageError`).
- Carry enough context (field, offending value, fragment) for a caller to fix
  the input without re-deriving it.
- Let callers opt into exception-style admission through
  `RateLimitExceededError`.
"""

from enum import Enum
from typing import TYPE_CHECKING, Any, Final, Optional

if TYPE_CHECKING:
    from ratekeeper.domain.value_objects import RateLimit

__all__: Final = [
    "RatekeeperError",
    "ValidationErrorKind",
    "ValidationError",
    "IntervalParseError",
    "ConfigurationError",
    "LockAcquisitionError",
    "StorageError",
    "RateLimitExceededError",
]


class RatekeeperError(Exception):
    """Base exception class for all custom errors in ratekeeper.

    Attributes:
        message (str): A human-readable error message, suitable for logging.
        code (str): A unique, machine-readable error code.
    """

    message: str
    code: str = "generic_error"

    def __init__(self, message: str, code: str = "generic_error"):
        self.message = message
        self.code = code
        Exception.__init__(self, self.message)

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------


class ValidationErrorKind(str, Enum):
    """Why a raw limiter configuration was rejected."""

    MISSING_REQUIRED_FIELD = "missing_required_field"
    INVALID_TYPE = "invalid_type"
    INVALID_VALUE = "invalid_value"
    INTERVAL_PARSE_FAILURE = "interval_parse_failure"


class ValidationError(RatekeeperError):
    """Raised when a raw limiter configuration violates the schema.

    Always raised before any limiter is constructed; a configuration is either
    fully valid or rejected.

    Attributes:
        kind (ValidationErrorKind): The category of the violation.
        field (str | None): Dotted path of the offending key (e.g. "rate.interval").
        value (Any): The offending value, when there is one.
    """

    def __init__(
        self,
        message: str,
        kind: ValidationErrorKind = ValidationErrorKind.INVALID_VALUE,
        field: Optional[str] = None,
        value: Any = None,
        code: str = "validation_error",
    ):
        self.kind = kind
        self.field = field
        self.value = value
        super().__init__(message, code)


class IntervalParseError(ValidationError):
    """Raised when a relative-time expression cannot be parsed.

    Attributes:
        expression (str): The full expression that was given.
        fragment (str): The part of the expression that could not be understood.
    """

    def __init__(
        self,
        expression: str,
        fragment: Optional[str] = None,
        message: Optional[str] = None,
        field: Optional[str] = None,
    ):
        self.expression = expression
        self.fragment = fragment if fragment is not None else expression
        if message is None:
            message = (
                f'Cannot parse interval "{self.fragment}", please use a valid unit '
                "(seconds, minutes, hours, days, weeks, fortnights, months, years) "
                'with an integer amount, e.g. "5 minutes" or "1 hour 30 minutes".'
            )
        super().__init__(
            message,
            kind=ValidationErrorKind.INTERVAL_PARSE_FAILURE,
            field=field,
            value=expression,
            code="interval_parse_failure",
        )


class ConfigurationError(RatekeeperError):
    """Raised when a limiter cannot be built from an otherwise resolved config.

    Unreachable for configurations that went through `ConfigResolver`; it
    guards dispatch against configs constructed by hand.
    """

    def __init__(self, message: str, code: str = "unknown_strategy"):
        super().__init__(message, code)


# ---------------------------------------------------------------------------
# Runtime errors
# ---------------------------------------------------------------------------


class LockAcquisitionError(RatekeeperError):
    """Raised when a limiter lock could not be acquired in time."""

    def __init__(self, name: str, message: Optional[str] = None, code: str = "lock_acquisition_failed"):
        self.name = name
        if message is None:
            message = f'Could not acquire lock "{name}"'
        super().__init__(message, code)


class StorageError(RatekeeperError):
    """Raised when the limiter state backend fails.

    Wraps underlying driver errors so callers do not depend on a specific
    backend library.
    """

    def __init__(self, message: str, code: str = "storage_error"):
        super().__init__(message, code)


class RateLimitExceededError(RatekeeperError):
    """Raised by `RateLimit.ensure_accepted()` when a decision was a rejection.

    Attributes:
        rate_limit (RateLimit): The rejected decision, with remaining tokens
            and the suggested retry delay.
    """

    def __init__(self, rate_limit: "RateLimit", message: Optional[str] = None, code: str = "rate_limit_exceeded"):
        self.rate_limit = rate_limit
        if message is None:
            message = "Rate limit exceeded"
            if rate_limit.retry_after is not None:
                message += f", retry after {rate_limit.retry_after.total_seconds():g} seconds"
        super().__init__(message, code)
