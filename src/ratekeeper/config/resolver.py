"""Limiter Configuration Resolution

Validates a loosely-typed configuration mapping and turns it into an
immutable, strategy-specific `LimiterConfig`.

Schema:

    id          required  str   non-empty
    strategy    required  str   "token_bucket" | "fixed_window"
    limit       required  int   positive
    interval    fixed_window only  str   relative time, e.g. "1 minute"
    rate        optional  {amount: int = 1, interval: str}

Resolution happens in a fixed order: presence and types first (strict pydantic
models), then value constraints, then interval parsing, then the ``rate``
sub-configuration. A ``rate`` without an ``interval`` resolves to ``None``
even when an ``amount`` was given: an amount alone does not describe a refill.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Mapping, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr
from pydantic import ValidationError as PydanticValidationError

from ratekeeper.core.exceptions import (
    IntervalParseError,
    ValidationError,
    ValidationErrorKind,
)
from ratekeeper.domain.interval import IntervalParser
from ratekeeper.domain.value_objects import LimiterConfig, Rate, Strategy

logger = structlog.get_logger(__name__)

_VALUE_ERROR_TYPES = {"string_too_short", "greater_than"}


class RateOptions(BaseModel):
    """Raw ``rate`` sub-configuration of a token bucket."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    amount: StrictInt = Field(default=1, gt=0)
    interval: Optional[StrictStr] = None


class LimiterOptions(BaseModel):
    """Raw limiter configuration, checked for presence and types only."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: StrictStr = Field(min_length=1)
    strategy: StrictStr
    limit: StrictInt = Field(gt=0)
    interval: Optional[StrictStr] = None
    rate: Optional[RateOptions] = None


class ConfigResolver:
    """
    Resolves raw limiter configuration mappings.

    Resolution is pure: no I/O, no locking, and either a complete
    `LimiterConfig` is returned or a `ValidationError` is raised.
    """

    def __init__(self, interval_parser: Optional[IntervalParser] = None):
        self.interval_parser = interval_parser or IntervalParser()

    def resolve(self, raw: Mapping[str, Any]) -> LimiterConfig:
        """
        Validate and normalize a raw configuration.

        Args:
            raw: Mapping following the schema in this module's docstring.

        Returns:
            LimiterConfig: the immutable, resolved configuration.

        Raises:
            ValidationError: With ``kind`` set to MISSING_REQUIRED_FIELD,
                INVALID_TYPE, INVALID_VALUE or INTERVAL_PARSE_FAILURE, and
                ``field``/``value`` naming the offending entry.
        """
        try:
            options = self._validate_schema(raw)
            strategy = self._resolve_strategy(options.strategy)
            interval = self._resolve_interval(options.interval, "interval")
            if strategy is Strategy.FIXED_WINDOW and interval is None:
                raise ValidationError(
                    'The option "interval" is required by the "fixed_window" strategy.',
                    kind=ValidationErrorKind.MISSING_REQUIRED_FIELD,
                    field="interval",
                )
            rate = self._resolve_rate(options.rate)
        except ValidationError as e:
            logger.warning(
                "limiter_config_rejected",
                kind=e.kind.value,
                field=e.field,
                error=e.message,
            )
            raise

        return LimiterConfig(
            id=options.id,
            strategy=strategy,
            limit=options.limit,
            interval=interval,
            rate=rate,
        )

    def _validate_schema(self, raw: Mapping[str, Any]) -> LimiterOptions:
        if not isinstance(raw, Mapping):
            raise ValidationError(
                f"Limiter configuration must be a mapping, got {type(raw).__name__}.",
                kind=ValidationErrorKind.INVALID_TYPE,
                value=raw,
            )
        try:
            return LimiterOptions.model_validate(dict(raw))
        except PydanticValidationError as e:
            raise self._translate(e) from e

    @staticmethod
    def _translate(error: PydanticValidationError) -> ValidationError:
        """Map the first pydantic error onto a `ValidationError`."""
        detail = error.errors()[0]
        field = ".".join(str(part) for part in detail["loc"])
        value = detail.get("input")

        if detail["type"] == "missing":
            return ValidationError(
                f'The required option "{field}" is missing.',
                kind=ValidationErrorKind.MISSING_REQUIRED_FIELD,
                field=field,
            )
        if detail["type"] == "extra_forbidden":
            return ValidationError(
                f'The option "{field}" does not exist.',
                kind=ValidationErrorKind.INVALID_VALUE,
                field=field,
                value=value,
            )
        if detail["type"] in _VALUE_ERROR_TYPES:
            return ValidationError(
                f'The option "{field}" with value {value!r} is invalid: {detail["msg"]}.',
                kind=ValidationErrorKind.INVALID_VALUE,
                field=field,
                value=value,
            )
        return ValidationError(
            f'The option "{field}" with value {value!r} is expected to be of another type: {detail["msg"]}.',
            kind=ValidationErrorKind.INVALID_TYPE,
            field=field,
            value=value,
        )

    @staticmethod
    def _resolve_strategy(value: str) -> Strategy:
        try:
            return Strategy(value)
        except ValueError:
            accepted = ", ".join(f'"{v}"' for v in Strategy.values())
            raise ValidationError(
                f'The option "strategy" with value "{value}" is invalid. Accepted values are: {accepted}.',
                kind=ValidationErrorKind.INVALID_VALUE,
                field="strategy",
                value=value,
            ) from None

    def _resolve_interval(self, value: Optional[str], field: str) -> Optional[timedelta]:
        if value is None:
            return None
        try:
            interval = self.interval_parser.parse(value)
        except IntervalParseError as e:
            raise IntervalParseError(e.expression, fragment=e.fragment, message=e.message, field=field) from e

        if interval <= timedelta(0):
            raise ValidationError(
                f'The option "{field}" with value "{value}" is invalid: the interval must be positive.',
                kind=ValidationErrorKind.INVALID_VALUE,
                field=field,
                value=value,
            )
        return interval

    def _resolve_rate(self, options: Optional[RateOptions]) -> Optional[Rate]:
        if options is None:
            return None
        interval = self._resolve_interval(options.interval, "rate.interval")
        if interval is None:
            return None
        return Rate(interval=interval, amount=options.amount)


def resolve_config(raw: Mapping[str, Any]) -> LimiterConfig:
    """Resolve ``raw`` with a default `ConfigResolver`."""
    return ConfigResolver().resolve(raw)
