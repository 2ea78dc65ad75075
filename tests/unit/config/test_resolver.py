"""Unit tests for limiter configuration resolution.

These tests verify the schema (presence, types, allowed values), interval
normalization, and the handling of the nested ``rate`` sub-configuration.
"""

import dataclasses
from datetime import timedelta

import pytest

from ratekeeper.config.resolver import ConfigResolver, resolve_config
from ratekeeper.core.exceptions import IntervalParseError, ValidationError, ValidationErrorKind
from ratekeeper.domain.value_objects import LimiterConfig, Rate, Strategy


@pytest.fixture
def resolver():
    return ConfigResolver()


class TestValidConfigurations:
    """Test suite for configurations that resolve."""

    def test_fixed_window(self, resolver, fixed_window_config):
        # Act
        config = resolver.resolve(fixed_window_config)

        # Assert
        assert config == LimiterConfig(
            id="api",
            strategy=Strategy.FIXED_WINDOW,
            limit=10,
            interval=timedelta(minutes=1),
            rate=None,
        )

    def test_token_bucket_with_rate(self, resolver, token_bucket_config):
        config = resolver.resolve(token_bucket_config)

        assert config.strategy is Strategy.TOKEN_BUCKET
        assert config.limit == 10
        assert config.interval is None
        assert config.rate == Rate(interval=timedelta(seconds=10), amount=5)

    def test_rate_amount_defaults_to_one(self, resolver):
        config = resolver.resolve(
            {"id": "a", "strategy": "token_bucket", "limit": 3, "rate": {"interval": "1 second"}}
        )

        assert config.rate == Rate(interval=timedelta(seconds=1), amount=1)

    def test_rate_without_interval_resolves_to_none(self, resolver):
        """An explicit amount without an interval still yields no rate."""
        config = resolver.resolve(
            {"id": "a", "strategy": "token_bucket", "limit": 3, "rate": {"amount": 5}}
        )

        assert config.rate is None

    def test_rate_with_null_interval_resolves_to_none(self, resolver):
        config = resolver.resolve(
            {"id": "a", "strategy": "token_bucket", "limit": 3, "rate": {"amount": 5, "interval": None}}
        )

        assert config.rate is None

    def test_token_bucket_does_not_require_interval(self, resolver):
        config = resolver.resolve({"id": "a", "strategy": "token_bucket", "limit": 3})

        assert config.interval is None
        assert config.rate is None

    def test_interval_is_normalized_for_token_bucket_too(self, resolver):
        config = resolver.resolve(
            {"id": "a", "strategy": "token_bucket", "limit": 3, "interval": "2 hours"}
        )

        assert config.interval == timedelta(hours=2)

    def test_resolved_config_is_immutable(self, resolver, fixed_window_config):
        config = resolver.resolve(fixed_window_config)

        with pytest.raises(dataclasses.FrozenInstanceError):
            config.id = "other"

    def test_input_is_not_mutated(self, resolver, token_bucket_config):
        snapshot = {**token_bucket_config, "rate": dict(token_bucket_config["rate"])}

        resolver.resolve(token_bucket_config)

        assert token_bucket_config == snapshot

    def test_module_level_helper(self, fixed_window_config):
        assert resolve_config(fixed_window_config).id == "api"


class TestMissingFields:
    """Test suite for absent required options."""

    @pytest.mark.parametrize("field", ["id", "strategy", "limit"])
    def test_required_fields(self, resolver, fixed_window_config, field):
        # Arrange
        del fixed_window_config[field]

        # Act
        with pytest.raises(ValidationError) as exc_info:
            resolver.resolve(fixed_window_config)

        # Assert
        assert exc_info.value.kind is ValidationErrorKind.MISSING_REQUIRED_FIELD
        assert exc_info.value.field == field
        assert field in str(exc_info.value)

    def test_fixed_window_requires_interval(self, resolver, fixed_window_config):
        del fixed_window_config["interval"]

        with pytest.raises(ValidationError) as exc_info:
            resolver.resolve(fixed_window_config)

        assert exc_info.value.kind is ValidationErrorKind.MISSING_REQUIRED_FIELD
        assert exc_info.value.field == "interval"


class TestInvalidValues:
    """Test suite for present options with wrong types or values."""

    @pytest.mark.parametrize("strategy", ["sliding_window", "TOKEN_BUCKET", ""])
    def test_unknown_strategy(self, resolver, fixed_window_config, strategy):
        fixed_window_config["strategy"] = strategy

        with pytest.raises(ValidationError) as exc_info:
            resolver.resolve(fixed_window_config)

        assert exc_info.value.kind is ValidationErrorKind.INVALID_VALUE
        assert exc_info.value.field == "strategy"
        assert exc_info.value.value == strategy
        assert "token_bucket" in str(exc_info.value)

    @pytest.mark.parametrize(
        "field, value",
        [
            ("id", 42),
            ("strategy", 1),
            ("limit", "10"),
            ("limit", 10.0),
            ("limit", True),
            ("interval", 60),
            ("rate", "5 per second"),
        ],
    )
    def test_wrong_types(self, resolver, token_bucket_config, field, value):
        token_bucket_config[field] = value

        with pytest.raises(ValidationError) as exc_info:
            resolver.resolve(token_bucket_config)

        assert exc_info.value.kind is ValidationErrorKind.INVALID_TYPE
        assert exc_info.value.field == field
        assert exc_info.value.value == value

    def test_wrong_type_in_rate(self, resolver, token_bucket_config):
        token_bucket_config["rate"] = {"amount": "5", "interval": "1 second"}

        with pytest.raises(ValidationError) as exc_info:
            resolver.resolve(token_bucket_config)

        assert exc_info.value.kind is ValidationErrorKind.INVALID_TYPE
        assert exc_info.value.field == "rate.amount"

    @pytest.mark.parametrize(
        "field, value",
        [("id", ""), ("limit", 0), ("limit", -5), ("interval", "0 seconds")],
    )
    def test_out_of_range_values(self, resolver, fixed_window_config, field, value):
        fixed_window_config[field] = value

        with pytest.raises(ValidationError) as exc_info:
            resolver.resolve(fixed_window_config)

        assert exc_info.value.kind is ValidationErrorKind.INVALID_VALUE
        assert exc_info.value.field == field

    def test_unknown_option(self, resolver, fixed_window_config):
        fixed_window_config["burst"] = 5

        with pytest.raises(ValidationError) as exc_info:
            resolver.resolve(fixed_window_config)

        assert exc_info.value.kind is ValidationErrorKind.INVALID_VALUE
        assert exc_info.value.field == "burst"

    def test_not_a_mapping(self, resolver):
        with pytest.raises(ValidationError) as exc_info:
            resolver.resolve(["id", "api"])

        assert exc_info.value.kind is ValidationErrorKind.INVALID_TYPE


class TestIntervalFailures:
    """Test suite for unparseable interval expressions."""

    def test_interval(self, resolver, fixed_window_config):
        fixed_window_config["interval"] = "abc"

        with pytest.raises(IntervalParseError) as exc_info:
            resolver.resolve(fixed_window_config)

        assert exc_info.value.kind is ValidationErrorKind.INTERVAL_PARSE_FAILURE
        assert exc_info.value.field == "interval"
        assert "abc" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, IntervalParseError)

    def test_rate_interval(self, resolver, token_bucket_config):
        token_bucket_config["rate"]["interval"] = "every now and then"

        with pytest.raises(ValidationError) as exc_info:
            resolver.resolve(token_bucket_config)

        assert exc_info.value.kind is ValidationErrorKind.INTERVAL_PARSE_FAILURE
        assert exc_info.value.field == "rate.interval"
        assert "every" in str(exc_info.value)

    @pytest.mark.parametrize("interval", ["10000 years", "99999999999999 seconds"])
    def test_out_of_range_interval(self, resolver, fixed_window_config, interval):
        fixed_window_config["interval"] = interval

        with pytest.raises(ValidationError) as exc_info:
            resolver.resolve(fixed_window_config)

        assert exc_info.value.kind is ValidationErrorKind.INTERVAL_PARSE_FAILURE
        assert exc_info.value.field == "interval"
        assert "too large" in str(exc_info.value)
