"""Limiter configuration resolution."""

from .resolver import ConfigResolver, LimiterOptions, RateOptions, resolve_config

__all__ = ["ConfigResolver", "LimiterOptions", "RateOptions", "resolve_config"]
