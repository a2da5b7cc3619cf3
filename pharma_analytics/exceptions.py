"""Errors raised while composing analytics filter predicates."""

from __future__ import annotations


class ParameterIndexError(ValueError):
    """Raised when a placeholder start index does not follow the caller's fixed parameters."""


class UnknownCategoryLevelError(ValueError):
    """Raised in strict mode when a category cannot be resolved to a mapped hierarchy column."""


class BuilderConsumedError(RuntimeError):
    """Raised when a filter builder is modified after its conditions were rendered."""
