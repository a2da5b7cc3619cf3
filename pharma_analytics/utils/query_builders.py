"""Shared query builder utilities for analytics repositories.

This module provides the low-level pieces every filter predicate relies on:
- Parameter index tracking (positional $n placeholders)
- Column expression validation
- Closed numeric range filtering

All values reaching a query go through QueryParams so that emitted
placeholders and the parameter list always agree.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pharma_analytics.exceptions import ParameterIndexError

# Allowed parameter types for SQL query parameters (lists are bound as PostgreSQL arrays)
ParamValue = str | int | float | Decimal | date | datetime | list[Any] | None

# Plain identifier, optionally qualified by a table alias (e.g. "ip.pharmacy_id")
COLUMN_EXPRESSION_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")


def validate_column_expression(column: str) -> str:
    """Validate a column expression before it is interpolated into SQL.

    Args:
        column: Column name, optionally alias-qualified

    Returns:
        The validated column expression

    Raises:
        ValueError: If the expression is not a plain identifier (SQL injection prevention)
    """
    if not isinstance(column, str) or not COLUMN_EXPRESSION_PATTERN.match(column):
        raise ValueError(f"Invalid column expression '{column}'. Expected 'column' or 'alias.column'")
    return column


@dataclass
class QueryParams:
    """Tracks query parameters and their indices for SQL parameterization.

    Placeholders continue numbering after the enclosing query's own fixed
    parameters (e.g. date range bounds passed as base_params).

    Usage:
        params = QueryParams(base_params=[start_date, end_date])

        placeholder = params.add(["LabX", "LabY"])  # "$3"

        # Get all params for query execution (base params first)
        query_params = params.get_params()
    """

    base_params: Sequence[ParamValue] = ()
    start_index: int | None = None
    _params: list[ParamValue] = field(default_factory=list, init=False)
    _next_index: int = field(default=1, init=False)

    def __post_init__(self) -> None:
        self.base_params = list(self.base_params)
        expected = len(self.base_params) + 1
        if self.start_index is None:
            self.start_index = expected
        elif self.start_index != expected:
            raise ParameterIndexError(
                f"Placeholder start index ${self.start_index} does not follow {len(self.base_params)} "
                f"base parameter(s); expected ${expected}"
            )
        self._next_index = self.start_index

    @property
    def next_index(self) -> int:
        """Index the next added parameter will receive (1-based for PostgreSQL)."""
        return self._next_index

    def add(self, value: ParamValue) -> str:
        """Add a parameter and return its placeholder.

        Args:
            value: Parameter value; a list is bound as a single array parameter

        Returns:
            PostgreSQL parameter placeholder (e.g., "$3")
        """
        idx = self._next_index
        self._params.append(value)
        self._next_index += 1
        return f"${idx}"

    def get_params(self) -> list[ParamValue]:
        """Get all parameters for query execution.

        Base parameters first, then bound filter values in placeholder order.
        """
        return [*self.base_params, *self._params]

    def get_count(self) -> int:
        """Get number of parameters added after the base parameters."""
        return len(self._params)


@dataclass(frozen=True)
class NumericRange:
    """Closed numeric interval used by price, discount and margin filters."""

    min: float | int | Decimal
    max: float | int | Decimal

    def __post_init__(self) -> None:
        if self.min > self.max:
            raise ValueError(f"Invalid range: min ({self.min}) is greater than max ({self.max})")


def build_range_filter(
    params: QueryParams,
    value_range: NumericRange | None,
    column: str,
) -> str:
    """Build closed interval filter SQL.

    Args:
        params: QueryParams tracker (min then max are added)
        value_range: Interval to filter on, or None for no filter
        column: Column expression the interval applies to

    Returns:
        SQL fragment (e.g., "lp.price_with_tax >= $3 AND lp.price_with_tax <= $4")
        Returns empty string if value_range is None

    Raises:
        ValueError: If column is not a valid column expression
    """
    validate_column_expression(column)

    if value_range is None:
        return ""

    min_placeholder = params.add(value_range.min)
    max_placeholder = params.add(value_range.max)
    return f"{column} >= {min_placeholder} AND {column} <= {max_placeholder}"
