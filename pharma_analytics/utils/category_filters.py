"""Category hierarchy filtering.

Categories arrive as a flat list of (code, type) selections where type is a
hierarchy level (segment levels 0-5 or family). They are grouped by level and
rendered as one array comparison per level:

- inclusion: levels are OR-joined, a product may match at any selected level
- exclusion: levels are AND-joined, a product must match none of them

Unknown types and levels the current query does not map are dropped with a
warning, or rejected when strict is set.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from simple_logger.logger import get_logger

from pharma_analytics.exceptions import UnknownCategoryLevelError
from pharma_analytics.utils.column_mapping import CategoryLevel, ColumnMapping
from pharma_analytics.utils.query_builders import QueryParams

LOGGER = get_logger(name="pharma_analytics.utils.category_filters")


@dataclass(frozen=True)
class CategorySelection:
    """A selected category code at a given hierarchy type."""

    code: str
    type: str


def group_categories_by_level(
    categories: Iterable[CategorySelection],
    strict: bool = False,
) -> dict[CategoryLevel, list[str]]:
    """Partition selected category codes by hierarchy level.

    Levels keep the order in which they were first selected.

    Raises:
        UnknownCategoryLevelError: If strict and a selection has an unknown type
    """
    codes_by_level: dict[CategoryLevel, list[str]] = {}
    for category in categories:
        try:
            level = CategoryLevel(category.type)
        except ValueError as ex:
            msg = f"Unknown category type '{category.type}' for code '{category.code}'"
            if strict:
                raise UnknownCategoryLevelError(msg) from ex
            LOGGER.warning("%s, dropping it from the filter", msg)
            continue
        codes_by_level.setdefault(level, []).append(category.code)
    return codes_by_level


def resolve_category_columns(
    mapping: ColumnMapping,
    categories: Iterable[CategorySelection],
    strict: bool = False,
) -> list[tuple[str, list[str]]]:
    """Resolve selected categories to (column, codes) pairs without binding anything.

    Every strict check happens here, so a rejected selection never leaves a
    bound parameter behind.

    Raises:
        UnknownCategoryLevelError: If strict and a level is unknown or unmapped
    """
    codes_by_level = group_categories_by_level(categories, strict=strict)

    resolved: list[tuple[str, list[str]]] = []
    for level, codes in codes_by_level.items():
        column = mapping.category_column(level)
        if column is None:
            msg = f"Category level '{level.value}' is not mapped for this query"
            if strict:
                raise UnknownCategoryLevelError(msg)
            LOGGER.warning("%s, dropping %s code(s)", msg, len(codes))
            continue
        resolved.append((column, codes))
    return resolved


def render_category_clause(
    params: QueryParams,
    resolved: Iterable[tuple[str, list[str]]],
    exclude: bool = False,
) -> str:
    """Bind one array parameter per resolved level and render the combined condition."""
    parts: list[str] = []
    for column, codes in resolved:
        placeholder = params.add(codes)
        if exclude:
            parts.append(f"{column} <> ALL({placeholder}::text[])")
        else:
            parts.append(f"{column} = ANY({placeholder}::text[])")

    if len(parts) > 1:
        parts = [f"({part})" for part in parts]
    return (" AND " if exclude else " OR ").join(parts)


def build_category_clause(
    params: QueryParams,
    mapping: ColumnMapping,
    categories: Iterable[CategorySelection],
    exclude: bool = False,
    strict: bool = False,
) -> str:
    """Build the combined category condition.

    Args:
        params: QueryParams tracker, one array parameter is added per level
        mapping: Column mapping of the enclosing query
        categories: Selected categories
        exclude: Render the exclusion variant
        strict: Raise instead of dropping unknown or unmapped levels

    Returns:
        SQL fragment such as
        "(gp.bcb_segment_l0 = ANY($3::text[])) OR (gp.bcb_family = ANY($4::text[]))",
        or empty string if no category could be rendered

    Raises:
        UnknownCategoryLevelError: If strict and a level is unknown or unmapped
    """
    resolved = resolve_category_columns(mapping, categories, strict=strict)
    return render_category_clause(params, resolved, exclude=exclude)
