"""
Pytest fixtures for the pharmacy analytics test suite.

Provides reusable test fixtures including:
- Clean environment and configuration singletons per test
- Default column mapping
- Filter builder factory
- Sample dashboard filter payloads
"""

from __future__ import annotations

from collections.abc import Callable, Generator, Sequence
from typing import Any

import pytest

from pharma_analytics.column_profiles import _reset_column_profiles_for_testing
from pharma_analytics.config import OperatorIndexing, _reset_config_for_testing
from pharma_analytics.utils.column_mapping import ColumnMapping
from pharma_analytics.utils.filter_query_builder import FilterQueryBuilder

CONFIG_ENV_VARS = (
    "PHARMA_FILTERS_STRICT_CATEGORIES",
    "PHARMA_FILTERS_OPERATOR_INDEXING",
    "PHARMA_COLUMN_PROFILES_FILE",
)


@pytest.fixture(autouse=True)
def clean_config(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Run every test with default configuration and fresh singletons."""
    for name in CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    _reset_config_for_testing()
    _reset_column_profiles_for_testing()
    yield
    _reset_config_for_testing()
    _reset_column_profiles_for_testing()


@pytest.fixture
def default_mapping() -> ColumnMapping:
    """Default column mapping (ip / gp aliases)."""
    return ColumnMapping.default()


@pytest.fixture
def make_builder(default_mapping: ColumnMapping) -> Callable[..., FilterQueryBuilder]:
    """Factory creating a builder numbering after the given base params."""

    def _make(
        operators: Sequence[str] = (),
        base_params: Sequence[Any] = (),
        mapping: ColumnMapping | None = None,
        operator_indexing: OperatorIndexing = OperatorIndexing.PER_GROUP,
        strict_categories: bool = False,
    ) -> FilterQueryBuilder:
        return FilterQueryBuilder(
            list(base_params),
            len(base_params) + 1,
            list(operators),
            mapping or default_mapping,
            operator_indexing=operator_indexing,
            strict_categories=strict_categories,
        )

    return _make


@pytest.fixture
def sample_filter_payload() -> dict[str, Any]:
    """Sample dashboard filter payload using every dimension."""
    return {
        "dateRange": {"start": "2024-01-01", "end": "2024-12-31"},
        "pharmacyIds": ["6f1c2a7e-0000-4000-8000-000000000001"],
        "laboratories": ["LabX", "LabY"],
        "categories": [
            {"code": "ANTALGIQUES", "type": "bcb_segment_l1"},
            {"code": "DOULEUR", "type": "bcb_segment_l0"},
        ],
        "productCodes": ["3400930000001"],
        "tvaRates": [2.1, 5.5],
        "reimbursementStatus": "REIMBURSED",
        "isGeneric": "GENERIC",
        "sellPriceRange": {"min": 1, "max": 20},
        "excludedLaboratories": ["LabZ"],
        "excludedProductCodes": ["3400930000002"],
        "exclusionMode": "exclude",
        "filterOperators": ["OR", "AND"],
    }
