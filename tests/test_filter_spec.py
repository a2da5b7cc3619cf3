"""Tests for dashboard filter specification parsing."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any

import pytest
from fastapi import HTTPException

from pharma_analytics.utils.category_filters import CategorySelection
from pharma_analytics.utils.filter_enums import GenericStatus, ReimbursementStatus
from pharma_analytics.utils.filter_query_builder import BooleanOperator
from pharma_analytics.utils.filter_spec import DateRange, ExclusionMode, FilterSpec, parse_filter_spec
from pharma_analytics.utils.query_builders import NumericRange


class TestParseFilterSpec:
    """Tests for parse_filter_spec function."""

    def test_empty_payload(self) -> None:
        """Test that an empty payload yields an empty selection."""
        assert parse_filter_spec({}) == FilterSpec()

    def test_full_payload(self, sample_filter_payload: dict[str, Any]) -> None:
        """Test parsing of every dimension."""
        spec = parse_filter_spec(sample_filter_payload)

        assert spec.date_range == DateRange(start=date(2024, 1, 1), end=date(2024, 12, 31))
        assert spec.pharmacy_ids == ("6f1c2a7e-0000-4000-8000-000000000001",)
        assert spec.laboratories == ("LabX", "LabY")
        assert spec.categories == (
            CategorySelection(code="ANTALGIQUES", type="bcb_segment_l1"),
            CategorySelection(code="DOULEUR", type="bcb_segment_l0"),
        )
        assert spec.product_codes == ("3400930000001",)
        assert spec.tva_rates == (Decimal("2.1"), Decimal("5.5"))
        assert spec.reimbursement_status is ReimbursementStatus.REIMBURSED
        assert spec.generic_status is GenericStatus.GENERIC
        assert spec.sell_price_range == NumericRange(min=1, max=20)
        assert spec.margin_range is None
        assert spec.excluded_laboratories == ("LabZ",)
        assert spec.excluded_product_codes == ("3400930000002",)
        assert spec.excluded_pharmacy_ids == ()
        assert spec.exclusion_mode is ExclusionMode.EXCLUDE
        assert spec.filter_operators == (BooleanOperator.OR, BooleanOperator.AND)

    def test_datetime_strings_are_truncated_to_dates(self) -> None:
        """Test that ISO datetimes sent by the date picker are accepted."""
        spec = parse_filter_spec({"dateRange": {"start": "2024-03-01T00:00:00Z", "end": "2024-03-31T23:59:59Z"}})

        assert spec.date_range == DateRange(start=date(2024, 3, 1), end=date(2024, 3, 31))

    def test_legacy_generic_value(self) -> None:
        """Test that YES / NO generic values are still understood."""
        assert parse_filter_spec({"isGeneric": "NO"}).generic_status is GenericStatus.PRINCEPS

    @pytest.mark.parametrize(
        ("payload", "message"),
        [
            ({"pharmacyIds": "P1"}, "pharmacyIds must be a list of strings"),
            ({"laboratories": ["LabX", 3]}, "laboratories must be a list of strings"),
            ({"tvaRates": ["5.5"]}, "tvaRates must be a list of numbers"),
            ({"tvaRates": [True]}, "tvaRates must be a list of numbers"),
            ({"categories": [{"code": "A"}]}, "categories must be a list of"),
            ({"excludedCategories": "A"}, "excludedCategories must be a list of"),
            ({"sellPriceRange": {"min": 1}}, "sellPriceRange must be an object with numeric min and max"),
            ({"marginRange": {"min": 50, "max": 10}}, "marginRange: Invalid range"),
            ({"reimbursementStatus": "SOMETIMES"}, "Invalid reimbursement status"),
            ({"isGeneric": "BIO"}, "Invalid generic status"),
            ({"filterOperators": ["OR", "XOR"]}, "Invalid filter operator 'XOR'"),
            ({"filterOperators": "OR"}, "filterOperators must be a list"),
            ({"exclusionMode": "invert"}, "Invalid exclusionMode 'invert'"),
            ({"dateRange": {"start": "2024-13-01", "end": "2024-12-31"}}, "ISO 8601"),
            ({"dateRange": {"start": "2024-12-31", "end": "2024-01-01"}}, "is after end"),
            ({"dateRange": "2024"}, "dateRange must be an object"),
        ],
    )
    def test_malformed_payload_returns_400(self, payload: dict[str, Any], message: str) -> None:
        """Test that malformed content is rejected with a 400 response."""
        with pytest.raises(HTTPException) as exc_info:
            parse_filter_spec(payload)

        assert exc_info.value.status_code == 400
        assert message in exc_info.value.detail

    def test_non_object_payload_returns_400(self) -> None:
        """Test that a JSON array body is rejected."""
        with pytest.raises(HTTPException) as exc_info:
            parse_filter_spec(["pharmacyIds"])  # type: ignore[arg-type]

        assert exc_info.value.status_code == 400
        assert "must be a JSON object" in exc_info.value.detail
