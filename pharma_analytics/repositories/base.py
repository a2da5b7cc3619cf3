"""Common filter application shared by KPI repositories.

Every KPI query applies the dashboard selection in the same order, so the
user's operator list lines up with the same sequence of groups whatever the
report:

    pharmacies, laboratories, categories, products,
    excluded pharmacies / laboratories / categories / products,
    TVA rates, reimbursement status, generic status

Report-specific range filters are added by the caller afterwards. The
exclusions never join the user's operator chain: the builder AND-s each of
them onto the whole selection.
"""

from __future__ import annotations

from collections.abc import Sequence

from simple_logger.logger import get_logger

from pharma_analytics.utils.column_mapping import ColumnMapping
from pharma_analytics.utils.filter_query_builder import BooleanOperator, FilterQueryBuilder
from pharma_analytics.utils.filter_spec import ExclusionMode, FilterSpec
from pharma_analytics.utils.query_builders import ParamValue

LOGGER = get_logger(name="pharma_analytics.repositories.base")


def create_builder(
    spec: FilterSpec,
    base_params: Sequence[ParamValue],
    column_mapping: ColumnMapping,
    operators_override: Sequence[str | BooleanOperator] | None = None,
) -> FilterQueryBuilder:
    """Create a builder numbering after base_params and apply the common filters.

    Args:
        spec: Parsed dashboard filter selection
        base_params: Fixed leading parameters of the enclosing query
        column_mapping: Columns valid for the enclosing query's joins
        operators_override: Operator tokens to use instead of spec.filter_operators

    Returns:
        FilterQueryBuilder ready for report-specific additions
    """
    operators = spec.filter_operators if operators_override is None else operators_override
    qb = FilterQueryBuilder(base_params, len(base_params) + 1, operators, column_mapping)
    apply_common_filters(qb, spec)
    return qb


def apply_common_filters(qb: FilterQueryBuilder, spec: FilterSpec) -> None:
    """Apply the selection, exclusions (per exclusion mode) and settings to a builder."""
    LOGGER.debug(
        "Applying filters: mode=%s pharmacies=%s laboratories=%s categories=%s products=%s operators=%s",
        spec.exclusion_mode.value,
        len(spec.pharmacy_ids),
        len(spec.laboratories),
        len(spec.categories),
        len(spec.product_codes),
        len(spec.filter_operators),
    )

    if spec.exclusion_mode is ExclusionMode.ONLY:
        # Standard selections are ignored, pharmacies stay as the structural scope
        qb.add_pharmacies(spec.pharmacy_ids)
        qb.add_any_of(
            product_codes=spec.excluded_product_codes,
            laboratories=spec.excluded_laboratories,
            categories=spec.excluded_categories,
        )
    else:
        qb.add_pharmacies(spec.pharmacy_ids)
        qb.add_laboratories(spec.laboratories)
        qb.add_categories(spec.categories)
        qb.add_products(spec.product_codes)

        if spec.exclusion_mode is ExclusionMode.EXCLUDE:
            qb.add_excluded_pharmacies(spec.excluded_pharmacy_ids)
            qb.add_excluded_laboratories(spec.excluded_laboratories)
            qb.add_excluded_categories(spec.excluded_categories)
            qb.add_excluded_products(spec.excluded_product_codes)

    qb.add_tva_rates(spec.tva_rates)
    qb.add_reimbursement_status(spec.reimbursement_status)
    qb.add_generic_status(spec.generic_status)
