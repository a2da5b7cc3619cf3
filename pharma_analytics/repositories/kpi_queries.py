"""KPI query builders for the sales, purchases and stock dashboards.

Each builder returns the complete SQL text and its parameter list; the
dashboard filter fragment is spliced after the query's fixed date
predicates. Optional joins are only added when the fragment references
their alias.
"""

from __future__ import annotations

import re
from datetime import date

from simple_logger.logger import get_logger

from pharma_analytics.column_profiles import (
    ACHATS_PROFILE,
    SALES_MV_PROFILE,
    STOCK_MV_PROFILE,
    get_column_profiles,
)
from pharma_analytics.repositories.base import create_builder
from pharma_analytics.utils.filter_query_builder import FilterQueryBuilder
from pharma_analytics.utils.filter_spec import DateRange, FilterSpec
from pharma_analytics.utils.query_builders import ParamValue

LOGGER = get_logger(name="pharma_analytics.repositories.kpi_queries")

# Range filters on latest prices (lp) and catalogue prices (gp)
PURCHASE_PRICE_NET_COLUMN = "lp.weighted_average_price"
PURCHASE_PRICE_GROSS_COLUMN = "gp.prix_achat_ht_fabricant"
SELL_PRICE_COLUMN = "lp.price_with_tax"
DISCOUNT_COLUMN = "lp.discount_percentage"
MARGIN_COLUMN = "lp.margin_percentage"


def _references_alias(sql: str, alias: str) -> bool:
    return re.search(rf"\b{re.escape(alias)}\.", sql) is not None


def _require_date_range(spec: FilterSpec) -> DateRange:
    if spec.date_range is None:
        raise ValueError("A date range is required for this KPI query")
    return spec.date_range


def _add_price_ranges(qb: FilterQueryBuilder, spec: FilterSpec) -> None:
    qb.add_range_filter(spec.purchase_price_net_range, PURCHASE_PRICE_NET_COLUMN)
    qb.add_range_filter(spec.purchase_price_gross_range, PURCHASE_PRICE_GROSS_COLUMN)
    qb.add_range_filter(spec.sell_price_range, SELL_PRICE_COLUMN)
    qb.add_range_filter(spec.discount_range, DISCOUNT_COLUMN)
    qb.add_range_filter(spec.margin_range, MARGIN_COLUMN)


def build_sales_query(spec: FilterSpec) -> tuple[str, list[ParamValue]]:
    """Generate the sales quantity / amount (HT) query over mv_sales_enriched.

    Args:
        spec: Dashboard filter selection, date_range required

    Returns:
        (query, params) with $1/$2 bound to the date range

    Raises:
        ValueError: If spec has no date range
    """
    date_range = _require_date_range(spec)
    qb = create_builder(spec, [date_range.start, date_range.end], get_column_profiles().get(SALES_MV_PROFILE))
    _add_price_ranges(qb, spec)

    conditions = qb.get_conditions()
    joins = []
    if _references_alias(conditions, "lp"):
        joins.append("LEFT JOIN mv_latest_product_prices lp ON mv.internal_product_id = lp.product_id")
    if _references_alias(conditions, "gp"):
        joins.append("LEFT JOIN data_globalproduct gp ON mv.code_13_ref = gp.code_13_ref")
    join_clause = "\n        ".join(joins)

    query = f"""
        SELECT
            COALESCE(SUM(mv.quantity), 0) as quantite_vendue,
            COALESCE(SUM(mv.montant_ht), 0) as montant_ht
        FROM mv_sales_enriched mv
        {join_clause}
        WHERE mv.sale_date >= $1::date
          AND mv.sale_date <= $2::date
          {conditions}
    """
    params = qb.get_params()
    LOGGER.debug("Built sales query with %s parameter(s), %s optional join(s)", len(params), len(joins))
    return query, params


def build_purchases_query(spec: FilterSpec) -> tuple[str, list[ParamValue]]:
    """Generate the purchased quantity / amount (HT) query over received order lines.

    Args:
        spec: Dashboard filter selection, date_range required

    Returns:
        (query, params) with $1/$2 bound to the delivery date range

    Raises:
        ValueError: If spec has no date range
    """
    date_range = _require_date_range(spec)
    qb = create_builder(spec, [date_range.start, date_range.end], get_column_profiles().get(ACHATS_PROFILE))

    conditions = qb.get_conditions()
    global_product_join = ""
    if _references_alias(conditions, "gp"):
        global_product_join = "LEFT JOIN data_globalproduct gp ON ip.code_13_ref_id = gp.code_13_ref"

    query = f"""
        SELECT
            COALESCE(SUM(po.qte_r), 0) as quantite_achetee,
            COALESCE(SUM(po.qte_r * COALESCE(lp.weighted_average_price, 0)), 0) as montant_ht
        FROM data_productorder po
        INNER JOIN data_order o ON po.order_id = o.id
        INNER JOIN data_internalproduct ip ON po.product_id = ip.id
        {global_product_join}
        LEFT JOIN mv_latest_product_prices lp ON po.product_id = lp.product_id
        WHERE o.delivery_date >= $1::date
          AND o.delivery_date <= $2::date
          AND o.delivery_date IS NOT NULL
          AND po.qte_r > 0
          {conditions}
    """
    params = qb.get_params()
    LOGGER.debug("Built purchases query with %s parameter(s)", len(params))
    return query, params


def build_stock_query(spec: FilterSpec, target_date: date) -> tuple[str, list[ParamValue]]:
    """Generate the stock value / quantity query at a point in time.

    Uses the last known monthly snapshot of each product on or before
    target_date (DISTINCT ON).

    Args:
        spec: Dashboard filter selection (its date range is not used)
        target_date: Date the stock is valued at

    Returns:
        (query, params) with $1 bound to target_date
    """
    qb = create_builder(spec, [target_date], get_column_profiles().get(STOCK_MV_PROFILE))
    conditions = qb.get_conditions()

    query = f"""
        WITH latest_snapshots AS (
            SELECT DISTINCT ON (mv.product_id)
                mv.stock,
                mv.stock_value_ht
            FROM mv_stock_monthly mv
            WHERE mv.month_end_date <= $1::date
              {conditions}
            ORDER BY mv.product_id, mv.month_end_date DESC
        )
        SELECT
            COALESCE(SUM(ls.stock), 0) as stock_quantity,
            COALESCE(SUM(ls.stock_value_ht), 0) as stock_value_ht
        FROM latest_snapshots ls
    """
    params = qb.get_params()
    LOGGER.debug("Built stock query for %s with %s parameter(s)", target_date, len(params))
    return query, params
