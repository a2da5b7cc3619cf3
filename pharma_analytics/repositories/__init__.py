"""KPI repositories building analytics queries from dashboard filters."""

from __future__ import annotations

from pharma_analytics.repositories import base, kpi_queries

__all__ = ["base", "kpi_queries"]
