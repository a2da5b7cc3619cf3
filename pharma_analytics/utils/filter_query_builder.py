"""Dynamic filter predicate builder for analytics queries.

Turns the dashboard's filter selection into a single parameterized predicate
fragment that repository queries splice after their own fixed WHERE clause:

    qb = FilterQueryBuilder([start_date, end_date], 3, ["OR"], ColumnMapping.default())
    qb.add_pharmacies(["P1"])
    qb.add_laboratories(["LabX", "LabY"])
    qb.get_conditions()
    # "AND ((ip.pharmacy_id = ANY($3::uuid[])) OR (gp.bcb_lab = ANY($4::text[])))"
    qb.get_params()
    # [start_date, end_date, ["P1"], ["LabX", "LabY"]]

Inclusion groups are chained with the user's operator list: the operator
placed before a group is filter_operators[max(0, item_count - 1)], AND when
missing. Empty selections add nothing and consume no operator.

Exclusion groups stay outside that chain. The chain is rendered as one
operand (parenthesized when it holds more than one group) and every
exclusion is AND-ed onto it:

    AND (((<incl1>) OR (<incl2>)) AND (<excl1>) AND (<excl2>))

Exclusion values are bound after all inclusion values, so placeholders
still appear in ascending order.

A builder belongs to a single query: once rendered it refuses further
additions.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from enum import Enum

from simple_logger.logger import get_logger

from pharma_analytics.config import OperatorIndexing, get_config
from pharma_analytics.exceptions import BuilderConsumedError
from pharma_analytics.utils.category_filters import (
    CategorySelection,
    render_category_clause,
    resolve_category_columns,
)
from pharma_analytics.utils.column_mapping import ColumnMapping
from pharma_analytics.utils.filter_enums import (
    GenericStatus,
    ReimbursementStatus,
    build_generic_status_condition,
    build_reimbursement_condition,
)
from pharma_analytics.utils.query_builders import NumericRange, ParamValue, QueryParams, build_range_filter

LOGGER = get_logger(name="pharma_analytics.utils.filter_query_builder")

# Renders an exclusion condition, binding its values when called
ExclusionRenderer = Callable[[QueryParams], str]


class BooleanOperator(Enum):
    """Operators a user may place between inclusion groups."""

    AND = "AND"
    OR = "OR"

    @classmethod
    def parse(cls, value: str | BooleanOperator) -> BooleanOperator:
        """Convert a raw token (case-insensitive) to an operator.

        Raises:
            ValueError: If the token is neither AND nor OR
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError as ex:
            raise ValueError(f"Invalid filter operator '{value}'. Allowed values: AND, OR") from ex


class FilterQueryBuilder:
    """Builds the dynamic filter fragment and its parameter list for one query."""

    def __init__(
        self,
        base_params: Sequence[ParamValue],
        start_index: int | None,
        filter_operators: Sequence[str | BooleanOperator],
        column_mapping: ColumnMapping,
        *,
        operator_indexing: OperatorIndexing | None = None,
        strict_categories: bool | None = None,
    ) -> None:
        """
        Args:
            base_params: Fixed leading parameters of the enclosing query (e.g. date bounds)
            start_index: First placeholder index for filter values, must be len(base_params) + 1;
                None derives it from base_params
            filter_operators: User operator tokens placed between inclusion groups
            column_mapping: Columns valid for the enclosing query's joins
            operator_indexing: Operator list indexing mode (default from configuration)
            strict_categories: Reject unknown or unmapped category levels (default from configuration)

        Raises:
            ParameterIndexError: If start_index does not follow base_params
            ValueError: If an operator token is neither AND nor OR
        """
        if operator_indexing is None or strict_categories is None:
            composition = get_config().composition
            operator_indexing = operator_indexing or composition.operator_indexing
            strict_categories = composition.strict_categories if strict_categories is None else strict_categories

        self._params = QueryParams(base_params=base_params, start_index=start_index)
        self._operators = [BooleanOperator.parse(token) for token in filter_operators]
        self._mapping = column_mapping
        self._operator_indexing = operator_indexing
        self._strict_categories = strict_categories
        self._inclusions: list[str] = []
        self._exclusions: list[ExclusionRenderer] = []
        self._item_count = 0
        self._rendered: str | None = None

    @property
    def mapping(self) -> ColumnMapping:
        """Column mapping the conditions are rendered against."""
        return self._mapping

    def get_params(self) -> list[ParamValue]:
        """Base parameters followed by every bound filter value, in placeholder order.

        Renders the conditions first, so the builder is sealed afterwards.
        """
        self.get_conditions()
        return self._params.get_params()

    def get_conditions(self) -> str:
        """Render the fragment and seal the builder.

        Returns:
            "AND (<inclusion chain> AND <exclusion> ...)" or empty string if no group was added
        """
        if self._rendered is None:
            operands: list[str] = []
            if self._inclusions:
                chain = " ".join(self._inclusions)
                operands.append(f"({chain})" if len(self._inclusions) > 1 and self._exclusions else chain)
            operands.extend(f"({render(self._params)})" for render in self._exclusions)

            self._rendered = f"AND ({' AND '.join(operands)})" if operands else ""
            LOGGER.debug(
                "Composed filter conditions: %s inclusion fragment(s), %s exclusion(s), %s bound parameter(s)",
                len(self._inclusions),
                len(self._exclusions),
                self._params.get_count(),
            )
        return self._rendered

    # --- Group composition ---

    def add_filter_group(self, values: Sequence[ParamValue], renderer: Callable[[str], str]) -> None:
        """Add an inclusion group binding values as one array parameter.

        Args:
            values: Selected values, no-op when empty
            renderer: Builds the SQL condition from the array placeholder (e.g. "$3")
        """
        if not values:
            return
        self._ensure_open()
        placeholder = self._params.add(list(values))
        self._append_inclusion(renderer(placeholder))

    def add_exclusion_group(self, values: Sequence[ParamValue], renderer: Callable[[str], str]) -> None:
        """Add an exclusion group binding values as one array parameter, always AND-joined.

        The values are bound when the conditions are rendered.
        """
        if not values:
            return
        self._ensure_open()
        bound = list(values)
        self._exclusions.append(lambda params: renderer(params.add(bound)))

    def _ensure_open(self) -> None:
        if self._rendered is not None:
            raise BuilderConsumedError("Filter conditions were already rendered; create a new builder per query")

    def _next_operator(self) -> str:
        operator_index = max(0, self._item_count - 1)
        if operator_index < len(self._operators):
            return self._operators[operator_index].value
        return BooleanOperator.AND.value

    def _append_inclusion(self, sql: str, item_count: int = 1) -> None:
        if self._inclusions:
            self._inclusions.append(self._next_operator())
        self._inclusions.append(f"({sql})")
        self._item_count += item_count

    # --- Inclusion filters ---

    def add_pharmacies(self, pharmacy_ids: Sequence[str]) -> None:
        self.add_filter_group(pharmacy_ids, lambda p: f"{self._mapping.pharmacy_id} = ANY({p}::uuid[])")

    def add_laboratories(self, laboratories: Sequence[str]) -> None:
        self.add_filter_group(laboratories, lambda p: f"{self._mapping.laboratory} = ANY({p}::text[])")

    def add_products(self, product_codes: Sequence[str]) -> None:
        self.add_filter_group(product_codes, lambda p: f"{self._mapping.product_code} = ANY({p}::text[])")

    def add_tva_rates(self, rates: Sequence[float]) -> None:
        self.add_filter_group(rates, lambda p: f"{self._mapping.tva} = ANY({p}::numeric[])")

    def add_categories(self, categories: Sequence[CategorySelection]) -> None:
        """Add selected categories as one inclusion group, OR-ed across hierarchy levels.

        In ITEM_COUNT indexing the group advances the operator index by the
        number of selected categories instead of one.
        """
        if not categories:
            return
        self._ensure_open()
        resolved = resolve_category_columns(self._mapping, categories, strict=self._strict_categories)
        if not resolved:
            return
        sql = render_category_clause(self._params, resolved)
        self._append_inclusion(sql, item_count=self._category_item_count(categories))

    def _category_item_count(self, categories: Sequence[CategorySelection]) -> int:
        if self._operator_indexing is OperatorIndexing.ITEM_COUNT:
            return len(categories)
        return 1

    def add_reimbursement_status(self, status: ReimbursementStatus | str | None) -> None:
        condition = build_reimbursement_condition(ReimbursementStatus.parse(status), self._mapping.reimbursable)
        if not condition:
            return
        self._ensure_open()
        self._append_inclusion(condition)

    def add_generic_status(self, status: GenericStatus | str | None) -> None:
        condition = build_generic_status_condition(GenericStatus.parse(status), self._mapping.generic_status)
        if not condition:
            return
        self._ensure_open()
        self._append_inclusion(condition)

    def add_range_filter(self, value_range: NumericRange | None, column: str) -> None:
        """Add a closed interval on column as one inclusion group (two parameters)."""
        if value_range is None:
            return
        self._ensure_open()
        self._append_inclusion(build_range_filter(self._params, value_range, column))

    def add_any_of(
        self,
        product_codes: Sequence[str] = (),
        laboratories: Sequence[str] = (),
        categories: Sequence[CategorySelection] = (),
    ) -> None:
        """Add one inclusion group matching rows in any of the given selections.

        Used to restrict a report to otherwise excluded items.
        """
        if not (product_codes or laboratories or categories):
            return
        self._ensure_open()

        # Strict category checks run before any value is bound
        resolved = resolve_category_columns(self._mapping, categories, strict=self._strict_categories)

        branches: list[str] = []
        if product_codes:
            placeholder = self._params.add(list(product_codes))
            branches.append(f"{self._mapping.product_code} = ANY({placeholder}::text[])")
        if laboratories:
            placeholder = self._params.add(list(laboratories))
            branches.append(f"{self._mapping.laboratory} = ANY({placeholder}::text[])")
        if resolved:
            branches.append(render_category_clause(self._params, resolved))

        if not branches:
            return
        if len(branches) > 1:
            branches = [f"({branch})" for branch in branches]
        self._append_inclusion(" OR ".join(branches))

    # --- Exclusion filters ---

    def add_excluded_pharmacies(self, pharmacy_ids: Sequence[str]) -> None:
        self.add_exclusion_group(pharmacy_ids, lambda p: f"{self._mapping.pharmacy_id} <> ALL({p}::uuid[])")

    def add_excluded_laboratories(self, laboratories: Sequence[str]) -> None:
        self.add_exclusion_group(laboratories, lambda p: f"{self._mapping.laboratory} <> ALL({p}::text[])")

    def add_excluded_products(self, product_codes: Sequence[str]) -> None:
        self.add_exclusion_group(product_codes, lambda p: f"{self._mapping.product_code} <> ALL({p}::text[])")

    def add_excluded_categories(self, categories: Sequence[CategorySelection]) -> None:
        """Exclude rows matching any of the categories (levels AND-joined).

        In ITEM_COUNT indexing the selected categories also advance the
        operator index, although the exclusion itself is always AND-joined.
        """
        if not categories:
            return
        self._ensure_open()
        resolved = resolve_category_columns(self._mapping, categories, strict=self._strict_categories)
        if not resolved:
            return
        self._exclusions.append(lambda params: render_category_clause(params, resolved, exclude=True))
        if self._operator_indexing is OperatorIndexing.ITEM_COUNT:
            self._item_count += len(categories)
