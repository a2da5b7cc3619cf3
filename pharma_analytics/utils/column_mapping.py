"""Column mapping context for filter predicates.

The same logical filter dimension resolves to different physical columns
depending on which tables (and aliases) the enclosing query joins. A
ColumnMapping is the explicit, immutable table the filter builder renders
against; every query building function passes one in.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass, fields, replace
from enum import Enum

from pharma_analytics.utils.query_builders import validate_column_expression


class CategoryLevel(Enum):
    """Category hierarchy levels a product can be tagged with."""

    SEGMENT_L0 = "bcb_segment_l0"
    SEGMENT_L1 = "bcb_segment_l1"
    SEGMENT_L2 = "bcb_segment_l2"
    SEGMENT_L3 = "bcb_segment_l3"
    SEGMENT_L4 = "bcb_segment_l4"
    SEGMENT_L5 = "bcb_segment_l5"
    FAMILY = "bcb_family"


@dataclass(frozen=True)
class ColumnMapping:
    """Logical filter dimension -> column expression.

    Category level columns may be None when the enclosing query does not
    expose that level.
    """

    pharmacy_id: str
    laboratory: str
    product_code: str
    tva: str
    reimbursable: str
    generic_status: str
    cat_l0: str | None = None
    cat_l1: str | None = None
    cat_l2: str | None = None
    cat_l3: str | None = None
    cat_l4: str | None = None
    cat_l5: str | None = None
    cat_family: str | None = None

    def __post_init__(self) -> None:
        for key, column in asdict(self).items():
            if column is None and key in _CATEGORY_FIELDS:
                continue
            try:
                validate_column_expression(column)
            except ValueError as ex:
                raise ValueError(f"Invalid column mapping for '{key}': {ex}") from ex

    @classmethod
    def default(cls) -> ColumnMapping:
        """Mapping for queries joining data_internalproduct (ip) and data_globalproduct (gp)."""
        return cls(
            pharmacy_id="ip.pharmacy_id",
            laboratory="gp.bcb_lab",
            product_code="ip.code_13_ref_id",
            tva="gp.tva_percentage",
            reimbursable="gp.is_reimbursable",
            generic_status="gp.bcb_generic_status",
            cat_l0="gp.bcb_segment_l0",
            cat_l1="gp.bcb_segment_l1",
            cat_l2="gp.bcb_segment_l2",
            cat_l3="gp.bcb_segment_l3",
            cat_l4="gp.bcb_segment_l4",
            cat_l5="gp.bcb_segment_l5",
            cat_family="gp.bcb_family",
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, str | None]) -> ColumnMapping:
        """Build a complete mapping from a dict.

        Raises:
            ValueError: If a key is unknown or a required dimension is missing
        """
        unknown = set(data) - cls.keys()
        if unknown:
            raise ValueError(f"Unknown column mapping keys: {', '.join(sorted(unknown))}")
        missing = _REQUIRED_FIELDS - set(data)
        if missing:
            raise ValueError(f"Missing column mapping keys: {', '.join(sorted(missing))}")
        return cls(**data)

    def with_overrides(self, overrides: Mapping[str, str | None]) -> ColumnMapping:
        """Return a copy with some dimensions remapped.

        Raises:
            ValueError: If an override key is unknown
        """
        unknown = set(overrides) - self.keys()
        if unknown:
            raise ValueError(f"Unknown column mapping keys: {', '.join(sorted(unknown))}")
        return replace(self, **overrides)

    def category_column(self, level: CategoryLevel) -> str | None:
        """Column for a category hierarchy level, or None if unmapped."""
        return getattr(self, _LEVEL_FIELDS[level])

    @classmethod
    def keys(cls) -> frozenset[str]:
        """All mapping keys."""
        return frozenset(f.name for f in fields(cls))


_LEVEL_FIELDS: dict[CategoryLevel, str] = {
    CategoryLevel.SEGMENT_L0: "cat_l0",
    CategoryLevel.SEGMENT_L1: "cat_l1",
    CategoryLevel.SEGMENT_L2: "cat_l2",
    CategoryLevel.SEGMENT_L3: "cat_l3",
    CategoryLevel.SEGMENT_L4: "cat_l4",
    CategoryLevel.SEGMENT_L5: "cat_l5",
    CategoryLevel.FAMILY: "cat_family",
}
_CATEGORY_FIELDS = frozenset(_LEVEL_FIELDS.values())
_REQUIRED_FIELDS = frozenset(f.name for f in fields(ColumnMapping)) - _CATEGORY_FIELDS
