"""Closed filter vocabularies rendered as SQL literals.

Reimbursement and generic status filters come from the service's own
vocabulary, so they are rendered as fixed literals instead of bound
parameters. Raw request values can only reach SQL through the parse()
classmethods, which construct members of the closed set or fail.

Note: Uses string interpolation with hardcoded enum values only.
All user-supplied values MUST use parameterized queries via QueryParams.
"""

from __future__ import annotations

from enum import Enum


class ReimbursementStatus(Enum):
    """Reimbursement status filter values."""

    ALL = "ALL"
    REIMBURSED = "REIMBURSED"
    NOT_REIMBURSED = "NOT_REIMBURSED"

    @classmethod
    def parse(cls, value: str | ReimbursementStatus | None) -> ReimbursementStatus:
        """Convert a raw value to a status, treating None as ALL.

        Raises:
            ValueError: If value is not a known status
        """
        if value is None:
            return cls.ALL
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError as ex:
            allowed = ", ".join(member.value for member in cls)
            raise ValueError(f"Invalid reimbursement status '{value}'. Allowed values: {allowed}") from ex


class GenericStatus(Enum):
    """Generic / princeps status filter values."""

    ALL = "ALL"
    GENERIC = "GENERIC"
    PRINCEPS = "PRINCEPS"
    PRINCEPS_GENERIC = "PRINCEPS_GENERIC"

    @classmethod
    def parse(cls, value: str | GenericStatus | None) -> GenericStatus:
        """Convert a raw value to a status, treating None as ALL.

        Older dashboard payloads send YES / NO instead of GENERIC / PRINCEPS.

        Raises:
            ValueError: If value is not a known status
        """
        if value is None:
            return cls.ALL
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().upper()
        normalized = _LEGACY_GENERIC_ALIASES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError as ex:
            allowed = ", ".join(member.value for member in cls)
            raise ValueError(f"Invalid generic status '{value}'. Allowed values: {allowed}") from ex


_LEGACY_GENERIC_ALIASES = {"YES": "GENERIC", "NO": "PRINCEPS"}

# Stored labels in data_globalproduct.bcb_generic_status
GENERIC_LABEL = "GÉNÉRIQUE"
PRINCEPS_LABEL = "RÉFÉRENT"

REIMBURSEMENT_LITERALS: dict[ReimbursementStatus, str] = {
    ReimbursementStatus.REIMBURSED: "true",
    ReimbursementStatus.NOT_REIMBURSED: "false",
}

GENERIC_STATUS_LABELS: dict[GenericStatus, tuple[str, ...]] = {
    GenericStatus.GENERIC: (GENERIC_LABEL,),
    GenericStatus.PRINCEPS: (PRINCEPS_LABEL,),
    GenericStatus.PRINCEPS_GENERIC: (GENERIC_LABEL, PRINCEPS_LABEL),
}


def build_reimbursement_condition(status: ReimbursementStatus, column: str) -> str:
    """Get the literal condition for a reimbursement status.

    Returns:
        SQL condition (e.g., "gp.is_reimbursable = true"), or empty string for ALL
    """
    literal = REIMBURSEMENT_LITERALS.get(status)
    if literal is None:
        return ""
    return f"{column} = {literal}"


def build_generic_status_condition(status: GenericStatus, column: str) -> str:
    """Get the literal condition for a generic status.

    Returns:
        SQL condition (e.g., "gp.bcb_generic_status IN ('GÉNÉRIQUE')"), or empty string for ALL
    """
    labels = GENERIC_STATUS_LABELS.get(status)
    if not labels:
        return ""
    values_list = ",".join(f"'{label}'" for label in labels)
    return f"{column} IN ({values_list})"
