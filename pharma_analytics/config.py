"""
Configuration for the pharmacy analytics filter composer.

All configuration is loaded from environment variables - no config files
other than the optional column profile file referenced below.

Optional environment variables (with defaults):
- PHARMA_FILTERS_STRICT_CATEGORIES: Reject unknown or unmapped category levels
  instead of dropping them (default: false)
- PHARMA_FILTERS_OPERATOR_INDEXING: How the user operator list is indexed,
  "per_group" or "item_count" (default: per_group)
- PHARMA_COLUMN_PROFILES_FILE: Path to a YAML file with extra column mapping
  profiles (default: unset, built-in profiles only)
"""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class OperatorIndexing(Enum):
    """How the user-supplied operator list is advanced between inclusion groups.

    PER_GROUP: every inclusion group advances the operator index by one.
    ITEM_COUNT: included and excluded category groups advance it by the
    number of selected categories, matching the historical dashboard
    behaviour. Excluded categories are still AND-joined.
    """

    PER_GROUP = "per_group"
    ITEM_COUNT = "item_count"


def _parse_bool(value: str) -> bool:
    """Parse boolean string accepting common truthy variants.

    Args:
        value: String value to parse

    Returns:
        bool: True if value is truthy, False otherwise

    Accepts (case-insensitive):
        - "true", "1", "yes", "on" → True
        - Everything else → False
    """
    return value.lower() in ("true", "1", "yes", "on")


def _parse_operator_indexing(value: str) -> OperatorIndexing:
    """Parse the operator indexing mode.

    Raises:
        ValueError: If the value is not a known mode
    """
    normalized = value.strip().lower() or OperatorIndexing.PER_GROUP.value
    try:
        return OperatorIndexing(normalized)
    except ValueError as ex:
        allowed = ", ".join(mode.value for mode in OperatorIndexing)
        msg = f"Invalid PHARMA_FILTERS_OPERATOR_INDEXING '{value}'. Allowed values: {allowed}"
        raise ValueError(msg) from ex


@dataclass(frozen=True)
class CompositionConfig:
    """Predicate composition behaviour."""

    strict_categories: bool
    operator_indexing: OperatorIndexing


@dataclass(frozen=True)
class ProfilesConfig:
    """Column mapping profile sources."""

    profiles_file: Path | None

    @property
    def has_file(self) -> bool:
        """Check if an external profile file is configured."""
        return self.profiles_file is not None


class FilterConfig:
    """
    Configuration for the filter composer.

    All configuration is loaded from environment variables.

    Example:
        config = FilterConfig()
        print(config.composition.strict_categories)
    """

    def __init__(self) -> None:
        """
        Initialize configuration from environment variables.

        Raises:
            ValueError: If environment variable has invalid value
        """
        self.composition = CompositionConfig(
            strict_categories=_parse_bool(os.environ.get("PHARMA_FILTERS_STRICT_CATEGORIES", "")),
            operator_indexing=_parse_operator_indexing(os.environ.get("PHARMA_FILTERS_OPERATOR_INDEXING", "")),
        )

        profiles_file = os.environ.get("PHARMA_COLUMN_PROFILES_FILE", "").strip()
        self.profiles = ProfilesConfig(profiles_file=Path(profiles_file) if profiles_file else None)


# Singleton instance - lazy loaded with thread-safe initialization
_config: FilterConfig | None = None
_config_lock = threading.Lock()


def get_config() -> FilterConfig:
    """
    Get the global configuration instance.

    Thread-safe singleton using double-checked locking pattern.

    Returns:
        FilterConfig: The configuration instance

    Raises:
        ValueError: If an environment variable has an invalid value
    """
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:
                _config = FilterConfig()
    return _config


def _reset_config_for_testing() -> None:
    """Reset config singleton for testing purposes only."""
    global _config
    _config = None
