"""
Named column mapping profiles.

Each analytics query reads one of a few physical layouts (raw order lines
joined to the global product catalogue, or the sales / stock materialized
views). A profile is the complete ColumnMapping for one layout. Built-in
profiles cover the standard layouts; extra or replacement profiles can be
loaded from a YAML file.

YAML file structure:
    sales_mv:                       # replaces the built-in profile
      pharmacy_id: mv.pharmacy_id
      laboratory: mv.laboratory_name
      product_code: mv.code_13_ref
      tva: mv.tva_rate
      reimbursable: mv.is_reimbursable
      generic_status: mv.bcb_generic_status
      cat_l1: mv.category_name
      cat_l2: mv.category_l2        # optional category levels
    regional_sales:                 # new profile
      base: sales_mv                # start from an existing profile
      pharmacy_id: rs.pharmacy_id

Example:
    profiles = ColumnProfiles()
    profiles.load_from_file(Path("column_profiles.yaml"))
    mapping = profiles.get("regional_sales")
"""

from __future__ import annotations

import threading
from pathlib import Path

import yaml
from simple_logger.logger import get_logger

from pharma_analytics.config import get_config
from pharma_analytics.utils.column_mapping import ColumnMapping

LOGGER = get_logger(name="pharma_analytics.column_profiles")

# Reserved key in a YAML profile naming the profile it extends
BASE_KEY = "base"

ACHATS_PROFILE = "achats"
SALES_MV_PROFILE = "sales_mv"
STOCK_MV_PROFILE = "stock_mv"


def _builtin_profiles() -> dict[str, ColumnMapping]:
    materialized_view = ColumnMapping(
        pharmacy_id="mv.pharmacy_id",
        laboratory="mv.laboratory_name",
        product_code="mv.code_13_ref",
        tva="mv.tva_rate",
        reimbursable="mv.is_reimbursable",
        generic_status="mv.bcb_generic_status",
        cat_l1="mv.category_name",
    )
    # Sales queries can join data_globalproduct (gp) for levels the view lacks
    catalogue = ColumnMapping.default()
    sales_view = materialized_view.with_overrides(
        {
            "cat_l0": catalogue.cat_l0,
            "cat_l2": catalogue.cat_l2,
            "cat_l3": catalogue.cat_l3,
            "cat_l4": catalogue.cat_l4,
            "cat_l5": catalogue.cat_l5,
            "cat_family": catalogue.cat_family,
        }
    )
    return {
        ACHATS_PROFILE: catalogue,
        SALES_MV_PROFILE: sales_view,
        STOCK_MV_PROFILE: materialized_view,
    }


class ColumnProfiles:
    """
    Registry of column mapping profiles.

    Starts with the built-in profiles; load_from_file() adds or replaces
    profiles and validates the whole file before applying any of it.
    """

    def __init__(self) -> None:
        self._profiles: dict[str, ColumnMapping] = _builtin_profiles()

    def load_from_file(self, path: Path) -> None:
        """
        Load column mapping profiles from a YAML file.

        Args:
            path: Path to YAML profile file

        Raises:
            FileNotFoundError: If the file doesn't exist
            yaml.YAMLError: If YAML parsing fails
            TypeError: If the YAML structure has invalid types
            ValueError: If a profile has unknown keys, misses required keys,
                extends an unknown profile or maps an invalid column expression
        """
        LOGGER.info("Loading column mapping profiles from: %s", path)

        if not path.exists():
            msg = f"Column profiles file not found: {path}"
            LOGGER.error(msg)
            raise FileNotFoundError(msg)

        try:
            with path.open("r") as f:
                raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            msg = f"Failed to parse YAML column profiles file: {path}"
            LOGGER.exception(msg)
            raise yaml.YAMLError(msg) from e

        if raw_config is None:
            LOGGER.warning("Column profiles file is empty - using built-in profiles only")
            return

        if not isinstance(raw_config, dict):
            msg = f"Invalid YAML structure: expected dict at root, got {type(raw_config).__name__}"
            LOGGER.error(msg)
            raise TypeError(msg)

        loaded = self._build_profiles(raw_config)
        self._profiles.update(loaded)
        LOGGER.info("Successfully loaded %s column mapping profile(s): %s", len(loaded), ", ".join(sorted(loaded)))

    def _build_profiles(self, raw_config: dict[object, object]) -> dict[str, ColumnMapping]:
        # Profiles may extend built-ins or profiles defined earlier in the same file
        available = dict(self._profiles)
        loaded: dict[str, ColumnMapping] = {}

        for name, entries in raw_config.items():
            if not isinstance(name, str):
                msg = f"Invalid profile name: expected string, got {type(name).__name__}"
                LOGGER.error(msg)
                raise TypeError(msg)

            if not isinstance(entries, dict):
                msg = f"Invalid profile '{name}': expected dict, got {type(entries).__name__}"
                LOGGER.error(msg)
                raise TypeError(msg)

            columns = dict(entries)
            base_name = columns.pop(BASE_KEY, None)

            for key, column in columns.items():
                if column is not None and not isinstance(column, str):
                    msg = f"Invalid column for '{name}.{key}': expected string, got {type(column).__name__}"
                    LOGGER.error(msg)
                    raise TypeError(msg)

            try:
                if base_name is None:
                    mapping = ColumnMapping.from_dict(columns)
                elif base_name in available:
                    mapping = available[base_name].with_overrides(columns)
                else:
                    raise ValueError(f"unknown base profile '{base_name}'")
            except ValueError as e:
                msg = f"Invalid profile '{name}': {e}"
                LOGGER.error(msg)
                raise ValueError(msg) from e

            available[name] = mapping
            loaded[name] = mapping

        return loaded

    def get(self, name: str) -> ColumnMapping:
        """
        Get a profile by name.

        Raises:
            KeyError: If no profile has this name
        """
        try:
            return self._profiles[name]
        except KeyError:
            raise KeyError(f"Unknown column mapping profile '{name}'") from None

    @property
    def names(self) -> list[str]:
        """Sorted names of all available profiles."""
        return sorted(self._profiles)


# Singleton instance - lazy loaded with thread-safe initialization
_column_profiles: ColumnProfiles | None = None
_column_profiles_lock = threading.Lock()


def get_column_profiles() -> ColumnProfiles:
    """
    Get or create the global profile registry.

    The file named by PHARMA_COLUMN_PROFILES_FILE is loaded on first use.

    Returns:
        Global ColumnProfiles instance
    """
    global _column_profiles
    if _column_profiles is None:
        with _column_profiles_lock:
            if _column_profiles is None:
                profiles = ColumnProfiles()
                profiles_file = get_config().profiles.profiles_file
                if profiles_file is not None:
                    profiles.load_from_file(profiles_file)
                _column_profiles = profiles
    return _column_profiles


def _reset_column_profiles_for_testing() -> None:
    """Reset singleton instance for testing purposes only."""
    global _column_profiles
    _column_profiles = None
