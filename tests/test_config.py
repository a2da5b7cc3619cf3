"""Tests for configuration module.

Tests configuration loading from environment variables including:
- Default values for optional settings
- Boolean and operator indexing parsing
- Singleton behaviour
"""

from __future__ import annotations

from pathlib import Path

import pytest

from pharma_analytics.config import (
    CompositionConfig,
    FilterConfig,
    OperatorIndexing,
    ProfilesConfig,
    _parse_bool,
    _parse_operator_indexing,
    _reset_config_for_testing,
    get_config,
)


class TestParseBool:
    """Tests for _parse_bool function."""

    @pytest.mark.parametrize("value", ["true", "TRUE", "1", "yes", "On"])
    def test_truthy_values(self, value: str) -> None:
        """Test that common truthy variants parse as True."""
        assert _parse_bool(value) is True

    @pytest.mark.parametrize("value", ["", "false", "0", "no", "enabled"])
    def test_falsy_values(self, value: str) -> None:
        """Test that everything else parses as False."""
        assert _parse_bool(value) is False


class TestParseOperatorIndexing:
    """Tests for _parse_operator_indexing function."""

    def test_empty_defaults_to_per_group(self) -> None:
        """Test that an unset value selects per-group indexing."""
        assert _parse_operator_indexing("") is OperatorIndexing.PER_GROUP

    def test_item_count(self) -> None:
        """Test that the legacy mode is recognised case-insensitively."""
        assert _parse_operator_indexing(" ITEM_COUNT ") is OperatorIndexing.ITEM_COUNT

    def test_invalid_value_raises(self) -> None:
        """Test that unknown modes are rejected."""
        with pytest.raises(ValueError, match="Invalid PHARMA_FILTERS_OPERATOR_INDEXING 'per_item'"):
            _parse_operator_indexing("per_item")


class TestFilterConfig:
    """Tests for FilterConfig class."""

    def test_defaults(self) -> None:
        """Test configuration with no environment variables set."""
        config = FilterConfig()

        assert config.composition == CompositionConfig(
            strict_categories=False,
            operator_indexing=OperatorIndexing.PER_GROUP,
        )
        assert config.profiles == ProfilesConfig(profiles_file=None)
        assert config.profiles.has_file is False

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test configuration read from environment variables."""
        monkeypatch.setenv("PHARMA_FILTERS_STRICT_CATEGORIES", "yes")
        monkeypatch.setenv("PHARMA_FILTERS_OPERATOR_INDEXING", "item_count")
        monkeypatch.setenv("PHARMA_COLUMN_PROFILES_FILE", "/etc/pharma/profiles.yaml")

        config = FilterConfig()

        assert config.composition.strict_categories is True
        assert config.composition.operator_indexing is OperatorIndexing.ITEM_COUNT
        assert config.profiles.profiles_file == Path("/etc/pharma/profiles.yaml")
        assert config.profiles.has_file is True

    def test_invalid_operator_indexing_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test fail-fast on an invalid mode."""
        monkeypatch.setenv("PHARMA_FILTERS_OPERATOR_INDEXING", "sometimes")

        with pytest.raises(ValueError, match="Invalid PHARMA_FILTERS_OPERATOR_INDEXING"):
            FilterConfig()


class TestGetConfig:
    """Tests for get_config singleton."""

    def test_returns_same_instance(self) -> None:
        """Test that get_config caches the configuration."""
        assert get_config() is get_config()

    def test_reset_reloads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that resetting picks up new environment values."""
        assert get_config().composition.strict_categories is False

        monkeypatch.setenv("PHARMA_FILTERS_STRICT_CATEGORIES", "true")
        assert get_config().composition.strict_categories is False

        _reset_config_for_testing()
        assert get_config().composition.strict_categories is True
