"""
Unit tests for the code -> label lookup tables.

Labels are one-way: these tests cover forward mapping and the N/A default
only.
"""

import pytest
import pandas as pd
from pathlib import Path
import sys

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from include.etl.standardize import (
    COUNTRY_RULES,
    GENDER_CODES,
    GENDER_PREFIX_RULES,
    MAINTENANCE_FLAGS,
    MARITAL_STATUS_CODES,
    PRODUCT_LINE_CODES,
    UNKNOWN_LABEL,
    map_code,
    map_prefix,
    standardize_codes,
    strip_control_characters,
)


class TestExactCodeMaps:
    """Test suite for short-code dictionaries."""

    @pytest.mark.parametrize("code,label", [("S", "Single"), ("M", "Married")])
    def test_marital_status_codes(self, code, label):
        assert map_code(code, MARITAL_STATUS_CODES) == label

    @pytest.mark.parametrize("code,label", [("F", "Female"), ("M", "Male")])
    def test_gender_codes(self, code, label):
        assert map_code(code, GENDER_CODES) == label

    @pytest.mark.parametrize(
        "code,label",
        [("M", "Mountain"), ("R", "Road"), ("S", "Other Sales"), ("T", "Touring")],
    )
    def test_product_line_codes(self, code, label):
        assert map_code(code, PRODUCT_LINE_CODES) == label

    def test_matching_is_case_insensitive_after_trimming(self):
        """Test that ' s ' and 'S' map to the same label."""
        assert map_code(" s ", MARITAL_STATUS_CODES) == "Single"
        assert map_code("t\t", PRODUCT_LINE_CODES) == "Touring"

    @pytest.mark.parametrize("value", [None, float("nan"), "", "   ", "X", "Single", 1])
    def test_unmapped_values_default_to_na(self, value):
        """Test that null, blank, unknown and non-text codes become N/A."""
        assert map_code(value, MARITAL_STATUS_CODES) == UNKNOWN_LABEL

    def test_standardize_codes_on_series(self):
        result = standardize_codes(pd.Series(["m", None, "F", "?"]), GENDER_CODES)
        assert list(result) == ["Male", "N/A", "Female", "N/A"]


class TestPrefixRules:
    """Test suite for ordered prefix rules."""

    @pytest.mark.parametrize("value,label", [
        ("DE", "Germany"),
        ("Germany", "Germany"),
        ("US", "United States"),
        ("usa", "United States"),
        ("United States", "United States"),
        ("UK", "United Kingdom"),
        ("United Kingdom", "United Kingdom"),
        ("FR", "France"),
        ("france", "France"),
        ("Australia", "Australia"),
        ("CA", "Canada"),
        ("Canada", "Canada"),
    ])
    def test_country_rules(self, value, label):
        assert map_prefix(value, COUNTRY_RULES) == label

    @pytest.mark.parametrize("value", [None, "", "Atlantis", "NL"])
    def test_unknown_country_is_na(self, value):
        assert map_prefix(value, COUNTRY_RULES) == UNKNOWN_LABEL

    def test_country_rules_trim_before_matching(self):
        assert map_prefix("  DE ", COUNTRY_RULES) == "Germany"

    def test_first_matching_rule_wins(self):
        """'DEN...' starts with DE, so it is claimed by the first rule."""
        assert map_prefix("Denmark", COUNTRY_RULES) == "Germany"

    @pytest.mark.parametrize("value,label", [
        ("Female", "Female"),
        ("f", "Female"),
        ("Male", "Male"),
        (" M", "Male"),
        ("Unknown", "N/A"),
        (None, "N/A"),
    ])
    def test_erp_gender_prefix_rules(self, value, label):
        assert map_prefix(value, GENDER_PREFIX_RULES) == label


class TestMaintenanceFlag:
    """Test suite for maintenance flag cleanup."""

    @pytest.mark.parametrize("raw,label", [
        ("Yes", "Yes"),
        ("yes ", "Yes"),
        ("Y\u00a0es", "Yes"),
        ("\tNo\r\n", "No"),
        ("N\no", "No"),
        ("maybe", "N/A"),
        (None, "N/A"),
    ])
    def test_control_characters_are_removed_before_comparison(self, raw, label):
        assert map_code(strip_control_characters(raw), MAINTENANCE_FLAGS) == label

    def test_strip_control_characters_keeps_inner_spaces(self):
        assert strip_control_characters(" a b\t") == "a b"

    def test_strip_control_characters_of_null(self):
        assert strip_control_characters(None) is None
