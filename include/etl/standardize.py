"""
Code -> label lookup tables used by the conformance stages.

Exact short codes use plain dicts keyed by the upper-cased, trimmed code.
Prefix-based values (country names, ERP gender) use an ordered list of
(predicate, label) rules where the first match wins. Anything unmatched,
blank or null becomes ``UNKNOWN_LABEL``. Labels have no inverse mapping.
"""

import re
from typing import Callable, Optional

import pandas as pd

UNKNOWN_LABEL = "N/A"

MARITAL_STATUS_CODES = {
    "S": "Single",
    "M": "Married",
}

GENDER_CODES = {
    "F": "Female",
    "M": "Male",
}

PRODUCT_LINE_CODES = {
    "M": "Mountain",
    "R": "Road",
    "S": "Other Sales",
    "T": "Touring",
}

MAINTENANCE_FLAGS = {
    "YES": "Yes",
    "NO": "No",
}

# Non-breaking space, tab, newline, carriage return
_CONTROL_CHARACTERS = re.compile("[\u00a0\t\n\r]")

PrefixRule = tuple[Callable[[str], bool], str]


def starts_with(*prefixes: str) -> Callable[[str], bool]:
    """Predicate matching an upper-cased value against any of ``prefixes``."""
    return lambda value: value.startswith(prefixes)


COUNTRY_RULES: list[PrefixRule] = [
    (starts_with("DE", "GERMANY"), "Germany"),
    (starts_with("US", "USA", "UNITED STATES"), "United States"),
    (starts_with("UNITED KINGDOM", "UK"), "United Kingdom"),
    (starts_with("FRANCE", "FR"), "France"),
    (starts_with("AUSTRALIA", "AU"), "Australia"),
    (starts_with("CANADA", "CA"), "Canada"),
]

GENDER_PREFIX_RULES: list[PrefixRule] = [
    (starts_with("F"), "Female"),
    (starts_with("M"), "Male"),
]


def _normalize_code(value) -> Optional[str]:
    if not isinstance(value, str):
        return None
    code = value.strip().upper()
    return code or None


def map_code(value, mapping: dict[str, str]) -> str:
    """Map a short code to its label, case-insensitively after trimming."""
    code = _normalize_code(value)
    if code is None:
        return UNKNOWN_LABEL
    return mapping.get(code, UNKNOWN_LABEL)


def map_prefix(value, rules: list[PrefixRule]) -> str:
    """Return the label of the first rule whose predicate matches ``value``."""
    code = _normalize_code(value)
    if code is None:
        return UNKNOWN_LABEL
    for predicate, label in rules:
        if predicate(code):
            return label
    return UNKNOWN_LABEL


def strip_control_characters(value) -> Optional[str]:
    """Remove NBSP/tab/newline/CR anywhere in the value, then trim it."""
    if not isinstance(value, str):
        return None
    return _CONTROL_CHARACTERS.sub("", value).strip()


def standardize_codes(series: pd.Series, mapping: dict[str, str]) -> pd.Series:
    return series.map(lambda value: map_code(value, mapping)).astype(object)


def standardize_prefixes(series: pd.Series, rules: list[PrefixRule]) -> pd.Series:
    return series.map(lambda value: map_prefix(value, rules)).astype(object)
