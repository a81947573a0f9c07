from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Optional

import numpy as np
import pandas as pd

from include.etl.standardize import (
    COUNTRY_RULES,
    GENDER_CODES,
    GENDER_PREFIX_RULES,
    MAINTENANCE_FLAGS,
    MARITAL_STATUS_CODES,
    PRODUCT_LINE_CODES,
    map_code,
    standardize_codes,
    standardize_prefixes,
    strip_control_characters,
)
from include.logger import setup_logger

logger = setup_logger("etl.conform")

CUSTOMERS = "crm_cust_info"
PRODUCTS = "crm_prd_info"
SALES = "crm_sales_details"
DEMOGRAPHICS = "erp_cust_az12"
LOCATIONS = "erp_loc_a101"
CATEGORIES = "erp_px_cat_g1v2"

# Everything the sales fact references; conformed before SALES
DIMENSION_SOURCES = (CUSTOMERS, PRODUCTS, DEMOGRAPHICS, LOCATIONS, CATEGORIES)
FACT_SOURCES = (SALES,)

RAW_COLUMNS = {
    CUSTOMERS: [
        "cst_id", "cst_key", "cst_firstname", "cst_lastname",
        "cst_marital_status", "cst_gndr", "cst_create_date",
    ],
    PRODUCTS: [
        "prd_id", "prd_key", "prd_nm", "prd_cost", "prd_line",
        "prd_start_dt", "prd_end_dt",
    ],
    SALES: [
        "sls_ord_num", "sls_prd_key", "sls_cust_id", "sls_order_dt",
        "sls_ship_dt", "sls_due_dt", "sls_sales", "sls_quantity", "sls_price",
    ],
    DEMOGRAPHICS: ["cid", "bdate", "gen"],
    LOCATIONS: ["cid", "cntry"],
    CATEGORIES: ["id", "cat", "subcat", "maintenance"],
}


@dataclass(frozen=True)
class ConformSettings:
    """Constants of the conformance rules; ``as_of`` pins "today" for a run."""

    min_date_code: int = 19000101
    max_date_code: int = 20500101
    birthdate_floor: date = date(1924, 1, 1)
    as_of: date = field(default_factory=date.today)


_INT64_LIMIT = 2.0**63


# --------------------------------------------------
# Shared column helpers
# --------------------------------------------------
def _trim_value(value):
    if isinstance(value, str):
        return value.strip() or None
    return value


def trim_strings(df: pd.DataFrame) -> pd.DataFrame:
    """Strip surrounding whitespace from every text field; blanks become null."""
    trimmed = df.copy()
    for column in trimmed.columns:
        series = trimmed[column]
        if pd.api.types.is_object_dtype(series) or pd.api.types.is_string_dtype(series):
            trimmed[column] = series.map(_trim_value).astype(object)
    return trimmed


def to_integer(series: pd.Series) -> pd.Series:
    numbers = pd.to_numeric(series, errors="coerce")
    # Fractions and values outside int64 become null
    integral = numbers % 1 == 0
    if numbers.dtype.kind == "f":
        integral &= numbers.abs() < _INT64_LIMIT
    elif numbers.dtype.kind == "u":
        integral &= numbers <= np.iinfo(np.int64).max
    return numbers.where(integral).astype("Int64")


def to_number(series: pd.Series) -> pd.Series:
    return pd.to_numeric(series, errors="coerce").astype("float64")


def to_timestamp(series: pd.Series) -> pd.Series:
    # Mixed literal formats ("2025-01-05", "2025-01-05 10:30", "01/05/2025").
    # Offset literals are converted to UTC and stored naive, like naive ones.
    parsed = pd.to_datetime(series, errors="coerce", format="mixed", utc=True)
    return parsed.dt.tz_localize(None)


def to_date(series: pd.Series) -> pd.Series:
    return to_timestamp(series).dt.normalize()


def parse_date_code(series: pd.Series, settings: ConformSettings) -> pd.Series:
    """
    Convert 8-digit ``YYYYMMDD`` integer codes to dates.

    A code is kept only if it is an integer inside
    [min_date_code, max_date_code] and names a real calendar day.
    """
    codes = pd.to_numeric(series, errors="coerce")
    valid = (
        codes.notna()
        & (codes % 1 == 0)
        & (codes >= settings.min_date_code)
        & (codes <= settings.max_date_code)
    )
    text = codes.where(valid).astype("Int64").astype("string")
    return pd.to_datetime(text, format="%Y%m%d", errors="coerce")


def keep_latest(df: pd.DataFrame, key: str, timestamp: str) -> pd.DataFrame:
    """
    Keep one row per ``key``: the one with the greatest ``timestamp``.

    Null keys are dropped, null timestamps rank last and ties keep the row
    that came first in the input (stable sort).
    """
    keyed = df[df[key].notna()]
    ordered = keyed.sort_values(timestamp, ascending=False, kind="mergesort", na_position="last")
    latest = ordered.groupby(key, sort=False).head(1)

    dropped = len(df) - len(latest)
    if dropped > 0:
        logger.warning(f"Deduplication on {key}: dropped {dropped} rows (duplicates or null keys)")

    return latest.sort_values(key, kind="mergesort")


def derive_end_dates(df: pd.DataFrame, group: str, start: str) -> pd.Series:
    """
    Successor-based end date per group.

    Each group is ordered by ``start`` (nulls first) and every row gets the
    next row's start minus one day; the last row of a group gets null.
    """
    end_dates = {}
    for _, rows in df.groupby(group, sort=False, dropna=False):
        ordered = rows.sort_values(start, kind="mergesort", na_position="first")
        starts = list(ordered[start])
        for position, row_index in enumerate(ordered.index):
            following = starts[position + 1] if position + 1 < len(starts) else pd.NaT
            end_dates[row_index] = following - pd.Timedelta(days=1) if pd.notna(following) else pd.NaT

    return pd.Series(
        [end_dates[row_index] for row_index in df.index],
        index=df.index,
        dtype=df[start].dtype,
    )


def reconcile_measures(
    sales: pd.Series, quantity: pd.Series, price: pd.Series
) -> tuple[pd.Series, pd.Series]:
    """
    Reconcile sales and price against quantity.

    Sales becomes quantity * |price| when it is missing, non-positive or
    inconsistent. Price then becomes reconciled sales / quantity when it is
    missing or non-positive (zero quantity -> null). Quantity is untouched.
    """
    expected = quantity * price.abs()
    inconsistent = (
        sales.notna()
        & expected.notna()
        & ~np.isclose(sales.fillna(0), expected.fillna(0))
    )
    recompute_sales = sales.isna() | (sales <= 0) | inconsistent
    reconciled_sales = sales.mask(recompute_sales, expected)

    recompute_price = price.isna() | (price <= 0)
    derived_price = reconciled_sales / quantity.where(quantity != 0)
    reconciled_price = price.mask(recompute_price, derived_price)

    return reconciled_sales, reconciled_price


# --------------------------------------------------
# Per-entity stages
# --------------------------------------------------
def conform_customers(raw_df: pd.DataFrame, settings: ConformSettings) -> pd.DataFrame:
    df = trim_strings(raw_df)
    df["cst_id"] = to_integer(df["cst_id"])
    df["cst_create_date"] = to_timestamp(df["cst_create_date"])

    df = keep_latest(df, "cst_id", "cst_create_date")

    df["cst_marital_status"] = standardize_codes(df["cst_marital_status"], MARITAL_STATUS_CODES)
    df["cst_gndr"] = standardize_codes(df["cst_gndr"], GENDER_CODES)

    return df[RAW_COLUMNS[CUSTOMERS]]


def conform_products(raw_df: pd.DataFrame, settings: ConformSettings) -> pd.DataFrame:
    df = trim_strings(raw_df)
    df["prd_id"] = to_integer(df["prd_id"])
    df["prd_start_dt"] = to_date(df["prd_start_dt"])

    df = keep_latest(df, "prd_id", "prd_start_dt")

    # "CO-RF-FR-R92B-58" -> cat_id "CO_RF", prd_key "FR-R92B-58"
    source_key = df["prd_key"].astype(object)
    df["cat_id"] = source_key.map(
        lambda key: key[:5].replace("-", "_") if isinstance(key, str) else None
    )
    df["prd_key"] = source_key.map(
        lambda key: (key[6:] or None) if isinstance(key, str) else None
    )

    # Nulls default to 0; negative costs are left for validation to report
    df["prd_cost"] = to_number(df["prd_cost"]).fillna(0)
    df["prd_line"] = standardize_codes(df["prd_line"], PRODUCT_LINE_CODES)
    df["prd_end_dt"] = derive_end_dates(df, "prd_key", "prd_start_dt")

    return df[
        ["prd_id", "cat_id", "prd_key", "prd_nm", "prd_cost", "prd_line", "prd_start_dt", "prd_end_dt"]
    ]


def conform_sales(raw_df: pd.DataFrame, settings: ConformSettings) -> pd.DataFrame:
    df = trim_strings(raw_df)
    df["sls_cust_id"] = to_integer(df["sls_cust_id"])

    for column in ("sls_order_dt", "sls_ship_dt", "sls_due_dt"):
        df[column] = parse_date_code(df[column], settings)

    quantity = to_number(df["sls_quantity"])
    df["sls_sales"], df["sls_price"] = reconcile_measures(
        to_number(df["sls_sales"]), quantity, to_number(df["sls_price"])
    )
    df["sls_quantity"] = quantity

    df = df.sort_values(["sls_ord_num", "sls_prd_key"], kind="mergesort", na_position="last")
    return df[RAW_COLUMNS[SALES]]


def conform_demographics(raw_df: pd.DataFrame, settings: ConformSettings) -> pd.DataFrame:
    df = trim_strings(raw_df)
    df["cid"] = df["cid"].map(
        lambda cid: cid[3:] if isinstance(cid, str) and cid.upper().startswith("NAS") else cid
    )

    birth_dates = to_date(df["bdate"])
    out_of_range = (birth_dates > pd.Timestamp(settings.as_of)) | (
        birth_dates < pd.Timestamp(settings.birthdate_floor)
    )
    df["bdate"] = birth_dates.mask(out_of_range)
    df["gen"] = standardize_prefixes(df["gen"], GENDER_PREFIX_RULES)

    df = df.sort_values("cid", kind="mergesort", na_position="last")
    return df[RAW_COLUMNS[DEMOGRAPHICS]]


def conform_locations(raw_df: pd.DataFrame, settings: ConformSettings) -> pd.DataFrame:
    df = trim_strings(raw_df)
    df["cid"] = df["cid"].map(lambda cid: cid.replace("-", "") if isinstance(cid, str) else cid)
    df["cntry"] = standardize_prefixes(df["cntry"], COUNTRY_RULES)

    df = df.sort_values("cid", kind="mergesort", na_position="last")
    return df[RAW_COLUMNS[LOCATIONS]]


def conform_categories(raw_df: pd.DataFrame, settings: ConformSettings) -> pd.DataFrame:
    # Maintenance flag is cleaned from the raw value: control characters can
    # sit anywhere, not just at the edges
    maintenance = raw_df["maintenance"].map(
        lambda flag: map_code(strip_control_characters(flag), MAINTENANCE_FLAGS)
    ).astype(object)

    df = trim_strings(raw_df)
    df["maintenance"] = maintenance

    df = df.sort_values("id", kind="mergesort", na_position="last")
    return df[RAW_COLUMNS[CATEGORIES]]


CONFORMERS: dict[str, Callable[[pd.DataFrame, ConformSettings], pd.DataFrame]] = {
    CUSTOMERS: conform_customers,
    PRODUCTS: conform_products,
    SALES: conform_sales,
    DEMOGRAPHICS: conform_demographics,
    LOCATIONS: conform_locations,
    CATEGORIES: conform_categories,
}


def conform(
    entity_type: str,
    raw_df: pd.DataFrame,
    settings: Optional[ConformSettings] = None,
) -> pd.DataFrame:
    """
    Turn one raw table into its conformed replacement.

    Never mutates ``raw_df``. Bad values resolve to defaults (null, 0, "N/A")
    instead of raising; only an unknown ``entity_type`` is an error.
    """
    if entity_type not in CONFORMERS:
        raise ValueError(f"Unknown entity type: {entity_type}")

    settings = settings or ConformSettings()
    logger.info(f"Conforming {entity_type}: {len(raw_df)} raw rows")

    conformed = CONFORMERS[entity_type](raw_df, settings).reset_index(drop=True)

    logger.info(f"Conformed {entity_type}: {len(conformed)} rows")
    return conformed
