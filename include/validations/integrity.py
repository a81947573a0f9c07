"""
Integrity checks over the dimensional model.

Each check reads the tables it is given and returns a ``Finding``; none of
them mutates a table or raises for bad data. ``validate_dimensional_model``
runs the full star-schema suite and returns a ``ValidationReport``.
"""

from typing import Mapping

import pandas as pd

from include.etl.conform import CUSTOMERS, PRODUCTS, SALES
from include.etl.project import DIM_CUSTOMERS, DIM_PRODUCTS, FACT_SALES
from include.logger import setup_logger
from .report import Finding, ValidationReport, sample_keys

logger = setup_logger("validation.integrity")

CRITICAL_MEASURES = ("sales_amount", "quantity", "price")


def check_key_uniqueness(
    df: pd.DataFrame,
    table: str,
    surrogate_key: str,
    business_key: str,
    sample_size: int = 10,
) -> Finding:
    """Rows whose surrogate or business key appears more than once."""
    duplicated = (
        df[surrogate_key].notna() & df.duplicated(subset=surrogate_key, keep=False)
    ) | (
        df[business_key].notna() & df.duplicated(subset=business_key, keep=False)
    )
    violations = df[duplicated]
    return Finding(
        table=table,
        check="unique_keys",
        violating_count=len(violations),
        sample_keys=sample_keys(violations[business_key], sample_size),
        violations=violations,
    )


def check_null_keys(
    df: pd.DataFrame,
    table: str,
    surrogate_key: str,
    business_key: str,
    sample_size: int = 10,
) -> Finding:
    violations = df[df[surrogate_key].isna() | df[business_key].isna()]
    return Finding(
        table=table,
        check="non_null_keys",
        violating_count=len(violations),
        sample_keys=sample_keys(violations[business_key].combine_first(violations[surrogate_key]), sample_size),
        violations=violations,
    )


def check_fact_connectivity(
    fact: pd.DataFrame,
    table: str,
    foreign_key: str,
    dimension: pd.DataFrame,
    dimension_key: str,
    fact_key: str = "order_number",
    sample_size: int = 10,
) -> Finding:
    """
    LEFT JOIN the fact to a dimension and keep rows without a match.

    A null foreign key and a key missing from the dimension both count.
    """
    # Null keys would match each other in a pandas merge
    dimension_keys = dimension[[dimension_key]].dropna().drop_duplicates().rename(
        columns={dimension_key: "_dimension_key"}
    )
    joined = fact.merge(
        dimension_keys,
        left_on=foreign_key,
        right_on="_dimension_key",
        how="left",
    )
    unmatched = joined["_dimension_key"].isna().to_numpy()
    violations = fact[unmatched]

    return Finding(
        table=table,
        check=f"{foreign_key}_connectivity",
        violating_count=len(violations),
        sample_keys=sample_keys(violations[fact_key], sample_size),
        violations=violations,
    )


def check_measures_not_null(
    fact: pd.DataFrame,
    table: str,
    measures: tuple[str, ...] = CRITICAL_MEASURES,
    fact_key: str = "order_number",
    sample_size: int = 10,
) -> Finding:
    violations = fact[fact[list(measures)].isna().any(axis=1)]
    return Finding(
        table=table,
        check="critical_measures_not_null",
        violating_count=len(violations),
        sample_keys=sample_keys(violations[fact_key], sample_size),
        violations=violations,
    )


def check_row_count_parity(
    source: pd.DataFrame,
    source_table: str,
    target: pd.DataFrame,
    target_table: str,
) -> Finding:
    """
    Row counts of a source and its projection must match (silent row loss).

    A count mismatch names no particular row, so ``sample_keys`` stays empty;
    both counts are logged instead.
    """
    difference = abs(len(source) - len(target))
    if difference:
        logger.warning(
            f"Row count mismatch {source_table} -> {target_table}: {len(source)} vs {len(target)}"
        )
    return Finding(
        table=target_table,
        check=f"row_count_parity:{source_table}",
        violating_count=difference,
    )


def validate_dimensional_model(
    conformed: Mapping[str, pd.DataFrame],
    dimensional: Mapping[str, pd.DataFrame],
    sample_size: int = 10,
) -> ValidationReport:
    dim_customers = dimensional[DIM_CUSTOMERS]
    dim_products = dimensional[DIM_PRODUCTS]
    fact_sales = dimensional[FACT_SALES]
    current_products = conformed[PRODUCTS][conformed[PRODUCTS]["prd_end_dt"].isna()]

    report = ValidationReport()
    report.extend([
        # --------------------------------------------------
        # Dimensions: surrogate/business key integrity
        # --------------------------------------------------
        check_key_uniqueness(dim_customers, DIM_CUSTOMERS, "customer_key", "customer_id", sample_size),
        check_null_keys(dim_customers, DIM_CUSTOMERS, "customer_key", "customer_id", sample_size),
        check_key_uniqueness(dim_products, DIM_PRODUCTS, "product_key", "product_id", sample_size),
        check_null_keys(dim_products, DIM_PRODUCTS, "product_key", "product_id", sample_size),

        # --------------------------------------------------
        # Fact: connectivity to every dimension and measures
        # --------------------------------------------------
        check_fact_connectivity(
            fact_sales, FACT_SALES, "customer_key", dim_customers, "customer_key", sample_size=sample_size
        ),
        check_fact_connectivity(
            fact_sales, FACT_SALES, "product_key", dim_products, "product_key", sample_size=sample_size
        ),
        check_measures_not_null(fact_sales, FACT_SALES, sample_size=sample_size),

        # --------------------------------------------------
        # Row-count parity between layers
        # --------------------------------------------------
        check_row_count_parity(conformed[SALES], SALES, fact_sales, FACT_SALES),
        check_row_count_parity(conformed[CUSTOMERS], CUSTOMERS, dim_customers, DIM_CUSTOMERS),
        check_row_count_parity(current_products, PRODUCTS, dim_products, DIM_PRODUCTS),
    ])

    for finding in report.failures:
        logger.warning(
            f"Integrity check failed: {finding.table}.{finding.check} "
            f"({finding.violating_count} violations, sample={finding.sample_keys})"
        )
    logger.info(
        f"Integrity validation completed: {len(report.findings) - len(report.failures)} "
        f"of {len(report.findings)} checks passed"
    )
    return report
