from typing import Mapping

import pandas as pd
from pandera.errors import SchemaErrors
from pandera.pandas import DataFrameSchema

from include.etl.conform import CUSTOMERS, DEMOGRAPHICS, LOCATIONS, PRODUCTS, SALES
from include.logger import setup_logger
from .output_schemas import conformed_schemas
from .report import Finding, sample_keys

logger = setup_logger("validation.output")

# Column identifying a row in finding samples (ERP tables use cid/id)
BUSINESS_KEYS = {
    CUSTOMERS: "cst_id",
    PRODUCTS: "prd_id",
    SALES: "sls_ord_num",
}


def _findings_from_failures(
    table: str,
    df: pd.DataFrame,
    failed: pd.DataFrame,
    sample_size: int,
) -> list[Finding]:
    key_column = BUSINESS_KEYS.get(table, "cid" if "cid" in df.columns else df.columns[0])
    # Table-wide checks report one failure case per column of a failing row
    table_wide = failed["schema_context"].astype(str) == "DataFrameSchema"
    failed = failed.assign(
        column=failed["column"].where(~table_wide, table).fillna(table).astype(str),
        check=failed["check"].astype(str),
    )

    findings = []
    for (column, check), cases in failed.groupby(["column", "check"], sort=True):
        indices = pd.to_numeric(cases["index"], errors="coerce").dropna().astype(int).unique()
        rows = df.loc[df.index.intersection(indices)]
        keys = rows[key_column] if len(rows) else cases["failure_case"]
        findings.append(Finding(
            table=table,
            check=f"{column}:{check}",
            violating_count=len(indices) if len(indices) else len(cases),
            sample_keys=sample_keys(keys, sample_size),
            violations=rows,
        ))
    return findings


def validate_conformed(
    table: str,
    df: pd.DataFrame,
    schema: DataFrameSchema,
    sample_size: int = 10,
) -> list[Finding]:
    """
    Run a conformed-table schema lazily and report every failure as a finding.

    Never raises for data problems: the table is kept as published.
    """
    logger.info(f"Starting conformed validation of {table} on {len(df)} rows")

    try:
        schema.validate(df, lazy=True)
        logger.info(f"Conformed validation of {table} passed")
        return []

    except SchemaErrors as err:
        failed = err.failure_cases
        logger.warning(f"Conformed validation of {table} found {len(failed)} issues")
        logger.warning(f"Failure summary:\n{failed.groupby(['column', 'check'], dropna=False).size()}")
        return _findings_from_failures(table, df, failed, sample_size)


def check_customer_reference(
    df: pd.DataFrame,
    table: str,
    customers: pd.DataFrame,
    sample_size: int = 10,
) -> Finding:
    """ERP rows whose cid matches no CRM customer's cst_key."""
    orphaned = df[~df["cid"].isin(customers["cst_key"].dropna())]
    return Finding(
        table=table,
        check=f"cid_in_{CUSTOMERS}",
        violating_count=len(orphaned),
        sample_keys=sample_keys(orphaned["cid"], sample_size),
        violations=orphaned,
    )


def validate_conformed_layer(
    conformed: Mapping[str, pd.DataFrame],
    birthdate_floor,
    as_of,
    sample_size: int = 10,
) -> list[Finding]:
    """Schema findings per table plus ERP -> CRM customer references (failures only)."""
    schemas = conformed_schemas(birthdate_floor, as_of)
    findings = []
    for table, df in conformed.items():
        if table in schemas:
            findings.extend(validate_conformed(table, df, schemas[table], sample_size))

    if CUSTOMERS in conformed:
        for table in (DEMOGRAPHICS, LOCATIONS):
            if table not in conformed:
                continue
            finding = check_customer_reference(conformed[table], table, conformed[CUSTOMERS], sample_size)
            if not finding.passed:
                logger.warning(
                    f"{table}: {finding.violating_count} rows reference unknown customers "
                    f"(sample={finding.sample_keys})"
                )
                findings.append(finding)
    return findings
