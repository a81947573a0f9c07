import pandas as pd
from pandera.errors import SchemaErrors

from include.etl.errors import StageError
from include.logger import setup_logger
from .input_schemas import raw_schemas

logger = setup_logger("validation.input")


def validate_raw(table: str, df: pd.DataFrame) -> pd.DataFrame:
    """
    Check that a raw table has the structure its conformance stage needs.

    A missing table definition or missing columns are structural failures
    and raise ``StageError``; row values are never checked here.
    """
    stage = f"validate:{table}"
    if table not in raw_schemas:
        raise StageError(stage, f"No raw schema registered for table '{table}'")

    logger.info(f"Starting raw validation of {table} on {len(df)} rows")
    try:
        validated_df = raw_schemas[table].validate(df, lazy=True)
    except SchemaErrors as err:
        failed = err.failure_cases
        missing = sorted(failed["failure_case"].dropna().astype(str).unique())
        logger.error(f"Raw table {table} is malformed: {missing}")
        raise StageError(stage, f"Raw table is missing required columns: {missing}") from err

    logger.info(f"Raw validation of {table} passed")
    return validated_df
