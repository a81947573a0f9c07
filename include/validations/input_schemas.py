from pandera.pandas import Column, DataFrameSchema

from include.etl.conform import RAW_COLUMNS

# Raw tables arrive as text straight from the source files, so only the
# structure is enforced here: every expected column must be present. Values
# (blank ids, bad date codes, negative prices) are the conformance stages' job.


def _raw_schema(table: str) -> DataFrameSchema:
    return DataFrameSchema(
        {column: Column(nullable=True, required=True) for column in RAW_COLUMNS[table]},
        name=table,
        strict=False,  # Allow extra columns (dropped during conformance)
    )


raw_schemas = {table: _raw_schema(table) for table in RAW_COLUMNS}
