from io import StringIO
from typing import Mapping

import pandas as pd
from airflow.providers.amazon.aws.hooks.s3 import S3Hook
from botocore.exceptions import ClientError

from include.etl.errors import StageError
from include.etl.extract_local import normalize_columns
from include.logger import setup_logger
from include.utils.s3_paths import build_raw_s3_key

logger = setup_logger("etl.extract_s3")


def extract_raw_tables(
    aws_conn_id: str,
    bucket: str,
    raw_folder: str,
    sources: Mapping[str, str],
) -> dict[str, pd.DataFrame]:
    """
    Extract every raw CSV named in ``sources`` from S3 as text DataFrames.
    Normalizes column names to lowercase with underscores.
    """
    hook = S3Hook(aws_conn_id=aws_conn_id)
    raw_tables = {}

    for table, relative_key in sources.items():
        key = build_raw_s3_key(raw_folder, relative_key)
        logger.info(f"Extracting {table} from s3://{bucket}/{key}")

        try:
            content = hook.read_key(key=key, bucket_name=bucket)
        except ClientError as e:
            error_code = e.response["Error"]["Code"]
            logger.error(f"Reading s3://{bucket}/{key} failed: {error_code}")
            raise StageError(f"extract:{table}", f"S3 read failed ({error_code}) for s3://{bucket}/{key}") from e

        if not content:
            raise StageError(f"extract:{table}", f"Empty source object s3://{bucket}/{key}")

        df = normalize_columns(pd.read_csv(StringIO(content), dtype=str))
        logger.info(f"Successfully extracted {len(df)} rows from {table}")
        raw_tables[table] = df

    return raw_tables


# Data Lake Structure:
# <bucket>
# │
# ├── raw/
# │   ├── source_crm/{cust_info,prd_info,sales_details}.csv
# │   └── source_erp/{CUST_AZ12,LOC_A101,PX_CAT_G1V2}.csv
# │
# └── warehouse/
#     ├── conformed/<raw table>.csv
#     └── dimensional/{dim_customers,dim_products,fact_sales}.csv
