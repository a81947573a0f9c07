from io import StringIO
from typing import Mapping

import pandas as pd
from airflow.providers.amazon.aws.hooks.s3 import S3Hook
from botocore.exceptions import ClientError, NoCredentialsError

from include.logger import setup_logger
from include.utils.s3_paths import build_layer_s3_key

logger = setup_logger("etl.load_s3")


def write_layer_to_s3(
    tables: Mapping[str, pd.DataFrame],
    layer: str,
    aws_conn_id: str,
    bucket: str,
    warehouse_folder: str,
) -> list[str]:
    """
    Write every table of a published layer to S3 as CSV, replacing old objects.
    Returns the written keys.
    """
    if not bucket:
        raise ValueError("Bucket must not be empty")

    logger.info(f"Writing {len(tables)} {layer} tables to s3://{bucket}/{warehouse_folder}")

    try:
        try:
            hook = S3Hook(aws_conn_id=aws_conn_id)
        except NoCredentialsError as e:
            logger.error(f"AWS credentials not found for connection '{aws_conn_id}'")
            raise ValueError(f"Invalid AWS connection '{aws_conn_id}'") from e

        written = []
        for table, df in tables.items():
            key = build_layer_s3_key(warehouse_folder, layer, table)

            # Empty tables are still written (header only): a full refresh
            # must replace yesterday's rows
            buffer = StringIO()
            df.to_csv(buffer, index=False, date_format="%Y-%m-%d")

            try:
                hook.load_string(
                    string_data=buffer.getvalue(),
                    key=key,
                    bucket_name=bucket,
                    replace=True,
                )
            except ClientError as e:
                error_code = e.response["Error"]["Code"]
                if error_code == "NoSuchBucket":
                    logger.error(f"S3 bucket '{bucket}' does not exist")
                    raise ValueError(f"S3 bucket '{bucket}' not found") from e
                elif error_code == "AccessDenied":
                    logger.error(f"Access denied to bucket '{bucket}'")
                    raise PermissionError(
                        f"Access denied to S3 bucket '{bucket}'. "
                        "Check AWS credentials and bucket permissions."
                    ) from e
                else:
                    logger.error(f"S3 operation failed: {error_code} - {e}")
                    raise

            logger.info(f"Written {len(df)} rows to s3://{bucket}/{key}")
            written.append(key)

        return written

    except (ValueError, PermissionError) as e:
        logger.error(f"Validation/Permission error: {str(e)}")
        raise

    except Exception as e:
        logger.error(f"Unexpected error writing to S3: {str(e)}", exc_info=True)
        raise RuntimeError(f"Failed to write {layer} layer to S3: {str(e)}") from e
