"""
S3 path helpers.

Raw objects and published layer tables share one bucket; keys are built here
so the DAG and the load helpers agree on slashes.
"""


def _ensure_trailing_slash(prefix: str) -> str:
    if not prefix:
        return ""
    return prefix if prefix.endswith("/") else f"{prefix}/"


def _strip_leading_slash(path: str) -> str:
    return path.lstrip("/") if path else ""


def build_raw_s3_key(raw_folder: str, relative_key: str) -> str:
    """
    Build a full S3 key for a raw source file.

    Example:
        build_raw_s3_key("raw", "source_crm/cust_info.csv")
        -> "raw/source_crm/cust_info.csv"
    """

    return f"{_ensure_trailing_slash(raw_folder)}{_strip_leading_slash(relative_key)}"


def build_layer_s3_key(warehouse_folder: str, layer: str, table: str) -> str:
    """
    Build the S3 key of a published layer table.

    Example:
        build_layer_s3_key("warehouse/", "dimensional", "fact_sales")
        -> "warehouse/dimensional/fact_sales.csv"
    """
    layer_prefix = _ensure_trailing_slash(
        f"{_ensure_trailing_slash(warehouse_folder)}{_strip_leading_slash(layer).strip('/')}"
    )
    return f"{layer_prefix}{_strip_leading_slash(table)}.csv"
