"""
Pipeline configuration loading.

Values from ``include/config.yaml`` (or an explicit path) are merged over the
defaults below, so a partial file is enough to run the batch locally.
"""

import copy
from pathlib import Path
from typing import Any, Optional, Union

import yaml

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config.yaml"

DEFAULTS: dict[str, Any] = {
    "aws_conn_id": "aws_default",
    "s3": {
        "bucket": None,
        "raw_folder": "raw/",
        "warehouse_folder": "warehouse/",
        "sources": {
            "crm_cust_info": "source_crm/cust_info.csv",
            "crm_prd_info": "source_crm/prd_info.csv",
            "crm_sales_details": "source_crm/sales_details.csv",
            "erp_cust_az12": "source_erp/CUST_AZ12.csv",
            "erp_loc_a101": "source_erp/LOC_A101.csv",
            "erp_px_cat_g1v2": "source_erp/PX_CAT_G1V2.csv",
        },
    },
    "pipeline": {
        "max_workers": 4,
        "min_date_code": 19000101,
        "max_date_code": 20500101,
        "birthdate_floor": "1924-01-01",
        "sample_size": 10,
        "fail_on_findings": False,
    },
    "logging": {"level": "INFO"},
}


def _merge(base: dict, override: dict) -> dict:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_pipeline_config(path: Optional[Union[str, Path]] = None) -> dict[str, Any]:
    """
    Load the YAML config and merge it over the defaults.

    A missing default file yields the defaults; a missing explicit path is an
    error.
    """
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH
    if not config_path.exists():
        if path:
            raise FileNotFoundError(f"Config file not found: {config_path}")
        return copy.deepcopy(DEFAULTS)

    with open(config_path) as f:
        loaded = yaml.safe_load(f) or {}

    if not isinstance(loaded, dict):
        raise ValueError(f"Config root must be a mapping: {config_path}")

    return _merge(DEFAULTS, loaded)
