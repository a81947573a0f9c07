"""
Shared utilities for the warehouse pipeline.

Keep helpers here small so DAG parsing stays reliable.
"""

from .config import load_pipeline_config
from .s3_paths import build_layer_s3_key, build_raw_s3_key

__all__ = ["build_raw_s3_key", "build_layer_s3_key", "load_pipeline_config"]
