"""
Pytest configuration and fixtures for warehouse tests.

This file is automatically discovered by pytest and provides
shared raw-table fixtures for all test modules.
"""

import pytest
import sys
from datetime import date
from pathlib import Path

import pandas as pd

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from include.etl.conform import ConformSettings


@pytest.fixture(scope="session")
def test_output_dir(tmp_path_factory):
    """
    Create a temporary directory for test outputs.
    Useful for writing raw CSV snapshots.
    """
    return tmp_path_factory.mktemp("test_output")


@pytest.fixture
def settings():
    """Conformance settings pinned to a fixed run date."""
    return ConformSettings(as_of=date(2026, 1, 15))


@pytest.fixture
def raw_customers():
    return pd.DataFrame({
        "cst_id": ["1", "1", "2", "3", None],
        "cst_key": ["AW00001", "AW00001", "AW00002", "AW00003", "AW00099"],
        "cst_firstname": ["  Jon ", "Jon", "Elizabeth", " Lauren", "Ghost"],
        "cst_lastname": ["Yang", "Yang  ", "Zheng", "Walker", "Row"],
        "cst_marital_status": ["M", "s", " M ", None, "S"],
        "cst_gndr": ["M", "M", "f", "X", "F"],
        "cst_create_date": ["2025-01-01", "2025-01-05", "2025-01-03", "2025-01-04", "2025-01-02"],
    })


@pytest.fixture
def raw_products():
    return pd.DataFrame({
        "prd_id": ["210", "211", "212", "213"],
        "prd_key": ["CO-RF-FR-R92B-58", "AC-HE-HL-U509-R", "AC-HE-HL-U509-R", "AC-HE-HL-U509-R"],
        "prd_nm": [" HL Road Frame - Black- 58", "Sport-100 Helmet- Red", "Sport-100 Helmet- Red", "Sport-100 Helmet- Red "],
        "prd_cost": [None, "12", "14", "-3"],
        "prd_line": ["R ", "s", "S", None],
        "prd_start_dt": ["2003-07-01", "2011-07-01", "2012-07-01", "2013-07-01"],
        "prd_end_dt": [None, None, None, None],
    })


@pytest.fixture
def raw_sales():
    return pd.DataFrame({
        "sls_ord_num": ["SO43697", "SO43698", "SO43699", "SO43700"],
        "sls_prd_key": ["FR-R92B-58", "HL-U509-R", "HL-U509-R", "FR-R92B-58"],
        "sls_cust_id": ["1", "2", "3", "999"],
        "sls_order_dt": ["20101229", "0", "20110101", "5489"],
        "sls_ship_dt": ["20110105", "20110110", "20110108", "20110110"],
        "sls_due_dt": ["20110110", "20110115", "20110113", "20110115"],
        "sls_sales": ["3578", None, "-10", "50"],
        "sls_quantity": ["1", "2", "1", "2"],
        "sls_price": ["3578", "-5", "10", None],
    })


@pytest.fixture
def raw_demographics():
    return pd.DataFrame({
        "cid": ["NASAW00001", "AW00002", "NASAW00003"],
        "bdate": ["1971-10-06", "2099-01-01", "1900-05-01"],
        "gen": ["Male", " F", None],
    })


@pytest.fixture
def raw_locations():
    return pd.DataFrame({
        "cid": ["AW-00001", "AW-00002", "AW-00003"],
        "cntry": ["DE", " USA", "Atlantis"],
    })


@pytest.fixture
def raw_categories():
    return pd.DataFrame({
        "id": ["CO_RF", "AC_HE"],
        "cat": ["Components ", "Accessories"],
        "subcat": ["Road Frames", " Helmets"],
        "maintenance": ["Yes\u00a0", "\tno\r\n"],
    })


@pytest.fixture
def raw_tables(raw_customers, raw_products, raw_sales, raw_demographics, raw_locations, raw_categories):
    return {
        "crm_cust_info": raw_customers,
        "crm_prd_info": raw_products,
        "crm_sales_details": raw_sales,
        "erp_cust_az12": raw_demographics,
        "erp_loc_a101": raw_locations,
        "erp_px_cat_g1v2": raw_categories,
    }
