"""
Unit tests for data validation functions.

Raw validation guards structure and stops a stage; conformed validation
reports data-quality findings and never stops the batch.
"""

import pytest
import pandas as pd
from datetime import date
from pathlib import Path
import sys

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from include.etl.conform import RAW_COLUMNS, conform
from include.etl.errors import StageError
from include.validations.input_schemas import raw_schemas
from include.validations.output_schemas import conformed_schemas, sales_conformed_schema
from include.validations.validate_inputs import validate_raw
from include.validations.validate_outputs import (
    check_customer_reference,
    validate_conformed,
    validate_conformed_layer,
)


@pytest.fixture
def conformed(raw_tables, settings):
    return {table: conform(table, df, settings) for table, df in raw_tables.items()}


class TestRawValidation:
    """Test suite for raw table structure validation."""

    def test_valid_raw_table_passes(self, raw_customers):
        result = validate_raw("crm_cust_info", raw_customers)
        assert len(result) == len(raw_customers)

    def test_garbage_values_are_not_rejected(self, raw_sales):
        """Test that bad values pass; only structure is checked here."""
        raw_sales.loc[0, "sls_order_dt"] = "not-a-date"
        raw_sales.loc[1, "sls_quantity"] = "-7"
        assert len(validate_raw("crm_sales_details", raw_sales)) == 4

    def test_extra_columns_allowed(self, raw_locations):
        raw_locations["loaded_at"] = "2026-01-15"
        assert "loaded_at" in validate_raw("erp_loc_a101", raw_locations).columns

    def test_missing_column_raises_stage_error(self, raw_customers):
        with pytest.raises(StageError) as excinfo:
            validate_raw("crm_cust_info", raw_customers.drop(columns=["cst_gndr"]))
        assert excinfo.value.stage == "validate:crm_cust_info"
        assert "cst_gndr" in str(excinfo.value)

    def test_unknown_table_raises_stage_error(self, raw_customers):
        with pytest.raises(StageError, match="No raw schema"):
            validate_raw("crm_unknown", raw_customers)


class TestConformedValidation:
    """Test suite for conformed-layer quality findings."""

    def test_fixture_layer_reports_only_negative_cost(self, conformed, settings):
        findings = validate_conformed_layer(conformed, settings.birthdate_floor, settings.as_of)
        assert len(findings) == 1
        finding = findings[0]
        assert finding.table == "crm_prd_info"
        assert finding.check.startswith("prd_cost:")
        assert finding.violating_count == 1
        assert finding.sample_keys == [213]

    def test_negative_cost_row_is_kept(self, conformed):
        """Test that a finding never removes the offending row."""
        products = conformed["crm_prd_info"]
        schemas = conformed_schemas(date(1924, 1, 1), date(2026, 1, 15))
        validate_conformed("crm_prd_info", products, schemas["crm_prd_info"])
        assert 213 in list(products["prd_id"])
        assert len(products) == 4

    def test_clean_sales_produce_no_findings(self, conformed):
        assert validate_conformed("crm_sales_details", conformed["crm_sales_details"], sales_conformed_schema) == []

    def test_inconsistent_sales_reported_once_per_row(self, conformed):
        sales = conformed["crm_sales_details"].copy()
        sales.loc[0, "sls_sales"] = 1.0

        findings = validate_conformed("crm_sales_details", sales, sales_conformed_schema)
        assert len(findings) == 1
        assert findings[0].check == "crm_sales_details:sales_equals_quantity_times_price"
        assert findings[0].violating_count == 1
        assert findings[0].sample_keys == [sales.loc[0, "sls_ord_num"]]

    def test_ship_before_order_reported(self, conformed):
        sales = conformed["crm_sales_details"].copy()
        sales.loc[0, "sls_ship_dt"] = sales.loc[0, "sls_order_dt"] - pd.Timedelta(days=1)

        findings = validate_conformed("crm_sales_details", sales, sales_conformed_schema)
        assert [f.check for f in findings] == [
            "crm_sales_details:sls_order_dt_not_after_sls_ship_dt"
        ]

    def test_sample_size_limits_keys(self, conformed):
        sales = conformed["crm_sales_details"].copy()
        sales["sls_quantity"] = -1.0

        findings = validate_conformed("crm_sales_details", sales, sales_conformed_schema, sample_size=2)
        quantity = [f for f in findings if f.check.startswith("sls_quantity:")]
        assert len(quantity) == 1
        assert quantity[0].violating_count == 4
        assert len(quantity[0].sample_keys) == 2

    def test_future_birthdate_reported(self, conformed, settings):
        demographics = conformed["erp_cust_az12"].copy()
        demographics.loc[0, "bdate"] = pd.Timestamp("2030-01-01")

        schemas = conformed_schemas(settings.birthdate_floor, settings.as_of)
        findings = validate_conformed("erp_cust_az12", demographics, schemas["erp_cust_az12"])
        assert len(findings) == 1
        assert findings[0].check.startswith("bdate:")
        assert findings[0].sample_keys == [demographics.loc[0, "cid"]]

    def test_unknown_label_reported(self, conformed):
        locations = conformed["erp_loc_a101"].copy()
        locations.loc[0, "cntry"] = "DE"

        schemas = conformed_schemas(date(1924, 1, 1), date(2026, 1, 15))
        findings = validate_conformed("erp_loc_a101", locations, schemas["erp_loc_a101"])
        assert [f.check.split(":")[0] for f in findings] == ["cntry"]


class TestCustomerReference:
    """Test suite for ERP -> CRM customer references."""

    def test_fixture_erp_ids_all_resolve(self, conformed):
        for table in ("erp_cust_az12", "erp_loc_a101"):
            finding = check_customer_reference(conformed[table], table, conformed["crm_cust_info"])
            assert finding.passed
            assert finding.check == "cid_in_crm_cust_info"

    def test_unknown_demographic_cid_reported(self, conformed, settings):
        conformed["erp_cust_az12"].loc[1, "cid"] = "AW99999"
        findings = validate_conformed_layer(conformed, settings.birthdate_floor, settings.as_of)

        references = [f for f in findings if f.check == "cid_in_crm_cust_info"]
        assert len(references) == 1
        assert references[0].table == "erp_cust_az12"
        assert references[0].violating_count == 1
        assert references[0].sample_keys == ["AW99999"]

    def test_unknown_location_cid_reported(self, conformed):
        locations = conformed["erp_loc_a101"].copy()
        locations.loc[0, "cid"] = "AW00042"
        locations.loc[2, "cid"] = None

        finding = check_customer_reference(locations, "erp_loc_a101", conformed["crm_cust_info"])
        assert finding.violating_count == 2
        assert finding.sample_keys == ["AW00042", None]

    def test_reference_check_skipped_without_customers(self, conformed, settings):
        del conformed["crm_cust_info"]
        conformed["erp_loc_a101"].loc[0, "cid"] = "AW00042"
        findings = validate_conformed_layer(conformed, settings.birthdate_floor, settings.as_of)
        assert all(f.check != "cid_in_crm_cust_info" for f in findings)


class TestSchemaCompliance:
    """Test that schemas are properly defined."""

    def test_raw_schema_per_table(self):
        assert set(raw_schemas) == set(RAW_COLUMNS)
        for table, schema in raw_schemas.items():
            assert set(schema.columns) == set(RAW_COLUMNS[table])

    def test_conformed_schema_per_table(self):
        schemas = conformed_schemas(date(1924, 1, 1), date(2026, 1, 15))
        assert set(schemas) == set(RAW_COLUMNS)
        assert all(schema.strict for schema in schemas.values())


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
