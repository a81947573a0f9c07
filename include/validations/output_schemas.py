import numpy as np
import pandas as pd
from pandera.pandas import Check, Column, DataFrameSchema

from include.etl.conform import CATEGORIES, CUSTOMERS, DEMOGRAPHICS, LOCATIONS, PRODUCTS, SALES

# Quality checks on the conformed layer. A failure here is a data-quality
# finding for the report, never a reason to stop the batch.

trimmed = Check(lambda s: s.astype(str) == s.astype(str).str.strip(), name="trimmed")


def labels(*values: str) -> Check:
    return Check.isin(list(values) + ["N/A"])


def _not_after(earlier: str, later: str) -> Check:
    def check(df: pd.DataFrame) -> pd.Series:
        return df[earlier].isna() | df[later].isna() | (df[earlier] <= df[later])

    return Check(check, name=f"{earlier}_not_after_{later}")


def _sales_consistent(df: pd.DataFrame) -> pd.Series:
    expected = df["sls_quantity"] * df["sls_price"]
    return pd.Series(
        np.isclose(df["sls_sales"].astype(float), expected.astype(float)),
        index=df.index,
    )


customers_conformed_schema = DataFrameSchema(
    {
        "cst_id": Column(nullable=False, unique=True),
        "cst_key": Column(nullable=True, unique=True),
        "cst_firstname": Column(checks=trimmed, nullable=True),
        "cst_lastname": Column(checks=trimmed, nullable=True),
        "cst_marital_status": Column(checks=labels("Single", "Married"), nullable=False),
        "cst_gndr": Column(checks=labels("Female", "Male"), nullable=False),
        "cst_create_date": Column(nullable=True),
    },
    name=CUSTOMERS,
    strict=True,
)


products_conformed_schema = DataFrameSchema(
    {
        "prd_id": Column(nullable=False, unique=True),
        "cat_id": Column(nullable=True),
        "prd_key": Column(nullable=True),
        "prd_nm": Column(checks=trimmed, nullable=True),
        # Nulls are defaulted to 0; negatives are kept and surface here
        "prd_cost": Column(checks=Check.ge(0), nullable=False),
        "prd_line": Column(checks=labels("Mountain", "Road", "Other Sales", "Touring"), nullable=False),
        "prd_start_dt": Column(nullable=True),
        "prd_end_dt": Column(nullable=True),
    },
    checks=[_not_after("prd_start_dt", "prd_end_dt")],
    name=PRODUCTS,
    strict=True,
)


sales_conformed_schema = DataFrameSchema(
    {
        "sls_ord_num": Column(nullable=False),
        "sls_prd_key": Column(nullable=False),
        "sls_cust_id": Column(nullable=False),
        "sls_order_dt": Column(nullable=True),
        "sls_ship_dt": Column(nullable=True),
        "sls_due_dt": Column(nullable=True),
        # Measures must be positive after reconciliation
        "sls_sales": Column(checks=Check.gt(0), nullable=False),
        "sls_quantity": Column(checks=Check.gt(0), nullable=False),
        "sls_price": Column(checks=Check.gt(0), nullable=False),
    },
    checks=[
        _not_after("sls_order_dt", "sls_ship_dt"),
        _not_after("sls_order_dt", "sls_due_dt"),
        Check(_sales_consistent, name="sales_equals_quantity_times_price"),
    ],
    name=SALES,
    strict=True,
)


def demographics_conformed_schema(birthdate_floor, as_of) -> DataFrameSchema:
    return DataFrameSchema(
        {
            "cid": Column(nullable=False),
            "bdate": Column(
                checks=Check.in_range(pd.Timestamp(birthdate_floor), pd.Timestamp(as_of)),
                nullable=True,
            ),
            "gen": Column(checks=labels("Female", "Male"), nullable=False),
        },
        name=DEMOGRAPHICS,
        strict=True,
    )


locations_conformed_schema = DataFrameSchema(
    {
        "cid": Column(checks=Check.str_matches(r"^[^-]*$"), nullable=False),
        "cntry": Column(
            checks=labels("Germany", "United States", "United Kingdom", "France", "Australia", "Canada"),
            nullable=False,
        ),
    },
    name=LOCATIONS,
    strict=True,
)


categories_conformed_schema = DataFrameSchema(
    {
        "id": Column(nullable=False, unique=True),
        "cat": Column(checks=trimmed, nullable=True),
        "subcat": Column(checks=trimmed, nullable=True),
        "maintenance": Column(checks=labels("Yes", "No"), nullable=False),
    },
    name=CATEGORIES,
    strict=True,
)


def conformed_schemas(birthdate_floor, as_of) -> dict[str, DataFrameSchema]:
    return {
        CUSTOMERS: customers_conformed_schema,
        PRODUCTS: products_conformed_schema,
        SALES: sales_conformed_schema,
        DEMOGRAPHICS: demographics_conformed_schema(birthdate_floor, as_of),
        LOCATIONS: locations_conformed_schema,
        CATEGORIES: categories_conformed_schema,
    }
