from typing import Mapping

import pandas as pd

from include.etl.conform import CATEGORIES, CUSTOMERS, DEMOGRAPHICS, LOCATIONS, PRODUCTS, SALES
from include.etl.standardize import UNKNOWN_LABEL
from include.logger import setup_logger

logger = setup_logger("etl.project")

DIM_CUSTOMERS = "dim_customers"
DIM_PRODUCTS = "dim_products"
FACT_SALES = "fact_sales"


def assign_surrogate_keys(df: pd.DataFrame, key: str, order_by: str) -> pd.DataFrame:
    """Number rows 1..n by ascending ``order_by`` into a leading ``key`` column."""
    ordered = df.sort_values(order_by, kind="mergesort", na_position="last").reset_index(drop=True)
    ordered.insert(0, key, pd.array(range(1, len(ordered) + 1), dtype="Int64"))
    return ordered


def _first_per_key(df: pd.DataFrame, key: str) -> pd.DataFrame:
    # Enrichment tables may repeat a key; keep one row so joins never fan out
    return df[df[key].notna()].drop_duplicates(subset=key, keep="first")


def build_dim_customers(
    customers: pd.DataFrame,
    demographics: pd.DataFrame,
    locations: pd.DataFrame,
) -> pd.DataFrame:
    logger.info(f"Building {DIM_CUSTOMERS} from {len(customers)} conformed customers")

    # --------------------------------------------------
    # 1. Enrich CRM customers with ERP location and demographics
    # --------------------------------------------------
    # LEFT JOIN keeps every customer even without ERP data.
    enriched = customers.merge(
        _first_per_key(locations, "cid")[["cid", "cntry"]],
        left_on="cst_key",
        right_on="cid",
        how="left",
    ).drop(columns="cid")
    enriched = enriched.merge(
        _first_per_key(demographics, "cid")[["cid", "bdate", "gen"]],
        left_on="cst_key",
        right_on="cid",
        how="left",
    ).drop(columns="cid")

    # --------------------------------------------------
    # 2. Gender: CRM is the master, ERP fills its gaps
    # --------------------------------------------------
    crm_gender = enriched["cst_gndr"]
    erp_gender = enriched["gen"].fillna(UNKNOWN_LABEL)
    enriched["gender"] = crm_gender.where(crm_gender != UNKNOWN_LABEL, erp_gender)

    dim = enriched.rename(columns={
        "cst_id": "customer_id",
        "cst_key": "customer_number",
        "cst_firstname": "first_name",
        "cst_lastname": "last_name",
        "cntry": "country",
        "cst_marital_status": "marital_status",
        "bdate": "birthdate",
        "cst_create_date": "create_date",
    })
    dim["country"] = dim["country"].fillna(UNKNOWN_LABEL)

    dim = assign_surrogate_keys(dim, "customer_key", "customer_id")
    return dim[[
        "customer_key", "customer_id", "customer_number", "first_name", "last_name",
        "country", "marital_status", "gender", "birthdate", "create_date",
    ]]


def build_dim_products(products: pd.DataFrame, categories: pd.DataFrame) -> pd.DataFrame:
    # Only the current version of each product (open-ended end date)
    current = products[products["prd_end_dt"].isna()]
    logger.info(
        f"Building {DIM_PRODUCTS} from {len(current)} current of {len(products)} conformed products"
    )

    enriched = current.merge(
        _first_per_key(categories, "id")[["id", "cat", "subcat", "maintenance"]],
        left_on="cat_id",
        right_on="id",
        how="left",
    ).drop(columns="id")

    dim = enriched.rename(columns={
        "prd_id": "product_id",
        "prd_key": "product_number",
        "prd_nm": "product_name",
        "cat_id": "category_id",
        "cat": "category",
        "subcat": "subcategory",
        "prd_cost": "cost",
        "prd_line": "product_line",
        "prd_start_dt": "start_date",
    })

    dim = assign_surrogate_keys(dim, "product_key", "product_id")
    return dim[[
        "product_key", "product_id", "product_number", "product_name", "category_id",
        "category", "subcategory", "maintenance", "cost", "product_line", "start_date",
    ]]


def lookup_keys(values: pd.Series, dim: pd.DataFrame, natural: str, surrogate: str) -> pd.Series:
    """Resolve natural keys to surrogate keys; misses become null."""
    index = _first_per_key(dim, natural).set_index(natural)[surrogate]
    return values.map(index).astype("Int64")


def build_fact_sales(
    sales: pd.DataFrame,
    dim_customers: pd.DataFrame,
    dim_products: pd.DataFrame,
) -> pd.DataFrame:
    logger.info(f"Building {FACT_SALES} from {len(sales)} conformed sales")

    fact = pd.DataFrame({
        "order_number": sales["sls_ord_num"],
        "product_key": lookup_keys(sales["sls_prd_key"], dim_products, "product_number", "product_key"),
        "customer_key": lookup_keys(sales["sls_cust_id"], dim_customers, "customer_id", "customer_key"),
        "order_date": sales["sls_order_dt"],
        "shipping_date": sales["sls_ship_dt"],
        "due_date": sales["sls_due_dt"],
        "sales_amount": sales["sls_sales"],
        "quantity": sales["sls_quantity"],
        "price": sales["sls_price"],
    }).reset_index(drop=True)
    fact.insert(0, "sales_key", pd.array(range(1, len(fact) + 1), dtype="Int64"))

    unresolved = fact["product_key"].isna() | fact["customer_key"].isna()
    if unresolved.any():
        logger.warning(f"{FACT_SALES}: {int(unresolved.sum())} rows with unresolved dimension keys")

    return fact


def project(conformed: Mapping[str, pd.DataFrame]) -> dict[str, pd.DataFrame]:
    """Build the star schema from a complete conformed snapshot."""
    dim_customers = build_dim_customers(
        conformed[CUSTOMERS], conformed[DEMOGRAPHICS], conformed[LOCATIONS]
    )
    dim_products = build_dim_products(conformed[PRODUCTS], conformed[CATEGORIES])
    fact_sales = build_fact_sales(conformed[SALES], dim_customers, dim_products)

    logger.info(
        f"Projection completed: {len(dim_customers)} customers, "
        f"{len(dim_products)} products, {len(fact_sales)} sales"
    )
    return {
        DIM_CUSTOMERS: dim_customers,
        DIM_PRODUCTS: dim_products,
        FACT_SALES: fact_sales,
    }
