from src.catalog.schemas import (
    AliExpressProductRaw,
    Product,
    ProductFilters,
    ProductStats,
    QueryResult,
    ScoredProduct,
)
from src.catalog.normalize import merge_with_cached, normalize_all, normalize_product
from src.catalog.query import filter_products, query_products, sort_products

__all__ = [
    "AliExpressProductRaw",
    "Product",
    "ProductFilters",
    "ProductStats",
    "QueryResult",
    "ScoredProduct",
    "filter_products",
    "merge_with_cached",
    "normalize_all",
    "normalize_product",
    "query_products",
    "sort_products",
]
