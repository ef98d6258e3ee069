"""
grocery-matcher: match recipe ingredients to supermarket catalog products.
"""

from .catalog import CatalogRegistry, DiaCatalog, MercadonaCatalog, TTLCache
from .config import CatalogClientConfig, MatcherConfig
from .exceptions import (
    CatalogError,
    ConfigurationError,
    NetworkError,
    RateLimitedError,
    RequestTimeoutError,
)
from .matching import ProductMatcher, explain_match
from .models import GroceryItem, Product, ProductId, ProductMatch, SourceId

__version__ = "0.1.0"

__all__ = [
    "CatalogClientConfig",
    "CatalogError",
    "CatalogRegistry",
    "ConfigurationError",
    "DiaCatalog",
    "GroceryItem",
    "MatcherConfig",
    "MercadonaCatalog",
    "NetworkError",
    "Product",
    "ProductId",
    "ProductMatch",
    "ProductMatcher",
    "RateLimitedError",
    "RequestTimeoutError",
    "SourceId",
    "TTLCache",
    "explain_match",
]
