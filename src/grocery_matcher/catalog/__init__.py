from .cache import CacheKeys, InMemoryCacheBackend, TTLCache, get_default_cache
from .client import CatalogClient, apply_filters, check_stock, sort_products
from .rate_limiter import RateLimiter
from .registry import CatalogRegistry
from .sources import DiaCatalog, MercadonaCatalog
from .transport import CatalogTransport

__all__ = [
    "CacheKeys",
    "CatalogClient",
    "CatalogRegistry",
    "CatalogTransport",
    "DiaCatalog",
    "InMemoryCacheBackend",
    "MercadonaCatalog",
    "RateLimiter",
    "TTLCache",
    "apply_filters",
    "check_stock",
    "get_default_cache",
    "sort_products",
]
