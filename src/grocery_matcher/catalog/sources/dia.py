"""
DIA catalog client (www.dia.es back-end JSON API).

Unlike Mercadona, DIA exposes a real search endpoint, so searches are a
single request. Upstream tolerates about one request every two seconds.
"""

import logging
import re
import time
from typing import Any, Dict, List, Optional

from ...config import DEFAULT_HEADERS, CatalogClientConfig, merge_headers
from ...models import (
    HealthResult,
    PackageSize,
    PriceInfo,
    PricePerUnit,
    Product,
    ProductId,
    Promotion,
    SearchCriteria,
    SearchResult,
    SourceId,
    coerce_unit,
)
from ..cache import CacheKeys, TTLCache
from ..client import apply_filters, sort_products
from ..parsing import build_package_size, fold, looks_organic, to_cents
from ..transport import CatalogTransport

logger = logging.getLogger(__name__)

SOURCE_ID = SourceId("dia")
DEFAULT_BASE_URL = "https://www.dia.es"
PRODUCT_PREFIX = "dia-"

ENDPOINTS = {
    "search": "/api/v1/search-back/search",
    "categories": "/api/v1/categories-back/categories",
    "category_products": "/api/v1/list-back/products",
    "home": "/api/v2/home-back",
    "product": "/api/v1/product-back",
}

# Category slug or name fragment -> Category
_CATEGORY_MAP = {
    "frutas": "produce", "verduras": "produce", "frutas-y-verduras": "produce",
    "carnes": "meat", "carne": "meat", "charcuteria": "meat", "embutidos": "meat",
    "pescados": "seafood", "mariscos": "seafood", "pescaderia": "seafood",
    "lacteos": "dairy", "leche": "dairy", "quesos": "dairy", "yogures": "dairy",
    "huevos": "dairy",
    "panaderia": "bakery", "pan": "bakery", "bolleria": "bakery",
    "congelados": "frozen",
    "conservas": "canned",
    "despensa": "dry_goods", "pasta": "dry_goods", "arroz": "dry_goods",
    "legumbres": "dry_goods", "cereales": "dry_goods",
    "aceites": "condiments", "salsas": "condiments", "vinagres": "condiments",
    "especias": "spices", "condimentos": "spices",
    "bebidas": "beverages", "agua": "beverages", "refrescos": "beverages",
    "zumos": "beverages", "cafe": "beverages", "te": "beverages",
}

_STORE_BRANDS = ("dia", "basic", "delicious", "bonarea")

# Fragments this short only count as whole words ("te" must not match "aceites")
_SHORT_KEYWORD_LENGTH = 3


def default_config(**overrides: Any) -> CatalogClientConfig:
    """DIA defaults (1 request / 2 s), overridable via DIA_*."""
    values: Dict[str, Any] = {
        "base_url": DEFAULT_BASE_URL,
        "min_interval": 2.0,
        "headers": merge_headers(DEFAULT_HEADERS, {"Referer": f"{DEFAULT_BASE_URL}/"}),
    }
    values.update(overrides)
    return CatalogClientConfig.from_env("DIA", **values)


# ---------------------------------------------------------------------------
# Raw JSON -> Product
# ---------------------------------------------------------------------------


def _keyword_in(keyword: str, text: str) -> bool:
    if len(keyword) <= _SHORT_KEYWORD_LENGTH:
        return re.search(rf"\b{re.escape(keyword)}\b", text) is not None
    return keyword in text


def _map_category(categories: List[Dict[str, Any]]) -> str:
    for category in categories:
        slug = fold(category.get("slug"))
        name = fold(category.get("name"))
        if slug in _CATEGORY_MAP:
            return _CATEGORY_MAP[slug]
        for keyword, mapped in _CATEGORY_MAP.items():
            if _keyword_in(keyword, slug) or _keyword_in(keyword, name):
                return mapped
    return "other"


def _is_store_brand(brand: Optional[str], name: str) -> bool:
    brand_folded = fold(brand)
    name_folded = fold(name)
    return any(sb in brand_folded or name_folded.startswith(sb) for sb in _STORE_BRANDS)


def _parse_package_size(packaging: Optional[Dict[str, Any]]) -> PackageSize:
    if not packaging:
        return PackageSize(value=1, unit="piece", display="1 ud")
    value = float(packaging.get("quantity") or 1)
    unit_raw = packaging.get("unit") or packaging.get("size") or "ud"
    return build_package_size(value, unit_raw, f"{value:g}{unit_raw}")


def _parse_promotion(current_cents: int, prices: Dict[str, Any]) -> Optional[Promotion]:
    strikethrough_cents = to_cents(prices.get("strikethrough_price"))
    if strikethrough_cents is None or strikethrough_cents <= current_cents:
        return None
    percentage = float(prices.get("discount_percentage") or 0)
    if not percentage:
        percentage = round((1 - current_cents / strikethrough_cents) * 100)
    return Promotion(
        type="discount",
        description=f"{percentage:g}% de descuento",
        savings_cents=strikethrough_cents - current_cents,
    )


def parse_dia_product(
    raw: Dict[str, Any],
    source_id: str = SOURCE_ID,
    base_url: str = DEFAULT_BASE_URL,
) -> Product:
    """
    Convert a DIA API product into a Product.

    Args:
        raw: Product JSON from the search, listing, home or product endpoint.
        source_id: Source to stamp on the product.
        base_url: Site root used to build the product URL.

    Returns:
        The parsed Product.

    Raises:
        KeyError, TypeError, ValueError: The payload lacks required data.
    """
    prices = raw["prices"]
    current_cents = to_cents(prices.get("price"))
    if current_cents is None:
        raise ValueError(f"Product {raw.get('id')} has no price")

    promotion = _parse_promotion(current_cents, prices)
    original_cents = to_cents(prices.get("strikethrough_price")) if promotion else None

    per_unit = None
    per_unit_cents = to_cents(prices.get("price_per_unit"))
    if per_unit_cents is not None:
        unit_label = prices.get("unit_price") or "kg"
        per_unit = PricePerUnit(
            price_cents=per_unit_cents,
            unit=coerce_unit(unit_label),
            display=f"{per_unit_cents / 100:.2f}/{unit_label}",
        )

    name = raw.get("name") or ""
    brand = raw.get("brand")
    badges = " ".join(fold(b) for b in raw.get("badges") or [])
    slug = raw.get("slug") or raw["id"]

    return Product(
        id=ProductId(f"{PRODUCT_PREFIX}{raw['id']}"),
        source_id=source_id,
        name=name,
        brand=brand,
        description=raw.get("description"),
        price=PriceInfo(
            current_cents=current_cents,
            original_cents=original_cents,
            per_unit=per_unit,
        ),
        category=_map_category(raw.get("categories") or []),
        package_size=_parse_package_size(raw.get("packaging")),
        in_stock=bool((raw.get("stock") or {}).get("available", True)),
        is_organic=looks_organic(name) or "eco" in badges or "bio" in badges,
        is_store_brand=_is_store_brand(brand, name),
        promotion=promotion,
        product_url=f"{base_url}/compra-online/productos/{slug}",
    )


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class DiaCatalog:
    """CatalogClient for DIA."""

    def __init__(
        self,
        config: Optional[CatalogClientConfig] = None,
        cache: Optional[TTLCache] = None,
        transport: Optional[CatalogTransport] = None,
        source_id: str = SOURCE_ID,
    ):
        self.source_id = SourceId(source_id)
        self.config = config or default_config()
        self._cache = cache or TTLCache(ttls=self.config.cache_ttls)
        self._transport = transport or CatalogTransport(self.source_id, self.config)

    @property
    def cache(self) -> TTLCache:
        return self._cache

    async def __aenter__(self) -> "DiaCatalog":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._transport.aclose()

    def _parse_products(self, raw_products: List[Dict[str, Any]]) -> List[Product]:
        products = []
        for raw in raw_products:
            try:
                products.append(parse_dia_product(raw, self.source_id, self.config.base_url))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"[{self.source_id}] Skipping malformed product {raw.get('id')}: {e}")
        return products

    async def search_products(self, criteria: SearchCriteria) -> SearchResult:
        """Search through DIA's search endpoint, then filter and sort locally."""
        start = time.perf_counter()
        key = CacheKeys.search(
            self.source_id, criteria.query, criteria.model_dump(exclude={"query"})
        )
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug(f"[{self.source_id}] Cache hit: search '{criteria.query}'")
            return cached

        data = await self._transport.get_json(
            ENDPOINTS["search"],
            params={"q": criteria.query, "page": 0, "hitsPerPage": criteria.limit},
        ) or {}
        products = sort_products(
            apply_filters(self._parse_products(data.get("hits") or []), criteria),
            criteria.sort_by,
        )
        result = SearchResult(
            products=products[: criteria.limit],
            total_count=data.get("nbHits", len(products)),
            query=criteria.query,
            search_time_ms=(time.perf_counter() - start) * 1000,
        )
        self._cache.set_with_kind(key, result, "search")
        logger.info(f"[{self.source_id}] Search '{criteria.query}': {len(result.products)} products")
        return result

    async def get_product(self, product_id: str) -> Optional[Product]:
        """Fetch one product by id ("dia-123" or the raw upstream "123")."""
        raw_id = str(product_id).removeprefix(PRODUCT_PREFIX)
        key = CacheKeys.product(self.source_id, raw_id)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        data = await self._transport.get_json(
            f"{ENDPOINTS['product']}/{raw_id}", allow_not_found=True
        )
        if data is None:
            return None
        product = parse_dia_product(data, self.source_id, self.config.base_url)
        self._cache.set_with_kind(key, product, "product")
        return product

    async def get_categories(self) -> List[Dict[str, Any]]:
        key = CacheKeys.category(self.source_id)
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        data = await self._transport.get_json(ENDPOINTS["categories"]) or {}
        categories = data.get("categories") or []
        self._cache.set_with_kind(key, categories, "category")
        return categories

    async def get_products_by_category(self, category_name: str, limit: int = 50) -> List[Product]:
        """Products listed under a category slug or name."""
        key = CacheKeys.category(self.source_id, f"{category_name}:{limit}")
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        data = await self._transport.get_json(
            ENDPOINTS["category_products"],
            params={"category": category_name, "page": 0, "limit": limit},
        ) or {}
        products = self._parse_products(data.get("products") or [])[:limit]
        self._cache.set_with_kind(key, products, "category")
        return products

    async def get_promotions(self) -> List[Product]:
        """Promoted products from the home page, de-duplicated by id."""
        data = await self._transport.get_json(ENDPOINTS["home"]) or {}
        raw_products: List[Dict[str, Any]] = list(data.get("promotions") or [])
        for carousel in data.get("carousels") or []:
            title = fold(carousel.get("title"))
            if carousel.get("type") == "promotion" or "oferta" in title:
                raw_products.extend(carousel.get("products") or [])

        seen = set()
        promotions = []
        for product in self._parse_products(raw_products):
            if product.id not in seen:
                seen.add(product.id)
                promotions.append(product)
        return promotions

    async def health_check(self) -> HealthResult:
        return await self._transport.health_check("/")
