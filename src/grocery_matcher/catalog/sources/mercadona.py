"""
Mercadona catalog client (tienda.mercadona.es JSON API).

The API has no search endpoint, so searching walks the category tree and
filters products locally. Category listings are cached for a week, which
keeps the walk affordable after the first pass. Upstream allows roughly one
request every three seconds.
"""

import logging
import re
import time
from typing import Any, Dict, Iterator, List, Optional

from ...config import CatalogClientConfig, RetryPolicy
from ...models import (
    HealthResult,
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

SOURCE_ID = SourceId("mercadona")
DEFAULT_BASE_URL = "https://tienda.mercadona.es/api"
DEFAULT_WAREHOUSE = "mad1"
PRODUCT_PREFIX = "merc-"
PROMOTION_SCAN_CATEGORIES = 5

# First keyword contained in the top category name wins
_CATEGORY_MAP = (
    ("frescos", "produce"), ("frutas", "produce"), ("verduras", "produce"),
    ("hortalizas", "produce"),
    ("carniceria", "meat"), ("carne", "meat"), ("charcuteria", "meat"),
    ("pescaderia", "seafood"), ("pescado", "seafood"), ("marisco", "seafood"),
    ("lacteos", "dairy"), ("leche", "dairy"), ("quesos", "dairy"),
    ("yogures", "dairy"), ("huevos", "dairy"),
    ("pan", "bakery"), ("panaderia", "bakery"), ("bolleria", "bakery"),
    ("pasteleria", "bakery"),
    ("congelados", "frozen"),
    ("conservas", "canned"),
    ("despensa", "dry_goods"), ("pasta", "dry_goods"), ("arroz", "dry_goods"),
    ("legumbres", "dry_goods"), ("cereales", "dry_goods"),
    ("aceites", "condiments"), ("salsas", "condiments"),
    ("especias", "spices"), ("condimentos", "spices"),
    ("bebidas", "beverages"), ("agua", "beverages"), ("refrescos", "beverages"),
    ("zumos", "beverages"), ("vinos", "beverages"), ("cervezas", "beverages"),
)

_STORE_BRANDS = ("hacendado", "deliplus", "bosque verde", "compy", "brillante")

_SIZE_FORMAT_RE = re.compile(r"^([\d.,]+)\s*(\w+)$")


def default_config(**overrides: Any) -> CatalogClientConfig:
    """Mercadona defaults (1 request / 3 s, slower backoff), overridable via MERCADONA_*."""
    values: Dict[str, Any] = {
        "base_url": DEFAULT_BASE_URL,
        "min_interval": 3.0,
        "retry": RetryPolicy(base_delay=2.0, max_delay=30.0),
    }
    values.update(overrides)
    return CatalogClientConfig.from_env("MERCADONA", **values)


# ---------------------------------------------------------------------------
# Raw JSON -> Product
# ---------------------------------------------------------------------------


def _map_category(categories: List[Dict[str, Any]]) -> str:
    if not categories:
        return "other"
    top = fold(categories[0].get("name"))
    for keyword, category in _CATEGORY_MAP:
        if keyword in top:
            return category
    return "other"


def _store_brand(name_folded: str) -> Optional[str]:
    for brand in _STORE_BRANDS:
        if brand in name_folded:
            return brand
    return None


def _parse_package_size(instructions: Dict[str, Any]):
    size_format = (instructions.get("size_format") or "").strip()
    match = _SIZE_FORMAT_RE.match(size_format)
    if match:
        value = float(match.group(1).replace(",", "."))
        return build_package_size(value, match.group(2), size_format)

    unit_size = float(instructions.get("unit_size") or 1)
    unit_raw = size_format or instructions.get("unit_name") or "ud"
    return build_package_size(unit_size, unit_raw, f"{unit_size:g} {unit_raw}")


def parse_mercadona_product(raw: Dict[str, Any], source_id: str = SOURCE_ID) -> Product:
    """
    Convert a Mercadona API product into a Product.

    Args:
        raw: Product JSON as returned by the categories or products endpoint.
        source_id: Source to stamp on the product.

    Returns:
        The parsed Product.

    Raises:
        KeyError, TypeError, ValueError: The payload lacks required data.
    """
    instructions = raw["price_instructions"]
    current_cents = to_cents(instructions.get("unit_price"))
    if current_cents is None:
        raise ValueError(f"Product {raw.get('id')} has no unit_price")

    promotion = None
    original_cents = None
    if instructions.get("price_decreased") and instructions.get("previous_unit_price"):
        original_cents = to_cents(instructions.get("previous_unit_price"))
        if original_cents is not None:
            promotion = Promotion(
                type="discount",
                description="Precio rebajado",
                savings_cents=max(0, original_cents - current_cents),
            )

    per_unit = None
    reference_cents = to_cents(instructions.get("reference_price"))
    if reference_cents is not None:
        reference_format = instructions.get("reference_format") or ""
        per_unit = PricePerUnit(
            price_cents=reference_cents,
            unit=coerce_unit(reference_format),
            display=f"{instructions.get('reference_price')} EUR/{reference_format}",
        )

    name = raw.get("display_name") or ""
    name_folded = fold(name)
    store_brand = _store_brand(name_folded)

    return Product(
        id=ProductId(f"{PRODUCT_PREFIX}{raw['id']}"),
        source_id=source_id,
        name=name,
        brand=raw.get("brand") or (store_brand.title() if store_brand else None),
        description=raw.get("packaging"),
        price=PriceInfo(
            current_cents=current_cents,
            original_cents=original_cents,
            per_unit=per_unit,
        ),
        category=_map_category(raw.get("categories") or []),
        package_size=_parse_package_size(instructions),
        in_stock=bool(raw.get("published", True)),
        is_organic=looks_organic(name),
        is_store_brand=store_brand is not None,
        promotion=promotion,
        product_url=raw.get("share_url") or f"https://tienda.mercadona.es/product/{raw['id']}",
    )


def _extract_raw_products(category: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Collect products from a category response, including nested subcategories."""
    products: List[Dict[str, Any]] = list(category.get("products") or [])

    def walk(subcategories):
        for sub in subcategories or []:
            products.extend(sub.get("products") or [])
            walk(sub.get("categories"))

    walk(category.get("categories"))
    return products


def _walk_category_ids(categories: List[Dict[str, Any]]) -> Iterator[str]:
    """Yield the ids of listable categories (second level when present)."""
    for category in categories:
        children = category.get("categories")
        if children:
            for child in children:
                yield str(child["id"])
        else:
            yield str(category["id"])


def _find_category(categories: List[Dict[str, Any]], name: str) -> Optional[Dict[str, Any]]:
    """Depth-first, case/accent-insensitive partial match on category names."""
    wanted = fold(name)
    for category in categories:
        if wanted in fold(category.get("name")):
            return category
        found = _find_category(category.get("categories") or [], name)
        if found is not None:
            return found
    return None


def _matches_query(product: Product, terms: List[str]) -> bool:
    searchable = fold(" ".join(filter(None, [product.name, product.brand, product.description])))
    return all(term in searchable for term in terms)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class MercadonaCatalog:
    """CatalogClient for Mercadona."""

    def __init__(
        self,
        config: Optional[CatalogClientConfig] = None,
        cache: Optional[TTLCache] = None,
        transport: Optional[CatalogTransport] = None,
        warehouse: str = DEFAULT_WAREHOUSE,
        source_id: str = SOURCE_ID,
    ):
        """
        Initialize the client.

        Args:
            config: Connection settings (Mercadona defaults when omitted).
            cache: Response cache owned by this client.
            transport: HTTP transport; built from config when omitted.
            warehouse: Warehouse code that scopes prices and stock.
            source_id: Identifier used in product ids and cache keys.
        """
        self.source_id = SourceId(source_id)
        self.config = config or default_config()
        self._cache = cache or TTLCache(ttls=self.config.cache_ttls)
        self._transport = transport or CatalogTransport(self.source_id, self.config)
        self._warehouse = warehouse

    @property
    def cache(self) -> TTLCache:
        return self._cache

    @property
    def _params(self) -> Dict[str, str]:
        return {"lang": "es", "wh": self._warehouse}

    async def __aenter__(self) -> "MercadonaCatalog":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._transport.aclose()

    def _parse_products(self, raw_products: List[Dict[str, Any]]) -> List[Product]:
        products = []
        for raw in raw_products:
            try:
                products.append(parse_mercadona_product(raw, self.source_id))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"[{self.source_id}] Skipping malformed product {raw.get('id')}: {e}")
        return products

    async def get_categories(self) -> List[Dict[str, Any]]:
        """Category tree (cached with the category TTL)."""
        key = CacheKeys.category(self.source_id)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        data = await self._transport.get_json("/categories/", params=self._params)
        categories = (data or {}).get("results", [])
        self._cache.set_with_kind(key, categories, "category")
        logger.info(f"[{self.source_id}] Loaded {len(categories)} top-level categories")
        return categories

    async def get_category_products(self, category_id: str) -> List[Product]:
        """All products of a category id, nested subcategories included."""
        key = CacheKeys.category(self.source_id, str(category_id))
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        data = await self._transport.get_json(f"/categories/{category_id}/", params=self._params)
        products = self._parse_products(_extract_raw_products(data or {}))
        self._cache.set_with_kind(key, products, "category")
        logger.debug(f"[{self.source_id}] Category {category_id}: {len(products)} products")
        return products

    async def search_products(self, criteria: SearchCriteria) -> SearchResult:
        """
        Search by walking the category tree.

        A product matches when every query word appears in its name, brand
        or packaging description.
        """
        start = time.perf_counter()
        key = CacheKeys.search(
            self.source_id, criteria.query, criteria.model_dump(exclude={"query"})
        )
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug(f"[{self.source_id}] Cache hit: search '{criteria.query}'")
            return cached

        terms = fold(criteria.query).split()
        matched: List[Product] = []
        categories = await self.get_categories()
        for category_id in _walk_category_ids(categories):
            if len(matched) >= criteria.limit:
                break
            for product in await self.get_category_products(category_id):
                if _matches_query(product, terms) and apply_filters([product], criteria):
                    matched.append(product)
                    if len(matched) >= criteria.limit:
                        break

        ordered = sort_products(matched, criteria.sort_by)
        result = SearchResult(
            products=ordered[: criteria.limit],
            total_count=len(ordered),
            query=criteria.query,
            search_time_ms=(time.perf_counter() - start) * 1000,
        )
        self._cache.set_with_kind(key, result, "search")
        logger.info(f"[{self.source_id}] Search '{criteria.query}': {len(result.products)} products")
        return result

    async def get_product(self, product_id: str) -> Optional[Product]:
        """Fetch one product by id ("merc-123" or the raw upstream "123")."""
        raw_id = str(product_id).removeprefix(PRODUCT_PREFIX)
        key = CacheKeys.product(self.source_id, raw_id)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        data = await self._transport.get_json(
            f"/products/{raw_id}/", params=self._params, allow_not_found=True
        )
        if data is None:
            return None
        product = parse_mercadona_product(data, self.source_id)
        self._cache.set_with_kind(key, product, "product")
        return product

    async def get_products_by_category(self, category_name: str, limit: int = 50) -> List[Product]:
        """Products of the first category whose name contains category_name."""
        category = _find_category(await self.get_categories(), category_name)
        if category is None:
            logger.info(f"[{self.source_id}] No category matching '{category_name}'")
            return []
        products = await self.get_category_products(str(category["id"]))
        return products[:limit]

    async def get_promotions(self) -> List[Product]:
        """Discounted products found in the first few categories."""
        categories = await self.get_categories()
        promotions: List[Product] = []
        for index, category_id in enumerate(_walk_category_ids(categories)):
            if index >= PROMOTION_SCAN_CATEGORIES:
                break
            promotions.extend(
                p for p in await self.get_category_products(category_id) if p.promotion
            )
        return promotions

    async def health_check(self) -> HealthResult:
        return await self._transport.health_check(
            f"/categories/?lang=es&wh={self._warehouse}"
        )
