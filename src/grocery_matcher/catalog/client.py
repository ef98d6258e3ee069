"""
Catalog client contract.

Each upstream source implements CatalogClient by composition (a
CatalogTransport for HTTP plus a TTLCache) rather than by inheritance.
The matcher only ever sees this protocol, so tests can pass any object
with the same coroutines.
"""

import logging
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, runtime_checkable

from ..models import HealthResult, Product, SearchCriteria, SearchResult, SourceId

logger = logging.getLogger(__name__)


@runtime_checkable
class CatalogClient(Protocol):
    """Capabilities every catalog source provides."""

    source_id: SourceId

    async def search_products(self, criteria: SearchCriteria) -> SearchResult: ...

    async def get_product(self, product_id: str) -> Optional[Product]: ...

    async def get_products_by_category(self, category_name: str, limit: int = 50) -> List[Product]: ...

    async def get_promotions(self) -> List[Product]: ...

    async def health_check(self) -> HealthResult: ...


def apply_filters(products: Iterable[Product], criteria: SearchCriteria) -> List[Product]:
    """Keep the products satisfying the stock/organic/promotion/price filters."""
    kept = []
    for product in products:
        if criteria.in_stock_only and not product.in_stock:
            continue
        if criteria.organic_only and not product.is_organic:
            continue
        if criteria.promotions_only and product.promotion is None:
            continue
        if (
            criteria.max_price_cents is not None
            and product.price.current_cents > criteria.max_price_cents
        ):
            continue
        kept.append(product)
    return kept


def _price_per_unit_key(product: Product) -> int:
    per_unit = product.price.per_unit
    return per_unit.price_cents if per_unit else product.price.current_cents


def sort_products(products: Sequence[Product], sort_by: str) -> List[Product]:
    """Sort products by a SortOption; 'relevance' keeps the upstream order."""
    if sort_by == "price_asc":
        return sorted(products, key=lambda p: p.price.current_cents)
    if sort_by == "price_desc":
        return sorted(products, key=lambda p: p.price.current_cents, reverse=True)
    if sort_by == "price_per_unit_asc":
        return sorted(products, key=_price_per_unit_key)
    if sort_by == "name_asc":
        return sorted(products, key=lambda p: p.name.lower())
    return list(products)


async def check_stock(client: CatalogClient, product_ids: Iterable[str]) -> Dict[str, bool]:
    """
    Look up the stock flag of several products, one request at a time.

    Unknown products are reported as out of stock.
    """
    stock: Dict[str, bool] = {}
    for product_id in product_ids:
        product = await client.get_product(product_id)
        stock[product_id] = product.in_stock if product else False
    logger.debug(f"[{client.source_id}] Stock checked for {len(stock)} products")
    return stock
