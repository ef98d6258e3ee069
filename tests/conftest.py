import itertools
from typing import Dict, List, Optional

import pytest

from grocery_matcher.catalog.client import apply_filters
from grocery_matcher.exceptions import NetworkError
from grocery_matcher.models import (
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
)
from grocery_matcher.services.normalizer import strip_diacritics

# ── Helpers ───────────────────────────────────────────────────────────────────

_ids = itertools.count(1)


def build_product(
    name: str,
    price_cents: int = 100,
    category: str = "other",
    package_value: float = 1,
    package_unit: str = "piece",
    product_id: Optional[str] = None,
    per_unit_cents: Optional[int] = None,
    promotion: Optional[str] = None,
    is_store_brand: bool = False,
    is_organic: bool = False,
    in_stock: bool = True,
    brand: Optional[str] = None,
) -> Product:
    """Build a Product with sensible defaults."""
    per_unit = (
        PricePerUnit(price_cents=per_unit_cents, unit=package_unit)
        if per_unit_cents is not None
        else None
    )
    return Product(
        id=ProductId(product_id or f"p-{next(_ids)}"),
        source_id=SourceId("fake"),
        name=name,
        brand=brand,
        price=PriceInfo(current_cents=price_cents, per_unit=per_unit),
        category=category,
        package_size=PackageSize(
            value=package_value,
            unit=package_unit,
            display=f"{package_value:g} {package_unit}",
        ),
        in_stock=in_stock,
        is_organic=is_organic,
        is_store_brand=is_store_brand,
        promotion=Promotion(description=promotion) if promotion else None,
    )


class FakeCatalog:
    """In-memory CatalogClient: every query word must appear in the product name."""

    def __init__(
        self,
        products: Optional[List[Product]] = None,
        categories: Optional[Dict[str, List[Product]]] = None,
        failing_queries: Optional[List[str]] = None,
        source_id: str = "fake",
    ):
        self.source_id = SourceId(source_id)
        self.products = list(products or [])
        self.categories = dict(categories or {})
        self.failing_queries = set(failing_queries or [])
        self.queries: List[str] = []
        self.category_requests: List[str] = []
        self.closed = False

    async def search_products(self, criteria: SearchCriteria) -> SearchResult:
        self.queries.append(criteria.query)
        if criteria.query in self.failing_queries:
            raise NetworkError(f"search '{criteria.query}' failed", source_id=self.source_id)
        words = strip_diacritics(criteria.query.lower()).split()
        found = [
            p for p in self.products
            if all(w in strip_diacritics(p.name.lower()) for w in words)
        ]
        found = apply_filters(found, criteria)[: criteria.limit]
        return SearchResult(products=found, total_count=len(found), query=criteria.query)

    async def get_product(self, product_id: str) -> Optional[Product]:
        return next((p for p in self.products if p.id == product_id), None)

    async def get_products_by_category(self, category_name: str, limit: int = 50) -> List[Product]:
        self.category_requests.append(category_name)
        return self.categories.get(category_name, [])[:limit]

    async def get_promotions(self) -> List[Product]:
        return [p for p in self.products if p.promotion]

    async def health_check(self) -> HealthResult:
        return HealthResult(healthy=True, status="active", response_time_ms=1.0)

    async def aclose(self) -> None:
        self.closed = True


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep stand-in that records delays and advances a ManualClock."""

    def __init__(self, clock: Optional[ManualClock] = None):
        self.delays: List[float] = []
        self.clock = clock

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        if self.clock is not None:
            self.clock.advance(seconds)


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture
def make_product():
    """Factory building Products."""
    return build_product


@pytest.fixture
def fake_catalog_factory():
    """Factory building in-memory catalogs."""
    return FakeCatalog


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def recording_sleep(clock):
    return RecordingSleep(clock)
