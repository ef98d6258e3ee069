"""Pydantic models for catalog products and ingredient matches."""

import re
from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    GetCoreSchemaHandler,
    field_validator,
    model_validator,
)
from pydantic_core import core_schema


# ── Vocabularies ─────────────────────────────────────────────────────

MeasurementUnit = Literal["g", "kg", "ml", "l", "tsp", "tbsp", "cup", "piece"]

Category = Literal[
    "produce", "dairy", "meat", "seafood", "bakery", "frozen",
    "canned", "dry_goods", "condiments", "spices", "beverages", "other",
]

MatchType = Literal["exact", "similar", "substitute", "partial", "not_found"]

MatchStrategy = Literal["exact", "fuzzy", "translation", "keyword", "category", "semantic"]

SortOption = Literal["relevance", "price_asc", "price_desc", "price_per_unit_asc", "name_asc"]

HealthStatus = Literal["active", "degraded", "broken"]

MEASUREMENT_UNITS = ("g", "kg", "ml", "l", "tsp", "tbsp", "cup", "piece")

CATEGORIES = (
    "produce", "dairy", "meat", "seafood", "bakery", "frozen",
    "canned", "dry_goods", "condiments", "spices", "beverages", "other",
)

# Free-text and upstream spellings -> canonical unit
_UNIT_ALIASES = {
    "g": "g", "gr": "g", "grs": "g", "gram": "g", "grams": "g", "gramo": "g", "gramos": "g",
    "kg": "kg", "kgs": "kg", "kilo": "kg", "kilos": "kg", "kilogram": "kg", "kilograms": "kg",
    "ml": "ml", "milliliter": "ml", "milliliters": "ml", "millilitre": "ml", "mililitros": "ml",
    "l": "l", "lt": "l", "liter": "l", "liters": "l", "litre": "l", "litres": "l",
    "litro": "l", "litros": "l",
    "tsp": "tsp", "teaspoon": "tsp", "teaspoons": "tsp", "cucharadita": "tsp",
    "tbsp": "tbsp", "tablespoon": "tbsp", "tablespoons": "tbsp", "cucharada": "tbsp",
    "cup": "cup", "cups": "cup", "taza": "cup", "tazas": "cup",
    "piece": "piece", "pieces": "piece", "pc": "piece", "pcs": "piece",
    "ud": "piece", "uds": "piece", "unidad": "piece", "unidades": "piece",
    "pieza": "piece", "piezas": "piece", "unit": "piece", "units": "piece",
}


def coerce_unit(raw: Optional[str]) -> str:
    """Map a free-text unit spelling to a MeasurementUnit (unknown -> 'piece')."""
    if raw is None:
        return "piece"
    clean = str(raw).strip().lower().rstrip(".")
    return _UNIT_ALIASES.get(clean, "piece")


# ── Identifiers ──────────────────────────────────────────────────────


class _Identifier(str):
    """str subclass validated at construction; usable as a pydantic field type."""

    __slots__ = ()
    _pattern = re.compile(r"^\S+$")
    _label = "identifier"

    def __new__(cls, value: str):
        if not isinstance(value, str) or not cls._pattern.match(value):
            raise ValueError(f"Invalid {cls._label}: {value!r}")
        return super().__new__(cls, value)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str.__repr__(self)})"

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        return core_schema.no_info_after_validator_function(
            cls,
            core_schema.str_schema(),
            serialization=core_schema.plain_serializer_function_ser_schema(str),
        )


class ProductId(_Identifier):
    """Identifier of a catalog product, e.g. ``merc-4241`` or ``dia-27051``."""

    __slots__ = ()
    _pattern = re.compile(r"^\S+$")
    _label = "product id"


class SourceId(_Identifier):
    """Identifier of an upstream catalog source, e.g. ``mercadona``."""

    __slots__ = ()
    _pattern = re.compile(r"^[a-z][a-z0-9_-]*$")
    _label = "source id"


# ── Product snapshot ─────────────────────────────────────────────────


class PricePerUnit(BaseModel):
    """Normalized reference price (e.g. EUR per kg)."""

    model_config = ConfigDict(frozen=True)

    price_cents: int = Field(ge=0, description="Reference price in cents")
    unit: MeasurementUnit = Field(description="Unit the reference price is expressed in")
    display: str = Field(default="", description="Human readable reference price")


class PriceInfo(BaseModel):
    """Current and original shelf price."""

    model_config = ConfigDict(frozen=True)

    current_cents: int = Field(ge=0, description="Current price of one package in cents")
    original_cents: Optional[int] = Field(
        default=None, ge=0, description="Price before promotion, if any"
    )
    per_unit: Optional[PricePerUnit] = Field(default=None, description="Reference price")
    currency: str = Field(default="EUR")


class PackageSize(BaseModel):
    """Physical unit a product is sold in."""

    model_config = ConfigDict(frozen=True)

    value: float = Field(ge=0, description="Amount contained in one package")
    unit: MeasurementUnit = Field(description="Unit of the amount")
    display: str = Field(default="", description="Size as printed by the retailer")


class Promotion(BaseModel):
    """Active promotion on a product."""

    model_config = ConfigDict(frozen=True)

    type: Literal["discount", "multi_buy", "other"] = "discount"
    description: str
    savings_cents: Optional[int] = Field(default=None, ge=0)


class Product(BaseModel):
    """Immutable snapshot of a catalog listing.

    Products are owned by the catalog client cache and replaced wholesale
    on re-fetch, never partially mutated.
    """

    model_config = ConfigDict(frozen=True)

    id: ProductId
    source_id: Optional[SourceId] = None
    name: str
    brand: Optional[str] = None
    description: Optional[str] = None
    price: PriceInfo
    category: Category = "other"
    package_size: PackageSize
    in_stock: bool = True
    is_organic: bool = False
    is_store_brand: bool = False
    promotion: Optional[Promotion] = None
    product_url: Optional[str] = None
    last_updated: datetime = Field(default_factory=datetime.now)


# ── Catalog requests / responses ─────────────────────────────────────


class SearchCriteria(BaseModel):
    """Parameters of a catalog product search."""

    query: str
    limit: int = Field(default=20, ge=1)
    sort_by: SortOption = "relevance"
    in_stock_only: bool = False
    organic_only: bool = False
    promotions_only: bool = False
    max_price_cents: Optional[int] = Field(default=None, ge=0)


class SearchResult(BaseModel):
    """Products returned by a catalog search."""

    products: List[Product] = Field(default_factory=list)
    total_count: int = 0
    query: str
    search_time_ms: float = 0.0


class HealthResult(BaseModel):
    """Outcome of a catalog health probe."""

    healthy: bool
    status: HealthStatus
    response_time_ms: float
    errors: List[str] = Field(default_factory=list)
    checked_at: datetime = Field(default_factory=datetime.now)


# ── Matching ─────────────────────────────────────────────────────────


class ScoredCandidate(BaseModel):
    """A candidate product with its confidence breakdown."""

    product: Product
    name_similarity: float = Field(ge=0, le=1)
    category_match: float = Field(ge=0, le=1)
    price_efficiency: float = Field(ge=0, le=1)
    score: float = Field(ge=0, le=1)
    strategy: MatchStrategy
    explanation: str = ""


class MatchAlternative(BaseModel):
    """A ranked runner-up product offered next to the primary match."""

    product: Product
    confidence: float = Field(ge=0, le=1)
    price_difference_cents: int = Field(
        description="Alternative price minus primary price (negative = cheaper)"
    )
    reason: str


class ProductMatch(BaseModel):
    """The product chosen for an ingredient, with quantity and cost."""

    id: str
    ingredient_name: str
    quantity_needed: float = Field(ge=0)
    unit_needed: MeasurementUnit
    product: Product
    confidence: float = Field(ge=0, le=1)
    quantity_to_buy: int = Field(ge=0)
    total_cost_cents: int = Field(ge=0)
    match_type: MatchType
    match_reason: str
    alternatives: List[MatchAlternative] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_quantities(self) -> "ProductMatch":
        """Check the package count, cost and alternative ordering invariants."""
        not_found = self.match_type == "not_found"
        if not_found != (self.quantity_to_buy == 0):
            raise ValueError("quantity_to_buy must be 0 exactly when match_type is not_found")
        expected = self.quantity_to_buy * self.product.price.current_cents
        if self.total_cost_cents != expected:
            raise ValueError(
                f"total_cost_cents {self.total_cost_cents} != "
                f"{self.quantity_to_buy} x {self.product.price.current_cents}"
            )
        confidences = [alt.confidence for alt in self.alternatives]
        if any(a < b for a, b in zip(confidences, confidences[1:])):
            raise ValueError("alternatives must be sorted by confidence descending")
        return self


class GroceryItem(BaseModel):
    """A shopping-list line produced upstream; the matcher only fills in matches."""

    ingredient_name: str
    needed_quantity: float = Field(default=1.0, ge=0)
    needed_unit: MeasurementUnit = "piece"
    category: Optional[Category] = None
    matches: List[ProductMatch] = Field(default_factory=list)
    selected_match: Optional[ProductMatch] = None

    @field_validator("needed_unit", mode="before")
    @classmethod
    def normalize_unit(cls, value: Any) -> Any:
        """Accept any unit spelling understood by coerce_unit."""
        if value is None or isinstance(value, str):
            return coerce_unit(value)
        return value


class ExtendedMatchResult(BaseModel):
    """Detailed matching outcome, including every scored candidate."""

    ingredient: str
    normalized_ingredient: str
    matches: List[ScoredCandidate] = Field(default_factory=list)
    confidence: float = Field(default=0.0, ge=0, le=1)
    strategy: Optional[MatchStrategy] = None
    search_terms_tried: List[str] = Field(default_factory=list)
    match_time_ms: float = 0.0
