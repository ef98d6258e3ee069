"""Ranking of scored candidates into ProductMatch results."""

import logging
import time
import uuid
from typing import Dict, List, Optional

from ..config import MatcherConfig
from ..models import (
    MatchAlternative,
    MatchType,
    PackageSize,
    PriceInfo,
    Product,
    ProductId,
    ProductMatch,
    ScoredCandidate,
    coerce_unit,
)
from ..services.quantity_resolver import QuantityResolver

logger = logging.getLogger(__name__)

NOT_FOUND_PRODUCT_ID = "not-found"
NOT_FOUND_REASON = (
    "No products found matching this ingredient. "
    "Try searching with different terms or check another supermarket."
)


def _new_match_id() -> str:
    return f"match-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


def _euros(cents: int) -> str:
    return f"{cents / 100:.2f}"


class MatchAggregator:
    """Turns scored candidates into a primary match with ranked alternatives."""

    def __init__(
        self,
        config: Optional[MatcherConfig] = None,
        resolver: Optional[QuantityResolver] = None,
    ):
        self.config = config or MatcherConfig()
        self.resolver = resolver or QuantityResolver()

    def rank(self, candidates: List[ScoredCandidate]) -> List[ScoredCandidate]:
        """
        Keep the best-scored entry per product, drop low-confidence ones and
        sort by score descending. Ties keep their discovery order.
        """
        best: Dict[str, ScoredCandidate] = {}
        for candidate in candidates:
            key = str(candidate.product.id)
            if key not in best or candidate.score > best[key].score:
                best[key] = candidate
        kept = [c for c in best.values() if c.score >= self.config.min_confidence]
        return sorted(kept, key=lambda c: c.score, reverse=True)

    @staticmethod
    def determine_match_type(candidate: ScoredCandidate) -> MatchType:
        if candidate.strategy == "exact" and candidate.score >= 0.8:
            return "exact"
        if candidate.score >= 0.6:
            return "similar"
        if candidate.score >= 0.4:
            return "substitute"
        return "partial"

    @staticmethod
    def alternative_reason(alternative: Product, primary: Product) -> str:
        difference = alternative.price.current_cents - primary.price.current_cents
        if difference < 0:
            return f"Cheaper option (save €{_euros(-difference)})"
        if alternative.is_organic and not primary.is_organic:
            return "Organic option"
        if alternative.promotion:
            return f"On promotion: {alternative.promotion.description}"
        if alternative.is_store_brand:
            return "Store brand - good value"
        return "Alternative brand"

    def build_alternatives(
        self, primary: Product, others: List[ScoredCandidate]
    ) -> List[MatchAlternative]:
        return [
            MatchAlternative(
                product=candidate.product,
                confidence=candidate.score,
                price_difference_cents=(
                    candidate.product.price.current_cents - primary.price.current_cents
                ),
                reason=self.alternative_reason(candidate.product, primary),
            )
            for candidate in others[: self.config.max_alternatives]
        ]

    def build_match(
        self,
        ingredient_name: str,
        quantity: float,
        unit: str,
        ranked: List[ScoredCandidate],
    ) -> ProductMatch:
        """
        Build the ProductMatch for an ingredient from ranked candidates.

        Args:
            ingredient_name: Ingredient as given by the caller.
            quantity: Quantity needed.
            unit: Unit of the quantity (any spelling coerce_unit accepts).
            ranked: Output of rank(); may be empty.

        Returns:
            The primary match with alternatives, or a not_found match.
        """
        if not ranked:
            return self.not_found_match(ingredient_name, quantity, unit)

        primary = ranked[0]
        product = primary.product
        packages = self.resolver.packages_to_buy(quantity, unit, product.package_size)
        return ProductMatch(
            id=_new_match_id(),
            ingredient_name=ingredient_name,
            quantity_needed=quantity,
            unit_needed=coerce_unit(unit),
            product=product,
            confidence=primary.score,
            quantity_to_buy=packages,
            total_cost_cents=self.resolver.total_cost_cents(packages, product),
            match_type=self.determine_match_type(primary),
            match_reason=primary.explanation,
            alternatives=self.build_alternatives(product, ranked[1:]),
        )

    def not_found_match(self, ingredient_name: str, quantity: float, unit: str) -> ProductMatch:
        """Placeholder result for an ingredient with no acceptable candidate."""
        placeholder = Product(
            id=ProductId(NOT_FOUND_PRODUCT_ID),
            name=ingredient_name,
            price=PriceInfo(current_cents=0),
            category="other",
            package_size=PackageSize(value=0, unit="piece", display="N/A"),
            in_stock=False,
        )
        return ProductMatch(
            id=_new_match_id(),
            ingredient_name=ingredient_name,
            quantity_needed=quantity,
            unit_needed=coerce_unit(unit),
            product=placeholder,
            confidence=0.0,
            quantity_to_buy=0,
            total_cost_cents=0,
            match_type="not_found",
            match_reason=NOT_FOUND_REASON,
        )


def explain_match(match: ProductMatch) -> str:
    """Human readable summary of a ProductMatch."""
    if match.match_type == "not_found":
        return (
            f'Could not find a product matching "{match.ingredient_name}". '
            "You may need to find this item manually or try a different supermarket."
        )

    product = match.product
    text = (
        f'Matched "{match.ingredient_name}" to "{product.name}" '
        f"with {round(match.confidence * 100)}% confidence."
    )

    if match.match_type == "substitute":
        text += " This is a substitute product that should work for your recipe."
    elif match.match_type == "similar":
        text += " This is a similar product from a different brand or size."
    elif match.match_type == "exact":
        text += " This is an excellent match for your ingredient."

    display = product.package_size.display
    if match.quantity_to_buy > 1:
        text += f" You'll need {match.quantity_to_buy} packages ({display} each)."
    else:
        text += f" One package of {display} should be sufficient."

    if product.promotion:
        text += f" Currently on promotion: {product.promotion.description}."

    cheaper = next((a for a in match.alternatives if a.price_difference_cents < 0), None)
    if cheaper is not None:
        text += f" Cheaper alternative available (save {_euros(-cheaper.price_difference_cents)})."

    return text
