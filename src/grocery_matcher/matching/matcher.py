"""
ProductMatcher: the public entry point of the matching engine.

Ties the search cascade, the scorer and the aggregator to the catalog
clients held by a CatalogRegistry.
"""

import asyncio
import logging
import time
from typing import Dict, List, Optional, Sequence

from ..catalog.registry import CatalogRegistry
from ..config import MatcherConfig
from ..models import ExtendedMatchResult, GroceryItem, ProductMatch, ScoredCandidate, SourceId
from ..services.normalizer import IngredientNormalizer
from ..services.quantity_resolver import QuantityResolver
from ..services.translation_index import TranslationIndex
from .aggregator import MatchAggregator, explain_match
from .orchestrator import CandidateSearch, SearchStrategyOrchestrator
from .scorer import Scorer

logger = logging.getLogger(__name__)


class ProductMatcher:
    """Matches recipe ingredients to purchasable catalog products."""

    def __init__(
        self,
        registry: CatalogRegistry,
        config: Optional[MatcherConfig] = None,
        normalizer: Optional[IngredientNormalizer] = None,
        translations: Optional[TranslationIndex] = None,
        resolver: Optional[QuantityResolver] = None,
    ):
        """
        Initialize the matcher.

        Args:
            registry: Catalog clients, keyed by source id.
            config: Thresholds and weights (MatcherConfig defaults when omitted).
            normalizer: Ingredient normalizer shared by search and scoring.
            translations: Translation dictionary shared by search and scoring.
            resolver: Unit conversion and package count calculator.
        """
        self.registry = registry
        self.config = config or MatcherConfig()
        normalizer = normalizer or IngredientNormalizer()
        translations = translations or TranslationIndex()
        self.orchestrator = SearchStrategyOrchestrator(normalizer, translations, self.config)
        self.scorer = Scorer(self.config, translations, normalizer)
        self.aggregator = MatchAggregator(self.config, resolver)

    def _score_all(self, search: CandidateSearch) -> List[ScoredCandidate]:
        return [
            self.scorer.score(
                product,
                search.normalized,
                search.origins.get(str(product.id)),
                search.ingredient,
            )
            for product in search.products
        ]

    async def _ranked_candidates(self, ingredient_name: str, source_id: str):
        client = self.registry.get(source_id)
        search = await self.orchestrator.gather_candidates(client, ingredient_name)
        ranked = self.aggregator.rank(self._score_all(search))
        return search, ranked

    async def find_matches(
        self,
        ingredient_name: str,
        quantity: float,
        unit: str,
        source_id: str,
    ) -> List[ProductMatch]:
        """
        Match one ingredient against one catalog.

        Args:
            ingredient_name: Free-text ingredient, e.g. "diced tomatoes".
            quantity: Quantity needed.
            unit: Unit of the quantity.
            source_id: Registered catalog source to search.

        Returns:
            A single-element list: the best match (with alternatives) or a
            not_found match.

        Raises:
            ConfigurationError: source_id is not registered.
        """
        search, ranked = await self._ranked_candidates(ingredient_name, source_id)
        match = self.aggregator.build_match(ingredient_name, quantity, unit, ranked)
        logger.info(
            f"[{source_id}] '{ingredient_name}' -> {match.match_type} "
            f"({match.confidence:.2f}, {len(search.products)} candidates)"
        )
        return [match]

    async def find_matches_advanced(
        self,
        ingredient_name: str,
        source_id: str,
    ) -> ExtendedMatchResult:
        """Run the cascade and return every scored candidate with timing details."""
        start = time.perf_counter()
        search, ranked = await self._ranked_candidates(ingredient_name, source_id)
        best = ranked[0] if ranked else None
        return ExtendedMatchResult(
            ingredient=ingredient_name,
            normalized_ingredient=search.normalized,
            matches=ranked,
            confidence=best.score if best else 0.0,
            strategy=best.strategy if best else None,
            search_terms_tried=search.terms_tried,
            match_time_ms=(time.perf_counter() - start) * 1000,
        )

    async def _match_item(self, item: GroceryItem, source_id: str) -> List[ProductMatch]:
        return await self.find_matches(
            item.ingredient_name, item.needed_quantity, item.needed_unit, source_id
        )

    async def match_grocery_list(
        self, items: Sequence[GroceryItem], source_id: str
    ) -> List[GroceryItem]:
        """
        Match every item of a grocery list against one catalog.

        Items are processed in groups of ``batch_size``; a group finishes
        before the next one starts. An item whose matching fails gets a
        not_found match instead of failing the list.

        Args:
            items: Shopping list lines.
            source_id: Registered catalog source to search.

        Returns:
            Copies of the items with matches and selected_match filled in.

        Raises:
            ConfigurationError: source_id is not registered.
        """
        self.registry.get(source_id)
        batch_size = self.config.batch_size
        matched: List[GroceryItem] = []

        for start in range(0, len(items), batch_size):
            batch = items[start:start + batch_size]
            results = await asyncio.gather(
                *(self._match_item(item, source_id) for item in batch),
                return_exceptions=True,
            )
            for item, result in zip(batch, results):
                if isinstance(result, BaseException):
                    if isinstance(result, asyncio.CancelledError):
                        raise result
                    logger.warning(
                        f"[{source_id}] Matching '{item.ingredient_name}' failed: {result}"
                    )
                    result = [
                        self.aggregator.not_found_match(
                            item.ingredient_name, item.needed_quantity, item.needed_unit
                        )
                    ]
                matched.append(
                    item.model_copy(update={"matches": result, "selected_match": result[0]})
                )
            logger.info(
                f"[{source_id}] Matched {min(start + batch_size, len(items))}/{len(items)} items"
            )

        return matched

    async def match_grocery_list_multiple(
        self, items: Sequence[GroceryItem], source_ids: Sequence[str]
    ) -> Dict[SourceId, List[GroceryItem]]:
        """Match a grocery list against several catalogs concurrently."""
        registered = []
        for source_id in source_ids:
            if self.registry.has(source_id):
                registered.append(SourceId(source_id))
            else:
                logger.warning(f"Skipping unregistered catalog source '{source_id}'")

        results = await asyncio.gather(
            *(self.match_grocery_list(items, source_id) for source_id in registered)
        )
        return dict(zip(registered, results))

    @staticmethod
    def explain_match(match: ProductMatch) -> str:
        return explain_match(match)
