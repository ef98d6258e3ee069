"""
Candidate search cascade.

Three stages, each only run when the previous ones found too little:
  A. exact      - the normalized name and its translations
  B. keyword    - individual key terms and their translations
  C. category   - listings of the inferred supermarket aisle
"""

import logging
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from ..catalog.client import CatalogClient
from ..config import MatcherConfig
from ..exceptions import CatalogError
from ..models import MatchStrategy, Product, SearchCriteria
from ..services.categories import infer_category
from ..services.normalizer import IngredientNormalizer
from ..services.translation_index import TranslationIndex

logger = logging.getLogger(__name__)

EXACT_TERMS_LIMIT = 5
KEYWORD_STAGE_BELOW = 5
KEYWORD_TERMS_LIMIT = 3
KEYWORD_MIN_LENGTH = 3
KEYWORD_TRANSLATIONS_LIMIT = 2
KEYWORD_SEARCH_LIMIT = 10
CATEGORY_STAGE_BELOW = 3
CATEGORY_NAMES_LIMIT = 2
CATEGORY_LISTING_LIMIT = 20
CATEGORY_STOP_AT = 10


class CandidateSearch(BaseModel):
    """Products gathered for one ingredient, with the stage that found each."""

    ingredient: str
    normalized: str
    products: List[Product] = Field(default_factory=list)
    origins: Dict[str, MatchStrategy] = Field(default_factory=dict)
    terms_tried: List[str] = Field(default_factory=list)

    def add(self, products: List[Product], origin: MatchStrategy) -> int:
        """Append unseen products; return how many were new."""
        added = 0
        for product in products:
            key = str(product.id)
            if key in self.origins:
                continue
            self.origins[key] = origin
            self.products.append(product)
            added += 1
        return added


class SearchStrategyOrchestrator:
    """Runs the exact -> keyword -> category search cascade against one catalog."""

    def __init__(
        self,
        normalizer: Optional[IngredientNormalizer] = None,
        translations: Optional[TranslationIndex] = None,
        config: Optional[MatcherConfig] = None,
    ):
        self.normalizer = normalizer or IngredientNormalizer()
        self.translations = translations or TranslationIndex()
        self.config = config or MatcherConfig()

    def normalize(self, ingredient_name: str) -> str:
        """Normalized search form, falling back to the trimmed lowercase input."""
        return self.normalizer.normalize(ingredient_name) or ingredient_name.strip().lower()

    def _translations(self, term: str) -> List[str]:
        if not self.config.enable_translations:
            return []
        return self.translations.get_translations(term)

    async def _search(
        self, client: CatalogClient, search: CandidateSearch, criteria: SearchCriteria
    ) -> List[Product]:
        search.terms_tried.append(criteria.query)
        try:
            result = await client.search_products(criteria)
        except CatalogError as e:
            logger.warning(f"Search for '{criteria.query}' failed, skipping term: {e}")
            return []
        logger.debug(f"[{client.source_id}] '{criteria.query}': {len(result.products)} products")
        return result.products

    async def gather_candidates(self, client: CatalogClient, ingredient_name: str) -> CandidateSearch:
        """
        Collect candidate products for an ingredient.

        Args:
            client: Catalog to search.
            ingredient_name: Raw ingredient text.

        Returns:
            The de-duplicated candidates in discovery order with their origins.
        """
        normalized = self.normalize(ingredient_name)
        search = CandidateSearch(ingredient=ingredient_name, normalized=normalized)

        # Stage A
        if self.config.enable_translations:
            terms = self.translations.get_all_search_terms(normalized)
        else:
            terms = [normalized]
        for term in terms[:EXACT_TERMS_LIMIT]:
            products = await self._search(
                client,
                search,
                SearchCriteria(
                    query=term,
                    limit=self.config.max_search_results,
                    in_stock_only=True,
                    sort_by="relevance",
                ),
            )
            if products:
                search.add(products, "exact")
                logger.info(f"Exact stage: '{term}' returned {len(products)} products")
                break

        # Stage B
        if len(search.products) < KEYWORD_STAGE_BELOW:
            key_terms = [
                t for t in self.normalizer.extract_key_terms(normalized)
                if len(t) >= KEYWORD_MIN_LENGTH
            ]
            for key_term in key_terms[:KEYWORD_TERMS_LIMIT]:
                queries = [key_term] + self._translations(key_term)[:KEYWORD_TRANSLATIONS_LIMIT]
                for query in queries:
                    products = await self._search(
                        client,
                        search,
                        SearchCriteria(
                            query=query,
                            limit=KEYWORD_SEARCH_LIMIT,
                            in_stock_only=True,
                            sort_by="relevance",
                        ),
                    )
                    search.add(products, "keyword")
            logger.info(f"Keyword stage: {len(search.products)} candidates for '{normalized}'")

        # Stage C. The category comes from the raw name: normalizing strips
        # aisle words such as "frozen" or "canned".
        category = infer_category(ingredient_name)
        if category is not None and len(search.products) < CATEGORY_STAGE_BELOW:
            fetched = 0
            for name in self.translations.get_category_names(category)[:CATEGORY_NAMES_LIMIT]:
                search.terms_tried.append(f"category:{name}")
                try:
                    products = await client.get_products_by_category(name, CATEGORY_LISTING_LIMIT)
                except CatalogError as e:
                    logger.warning(f"Category listing '{name}' failed, skipping: {e}")
                    continue
                products = [p for p in products if p.in_stock]
                search.add(products, "category")
                fetched += len(products)
                if fetched >= CATEGORY_STOP_AT:
                    break
            logger.info(
                f"Category stage ({category}): {len(search.products)} candidates for '{normalized}'"
            )

        return search
