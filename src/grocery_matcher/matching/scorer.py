"""Confidence scoring of a candidate product against an ingredient."""

import logging
from typing import List, Optional, Tuple

from ..config import MatcherConfig
from ..models import MatchStrategy, Product, ScoredCandidate
from ..services.categories import infer_category
from ..services.normalizer import IngredientNormalizer, strip_diacritics
from ..services.similarity import are_similar, string_similarity
from ..services.translation_index import TranslationIndex

logger = logging.getLogger(__name__)

TRANSLATION_SCORE = 0.9
KEYWORD_SCORE_CAP = 0.8
CATEGORY_MISMATCH_SCORE = 0.5
BASE_PRICE_EFFICIENCY = 0.8
PER_UNIT_PRICE_EFFICIENCY = 1.0
PROMOTION_BONUS = 0.1
STORE_BRAND_BONUS = 0.05


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


class Scorer:
    """Scores products on name similarity, category agreement and price signals."""

    def __init__(
        self,
        config: Optional[MatcherConfig] = None,
        translations: Optional[TranslationIndex] = None,
        normalizer: Optional[IngredientNormalizer] = None,
    ):
        self.config = config or MatcherConfig()
        self.translations = translations or TranslationIndex()
        self.normalizer = normalizer or IngredientNormalizer()

    def name_similarity(
        self, product_name: str, ingredient: str
    ) -> Tuple[float, Optional[MatchStrategy], str]:
        """
        Compare a product name with a normalized ingredient.

        Args:
            product_name: Product name as listed.
            ingredient: Normalized ingredient name.

        Returns:
            (similarity, strategy, explanation); strategy is None when nothing matched.
        """
        name = strip_diacritics(product_name.lower()).strip()
        if not ingredient or not name:
            return 0.0, None, ""

        if name == ingredient or ingredient in name:
            return 1.0, "exact", "Exact name match"

        similarity = string_similarity(name, ingredient)
        if similarity >= self.config.fuzzy_match_threshold:
            return similarity, "fuzzy", f"Similar name ({similarity:.0%})"

        if self.config.enable_translations:
            for translation in self.translations.get_translations(ingredient):
                term = strip_diacritics(translation.lower())
                if term in name or are_similar(
                    term, name, self.config.translation_similarity_threshold
                ):
                    return TRANSLATION_SCORE, "translation", f"Translation match ({translation})"

        overlap = self._keyword_overlap(name, ingredient)
        if overlap > 0:
            return overlap, "keyword", f"Keyword match ({overlap:.0%} of key terms)"

        return 0.0, None, ""

    def _keyword_overlap(self, name: str, ingredient: str) -> float:
        key_terms = self.normalizer.extract_key_terms(ingredient)
        if not key_terms:
            return 0.0
        product_words: List[str] = [w for w in name.split() if len(w) > 2]
        matched = sum(
            1
            for term in key_terms
            if any(
                term in word
                or word in term
                or are_similar(term, word, self.config.keyword_similarity_threshold)
                for word in product_words
            )
        )
        return min(KEYWORD_SCORE_CAP, matched / len(key_terms))

    @staticmethod
    def price_efficiency(product: Product) -> float:
        score = PER_UNIT_PRICE_EFFICIENCY if product.price.per_unit else BASE_PRICE_EFFICIENCY
        if product.promotion:
            score += PROMOTION_BONUS
        if product.is_store_brand:
            score += STORE_BRAND_BONUS
        return min(1.0, score)

    def score(
        self,
        product: Product,
        normalized_ingredient: str,
        origin: Optional[MatchStrategy] = None,
        ingredient_name: Optional[str] = None,
    ) -> ScoredCandidate:
        """
        Score one candidate.

        Args:
            product: Candidate product.
            normalized_ingredient: Output of IngredientNormalizer.normalize.
            origin: Search stage that produced the candidate, if known.
            ingredient_name: Raw ingredient text, used to infer the category
                (defaults to the normalized name).

        Returns:
            The candidate with its score breakdown, every component in [0, 1].
        """
        similarity, strategy, explanation = self.name_similarity(
            product.name, normalized_ingredient
        )
        if strategy is None:
            strategy = "category" if origin == "category" else "semantic"
            explanation = "Category match" if strategy == "category" else "Low confidence match"

        category = infer_category(
            ingredient_name if ingredient_name is not None else normalized_ingredient
        )
        category_match = (
            1.0 if category is not None and category == product.category
            else CATEGORY_MISMATCH_SCORE
        )
        price_efficiency = self.price_efficiency(product)

        name_similarity = _clamp(similarity)
        score = _clamp(
            name_similarity * self.config.name_weight
            + category_match * self.config.category_weight
            + price_efficiency * self.config.price_weight
        )
        return ScoredCandidate(
            product=product,
            name_similarity=name_similarity,
            category_match=category_match,
            price_efficiency=price_efficiency,
            score=score,
            strategy=strategy,
            explanation=explanation,
        )
