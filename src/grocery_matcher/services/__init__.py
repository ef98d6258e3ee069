"""Pure text and quantity services used by the matcher."""

from .categories import infer_category
from .normalizer import IngredientNormalizer, strip_diacritics
from .quantity_resolver import QuantityResolver, convert
from .similarity import are_similar, string_similarity
from .translation_index import TranslationIndex

__all__ = [
    "IngredientNormalizer",
    "QuantityResolver",
    "TranslationIndex",
    "are_similar",
    "convert",
    "infer_category",
    "string_similarity",
    "strip_diacritics",
]
