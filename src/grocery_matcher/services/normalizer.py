"""
Ingredient normalizer: strips preparation and quantity noise from free-text
ingredient names so they can be searched in a supermarket catalog.

"2 large tomatoes, diced" -> "tomatoes"
"200 g de champiñones laminados" -> "de champinones"

Pure and deterministic; normalize(normalize(x)) == normalize(x).
"""

import re
import unicodedata
from typing import Iterable, List, Optional

# ---------------------------------------------------------------------------
# Noise vocabularies (English + Spanish)
# ---------------------------------------------------------------------------

PREPARATION_TERMS = (
    # English
    "diced", "minced", "chopped", "sliced", "crushed", "ground", "grated",
    "fresh", "dried", "frozen", "canned", "cooked", "raw", "peeled",
    "deveined", "boneless", "skinless", "filleted", "cubed", "julienned",
    "shredded", "mashed", "pureed", "roasted", "toasted", "blanched",
    "large", "medium", "small", "whole", "half", "quartered",
    "finely", "coarsely", "roughly", "thinly", "thickly", "freshly",
    # Spanish
    "picado", "picada", "troceado", "cortado", "en rodajas", "rallado", "molido",
    "fresco", "fresca", "seco", "congelado", "enlatado", "cocido", "crudo", "pelado",
    "deshuesado", "sin piel", "fileteado", "en cubos", "en juliana",
    "desmenuzado", "en pure", "asado", "tostado", "laminado", "laminados",
    "grande", "mediano", "pequeno", "entero", "medio", "en cuartos",
    "finamente", "groseramente",
)

QUANTITY_TERMS = (
    # English
    "approximately", "about", "around", "roughly", "handful", "bunch",
    "clove", "cloves", "sprig", "sprigs", "stalk", "stalks", "pinch",
    # Spanish
    "aproximadamente", "unos", "unas", "manojo", "diente", "dientes",
    "ramita", "ramitas", "tallo", "tallos", "pizca",
)

STOP_WORDS = frozenset({
    "the", "a", "an", "of", "for", "with", "and", "or", "to",
    "de", "del", "la", "el", "los", "las", "un", "una", "con", "y", "o", "para", "en", "al",
})

_QUANTITY_UNIT_RE = re.compile(
    r"\d+(?:[.,/]\d+)?\s*"
    r"(?:g|gr|kg|ml|cl|l|oz|lb|lbs|cups?|tbsp|tsp|tablespoons?|teaspoons?)s?\b"
)
_NUMBER_RE = re.compile(r"\d+(?:[.,/]\d+)?")
_PUNCTUATION_RE = re.compile(r"[^\w\s-]|_")
_STRAY_HYPHEN_RE = re.compile(r"(?<!\w)-+|-+(?!\w)")
_WHITESPACE_RE = re.compile(r"\s+")


def strip_diacritics(text: str) -> str:
    """Remove accents: 'champiñón' -> 'champinon'."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def _collapse(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()


def _build_noise_pattern(terms: Iterable[str]) -> re.Pattern:
    # Longest first so "en rodajas" wins over shorter overlapping terms
    ordered = sorted({strip_diacritics(t.lower()) for t in terms}, key=len, reverse=True)
    return re.compile(r"\b(?:" + "|".join(re.escape(t) for t in ordered) + r")\b")


class IngredientNormalizer:
    """
    Normalizes raw ingredient text for catalog search.

    Lowercases, strips diacritics, drops quantity/unit tokens, numbers,
    punctuation and a fixed set of preparation and quantity words.
    """

    def __init__(
        self,
        extra_terms: Optional[Iterable[str]] = None,
        stop_words: Optional[Iterable[str]] = None,
    ):
        """
        Initialize the normalizer.

        Args:
            extra_terms: Additional noise words to strip.
            stop_words: Replacement stop-word set for key term extraction.
        """
        terms = list(PREPARATION_TERMS) + list(QUANTITY_TERMS) + list(extra_terms or [])
        self._noise_re = _build_noise_pattern(terms)
        self._stop_words = frozenset(stop_words) if stop_words is not None else STOP_WORDS

    def normalize(self, raw: str) -> str:
        """
        Normalize an ingredient name.

        Args:
            raw: Free-text ingredient, e.g. "2 Diced TOMATOES".

        Returns:
            The cleaned, lowercase, accent-free name (may be empty).
        """
        text = strip_diacritics((raw or "").lower()).lower()
        text = _QUANTITY_UNIT_RE.sub(" ", text)
        text = _NUMBER_RE.sub(" ", text)
        text = _PUNCTUATION_RE.sub(" ", text)
        text = _collapse(text)

        # Removing one term can bring two others together ("en X pure"),
        # so iterate to a fixed point.
        while True:
            stripped = self._noise_re.sub(" ", text)
            stripped = _collapse(_STRAY_HYPHEN_RE.sub(" ", stripped))
            if stripped == text:
                return text
            text = stripped

    def extract_key_terms(self, text: str) -> List[str]:
        """
        Extract the food-identifying words of an ingredient.

        Args:
            text: Raw or normalized ingredient name.

        Returns:
            Tokens longer than 2 characters that are not stop words, in order.
        """
        words = self.normalize(text).split(" ")
        return [w for w in words if len(w) > 2 and w not in self._stop_words]
