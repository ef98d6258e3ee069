"""
Translation index: English <-> Spanish ingredient synonyms used to build
catalog search terms, plus localized aisle names per category.

Both dictionaries are static JSON files under grocery_matcher/data.
Lookups never raise: unknown terms simply produce no synonyms.
"""

import json
import logging
import re
from pathlib import Path
from typing import Dict, List, Optional

from .normalizer import strip_diacritics

logger = logging.getLogger(__name__)

# Path to the translation dictionaries
_DATA_DIR = Path(__file__).parent.parent / "data"
_INGREDIENTS_FILE = _DATA_DIR / "ingredient_translations.json"
_CATEGORIES_FILE = _DATA_DIR / "category_translations.json"


def _clean(term: str) -> str:
    return strip_diacritics(term.strip().lower())


def _unique(terms) -> List[str]:
    """De-duplicate while keeping first-seen order."""
    return list(dict.fromkeys(t for t in terms if t))


def _contains_phrase(haystack: str, needle: str) -> bool:
    """Word-bounded containment: 'te' is in 'te verde' but not in 'tomate'."""
    if not needle or not haystack:
        return False
    return re.search(r"\b" + re.escape(needle) + r"\b", haystack) is not None


class TranslationIndex:
    """
    Bidirectional synonym lookup between English recipe vocabulary and
    Spanish supermarket vocabulary.
    """

    def __init__(
        self,
        ingredients_path: Optional[Path] = None,
        categories_path: Optional[Path] = None,
    ):
        """
        Initialize the index.

        Args:
            ingredients_path: Path to the ingredient translations JSON file.
            categories_path: Path to the category translations JSON file.
        """
        self._ingredients: Dict[str, List[str]] = self._load(
            ingredients_path or _INGREDIENTS_FILE
        )
        self._categories: Dict[str, List[str]] = self._load(
            categories_path or _CATEGORIES_FILE
        )
        logger.info(
            f"Loaded {len(self._ingredients)} ingredient translations "
            f"and {len(self._categories)} category translations"
        )

    @staticmethod
    def _load(path: Path) -> Dict[str, List[str]]:
        """Load a term -> synonyms dictionary, skipping metadata keys."""
        if not path.exists():
            logger.warning(f"No translations file found at {path}")
            return {}
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        entries: Dict[str, List[str]] = {}
        for key, values in data.items():
            if key.startswith("_"):
                continue
            if not isinstance(values, list):
                logger.warning(f"Skipping malformed translation entry '{key}'")
                continue
            entries[_clean(key)] = _unique(_clean(v) for v in values)
        return entries

    def __len__(self) -> int:
        return len(self._ingredients)

    def get_translations(self, term: str) -> List[str]:
        """
        Get the Spanish synonyms of an English ingredient.

        Tries a direct lookup, then singular/plural variants, then a
        word-bounded partial match in either direction.

        Args:
            term: Ingredient name (any case, accents allowed).

        Returns:
            Synonyms in dictionary order, or an empty list.
        """
        normalized = _clean(term)
        if not normalized:
            return []

        if normalized in self._ingredients:
            return list(self._ingredients[normalized])
        if normalized.endswith("s") and normalized[:-1] in self._ingredients:
            return list(self._ingredients[normalized[:-1]])
        if normalized + "s" in self._ingredients:
            return list(self._ingredients[normalized + "s"])

        for key, translations in self._ingredients.items():
            if _contains_phrase(normalized, key) or _contains_phrase(key, normalized):
                return list(translations)

        return []

    def get_all_search_terms(self, term: str) -> List[str]:
        """
        Build every catalog search term for an ingredient, most specific first.

        [term] + its translations + English keys (with all their synonyms)
        whose Spanish synonyms overlap the term + the singular/plural variant.

        Args:
            term: Ingredient name in English or Spanish.

        Returns:
            Ordered, de-duplicated list of search terms.
        """
        normalized = _clean(term)
        if not normalized:
            return []

        terms = [normalized]
        terms.extend(self.get_translations(normalized))

        # Spanish input: pull in the English key and its sibling synonyms
        for english, spanish in self._ingredients.items():
            if any(
                _contains_phrase(s, normalized) or _contains_phrase(normalized, s)
                for s in spanish
            ):
                terms.append(english)
                terms.extend(spanish)

        if normalized.endswith("s"):
            terms.append(normalized[:-1])
        else:
            terms.append(normalized + "s")

        return _unique(terms)

    def get_category_names(self, category: str) -> List[str]:
        """
        Get localized supermarket aisle names for a category.

        Args:
            category: A Category value such as "dry_goods".

        Returns:
            Aisle names, most common first, or an empty list.
        """
        return list(self._categories.get(_clean(category), []))
