"""Helpers shared by the source-specific product parsers."""

import re
from typing import Any, Optional

from ..models import PackageSize, coerce_unit
from ..services.normalizer import strip_diacritics

_ORGANIC_RE = re.compile(r"\b(?:eco|bio|ecologic[oa]s?|organic[oa]?s?)\b")


def to_cents(value: Any) -> Optional[int]:
    """Convert a euro amount ("1,35", "1.35", 1.35) to integer cents, or None."""
    if value is None or value == "":
        return None
    try:
        amount = float(str(value).replace(",", "."))
    except ValueError:
        return None
    return int(round(amount * 100))


def build_package_size(value: float, unit_raw: str, display: str) -> PackageSize:
    """Build a PackageSize from an upstream amount and unit spelling (cl -> ml)."""
    unit_clean = (unit_raw or "").strip().lower()
    if unit_clean == "cl":
        return PackageSize(value=value * 10, unit="ml", display=display)
    return PackageSize(value=value, unit=coerce_unit(unit_clean), display=display)


def fold(text: Optional[str]) -> str:
    """Lowercase, accent-free form used for keyword checks."""
    return strip_diacritics((text or "").lower())


def looks_organic(name: str) -> bool:
    """Whether a product name advertises organic production."""
    return _ORGANIC_RE.search(fold(name)) is not None
