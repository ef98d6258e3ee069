"""
Quantity resolver: how many packages of a product cover a recipe need.

Converts between mass units (g, kg) and volume units (ml, l, tsp, tbsp,
cup), going through ml when no direct factor exists. Mass and volume are
never converted into each other; such cases fall back to one package.
"""

import logging
import math
from typing import Dict, Optional, Tuple

from ..models import PackageSize, Product, coerce_unit

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Conversion table (exact reciprocals so round trips are lossless)
# ---------------------------------------------------------------------------

_DIRECT_FACTORS: Dict[Tuple[str, str], float] = {
    ("g", "kg"): 1 / 1000,
    ("kg", "g"): 1000.0,
    ("ml", "l"): 1 / 1000,
    ("l", "ml"): 1000.0,
    ("tsp", "ml"): 5.0,
    ("tbsp", "ml"): 15.0,
    ("cup", "ml"): 240.0,
    ("ml", "tsp"): 1 / 5,
    ("ml", "tbsp"): 1 / 15,
    ("ml", "cup"): 1 / 240,
    ("tsp", "tbsp"): 1 / 3,
    ("tbsp", "tsp"): 3.0,
    ("tbsp", "cup"): 1 / 16,
    ("cup", "tbsp"): 16.0,
}

_HUB_UNIT = "ml"

# Ratios this close to an integer are treated as that integer (float noise)
_ROUNDING_DIGITS = 9


def conversion_factor(from_unit: str, to_unit: str) -> Optional[float]:
    """
    Factor to multiply a quantity by to go from one unit to another.

    Returns None when the units are not convertible (e.g. g -> piece).
    """
    source, target = coerce_unit(from_unit), coerce_unit(to_unit)
    if source == target:
        return 1.0
    direct = _DIRECT_FACTORS.get((source, target))
    if direct is not None:
        return direct
    to_hub = _DIRECT_FACTORS.get((source, _HUB_UNIT))
    from_hub = _DIRECT_FACTORS.get((_HUB_UNIT, target))
    if to_hub is not None and from_hub is not None:
        return to_hub * from_hub
    return None


def convert(quantity: float, from_unit: str, to_unit: str) -> Optional[float]:
    """Convert a quantity between units, or None if impossible."""
    factor = conversion_factor(from_unit, to_unit)
    if factor is None:
        return None
    return quantity * factor


class QuantityResolver:
    """Turns a needed quantity into a whole number of packages and a cost."""

    def packages_to_buy(self, quantity: float, unit: str, package: PackageSize) -> int:
        """
        Number of packages needed to cover a quantity.

        Args:
            quantity: Amount needed by the recipe.
            unit: Unit of that amount (any spelling accepted by coerce_unit).
            package: Package size of the candidate product.

        Returns:
            At least 1. Defaults to 1 when the units cannot be converted
            or the package size is unknown.
        """
        if package.value <= 0:
            return 1

        converted = convert(quantity, unit, package.unit)
        if converted is None:
            logger.debug(
                f"Cannot convert {unit} to {package.unit}; defaulting to 1 package"
            )
            return 1

        ratio = round(converted / package.value, _ROUNDING_DIGITS)
        return max(1, math.ceil(ratio))

    @staticmethod
    def total_cost_cents(packages: int, product: Product) -> int:
        """Cost of buying a number of packages, always derived from the current price."""
        return packages * product.price.current_cents
