"""Wine catalogue — maps every recognised wine label to a dispensing category.

Dispensers are split into two coarse categories. Each label the shop sells
belongs to exactly one of them; labels outside the catalogue belong to none
and are left out of the per-category totals.
"""

from collections.abc import Iterable, Mapping
from enum import Enum


class Category(Enum):
    PREMIUM = "premium"
    STANDARD = "standard"


WINE_CATEGORIES: dict[str, Category] = {
    "VINO DE LA CASA": Category.PREMIUM,
    "GRAN CAPITANA": Category.PREMIUM,
    "PEQUEÑA CRIANZA": Category.STANDARD,
    "LA TRUCHA": Category.STANDARD,
}


def category_for(wine_type: str) -> Category | None:
    """Return the category of a wine label, or None if the label is unknown."""
    if not isinstance(wine_type, str):
        return None
    return WINE_CATEGORIES.get(wine_type)


def category_totals(lines: Iterable[Mapping]) -> dict[Category, int]:
    """Sum quantities per category over order lines.

    Lines with an unrecognised ``wine_type`` contribute to neither total.
    """
    totals = {category: 0 for category in Category}
    for line in lines:
        category = category_for(line.get("wine_type"))
        if category is not None:
            totals[category] += int(line["quantity"])
    return totals
