"""
Closing-balance formulas per item category.

Pure functions. Every ItemCategory member has exactly one formula and the
dispatch is exhaustive, so a new category cannot ship without one.
"""

from typing import assert_never

from stockledger.config import get_logger
from stockledger.core.entities.item import EXPECTED_UNCLASSIFIED, ItemCategory, categorize
from stockledger.core.entities.snapshot import MovementTotals

logger = get_logger(__name__)


def compute_closing(
    category: ItemCategory, opening: float | None, totals: MovementTotals
) -> float:
    """
    Compute the end-of-day balance for one item.

    Args:
        category: Formula family of the item.
        opening: Opening balance (None counts as 0).
        totals: Day's movement totals, adjustment already signed.

    Returns:
        Closing balance. Not clamped; negative values are reported by
        the validator.
    """
    o = opening or 0.0
    t = totals

    if category is ItemCategory.INPUT_CONSUMPTION:
        return o + t.incoming - t.material_usage - t.outgoing + t.adjustment
    elif category is ItemCategory.OUTPUT:
        return o + t.production - t.outgoing + t.adjustment
    elif category is ItemCategory.SCRAP:
        return o + t.scrap_in - t.scrap_out + t.adjustment
    elif category is ItemCategory.UNCLASSIFIED:
        return (
            o
            + t.incoming
            + t.production
            + t.scrap_in
            + t.adjustment
            - t.outgoing
            - t.material_usage
            - t.scrap_out
        )
    else:
        assert_never(category)


def closing_for_item_type(
    item_type: str, opening: float | None, totals: MovementTotals
) -> float:
    """Resolve the category of an item-type code and compute its closing balance."""
    category = categorize(item_type)
    if (
        category is ItemCategory.UNCLASSIFIED
        and item_type.strip().upper() not in EXPECTED_UNCLASSIFIED
    ):
        logger.warning("unclassified_item_type", item_type=item_type)
    return compute_closing(category, opening, totals)
