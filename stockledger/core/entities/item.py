"""Item classification entities."""

from enum import Enum

from pydantic import BaseModel


class ItemType(str, Enum):
    """Item-type codes used by the customs ledgers."""

    ROH = "ROH"  # raw material
    HALB = "HALB"  # semi-finished / work in progress
    FERT = "FERT"  # finished goods
    HIBE = "HIBE"  # capital goods
    HIBE_M = "HIBE_M"  # capital goods - machinery
    HIBE_E = "HIBE_E"  # capital goods - equipment
    HIBE_T = "HIBE_T"  # capital goods - tools
    SCRAP = "SCRAP"


class ItemCategory(str, Enum):
    """Balance-formula families. Every member must have a formula."""

    INPUT_CONSUMPTION = "input_consumption"
    OUTPUT = "output"
    SCRAP = "scrap"
    UNCLASSIFIED = "unclassified"


_CATEGORY_BY_TYPE: dict[str, ItemCategory] = {
    ItemType.ROH.value: ItemCategory.INPUT_CONSUMPTION,
    ItemType.HIBE.value: ItemCategory.INPUT_CONSUMPTION,
    ItemType.HIBE_M.value: ItemCategory.INPUT_CONSUMPTION,
    ItemType.HIBE_E.value: ItemCategory.INPUT_CONSUMPTION,
    ItemType.HIBE_T.value: ItemCategory.INPUT_CONSUMPTION,
    ItemType.FERT.value: ItemCategory.OUTPUT,
    ItemType.SCRAP.value: ItemCategory.SCRAP,
}

# Known codes that deliberately use the UNCLASSIFIED formula
EXPECTED_UNCLASSIFIED: frozenset[str] = frozenset({ItemType.HALB.value})


def categorize(item_type: str) -> ItemCategory:
    """Map an item-type code to its formula family.

    Codes outside the known table fall into UNCLASSIFIED, which applies
    every movement column. HALB (work in progress) lands there on purpose:
    WIP is snapshotted from the same ledgers as other stock rather than
    from a separate WIP balance feed, so it is listed in
    EXPECTED_UNCLASSIFIED and does not trigger the unknown-type warning.
    """
    return _CATEGORY_BY_TYPE.get(item_type.strip().upper(), ItemCategory.UNCLASSIFIED)


class ItemRef(BaseModel):
    """Identity of a tracked item within a company."""

    company_id: int
    item_type: str
    item_code: str
    item_name: str | None = None
    uom: str | None = None

    @property
    def key(self) -> tuple[int, str, str]:
        return (self.company_id, self.item_type, self.item_code)

    @property
    def category(self) -> ItemCategory:
        return categorize(self.item_type)
