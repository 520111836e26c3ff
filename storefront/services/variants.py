"""
Variant price resolution.

A product's price is its base price plus the signed price modifier of every
selected option (one option per attribute). Options without stock are shown
but cannot be selected.
"""

from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, field_validator

from storefront.utils.helpers import money, to_float


class VariantOption(BaseModel):
    id: int
    attribute_id: Optional[int] = None
    attribute_name: Optional[str] = None
    label: str = ""
    value: str = ""
    price_modifier: float = 0.0
    stock_quantity: int = 0
    sku_suffix: Optional[str] = None

    # Missing or malformed modifiers count as no adjustment
    @field_validator("price_modifier", mode="before")
    @classmethod
    def _coerce_modifier(cls, v):
        return to_float(v, 0.0)

    @field_validator("stock_quantity", mode="before")
    @classmethod
    def _coerce_stock(cls, v):
        return int(to_float(v, 0.0))


class VariantAttribute(BaseModel):
    id: int
    name: str
    slug: Optional[str] = None
    type: str = "select"
    is_required: bool = False
    options: List[VariantOption] = []


Selection = Dict[str, VariantOption]


def resolve_price(base_price: float, selected: Optional[Selection] = None) -> float:
    if not selected:
        return money(base_price)
    adjustment = sum(option.price_modifier for option in selected.values())
    return money(to_float(base_price) + adjustment)


def is_selectable(option: VariantOption) -> bool:
    return option.stock_quantity > 0


def select_option(selection: Selection, attribute_id, option: VariantOption) -> Selection:
    if not is_selectable(option):
        raise ValueError(f"Option '{option.label or option.value}' is out of stock")
    updated = dict(selection)
    updated[str(attribute_id)] = option
    return updated


def default_selection(attributes: Iterable[VariantAttribute]) -> Selection:
    selection: Selection = {}
    for attribute in attributes:
        for option in attribute.options:
            if is_selectable(option):
                selection[str(attribute.id)] = option
                break
    return selection


def variant_key(selection: Optional[Selection]) -> str:
    # Same product + same choices must land on the same cart line
    if not selection:
        return ""
    return "|".join(f"{attr}:{selection[attr].id}" for attr in sorted(selection))


def describe_selection(selection: Optional[Selection]) -> str:
    if not selection:
        return ""
    parts = []
    for attr in sorted(selection):
        option = selection[attr]
        name = option.attribute_name or attr
        parts.append(f"{name}: {option.label or option.value}")
    return ", ".join(parts)
