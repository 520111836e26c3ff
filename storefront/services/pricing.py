from typing import Optional

from pydantic import BaseModel

from storefront.config import settings
from storefront.utils.helpers import money


class CartTotals(BaseModel):
    subtotal: float
    delivery_fee: float
    discount: float
    tax: float
    total: float


def compute_totals(subtotal: float, delivery_fee: float, discount: float = 0.0,
                   tax_rate: Optional[float] = None) -> CartTotals:
    # Tax is a flat rate on the subtotal; zero until the store registers for VAT
    rate = settings.TAX_RATE if tax_rate is None else tax_rate
    subtotal = money(subtotal)
    delivery_fee = money(delivery_fee)
    discount = money(discount)
    tax = money(subtotal * rate)
    total = max(money(subtotal + delivery_fee + tax - discount), 0.0)
    return CartTotals(subtotal=subtotal, delivery_fee=delivery_fee, discount=discount, tax=tax, total=total)


def flash_price(base_price: float, discount_percentage: Optional[float] = None,
                fixed_price: Optional[float] = None) -> float:
    # An explicit flash price wins over the percentage
    if fixed_price is not None and fixed_price >= 0:
        return money(fixed_price)
    pct = min(max(float(discount_percentage or 0), 0.0), 100.0)
    return money(base_price * (1 - pct / 100.0))
