# storefront/utils/paystack.py
from typing import Any, Dict, Optional

from storefront.config import settings


def to_minor_units(amount: float) -> int:
    return int(round(float(amount) * 100))


def build_widget_config(order_number: str, email: str, total: float,
                        metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Parameters for the inline payment widget. The browser loads the widget
    script and opens the iframe; we only supply its setup values.
    """
    return {
        "key": settings.PAYSTACK_PUBLIC_KEY,
        "email": email,
        "amount": to_minor_units(total),
        "ref": order_number,
        "metadata": {"order_number": order_number, **(metadata or {})},
        "currency": settings.CURRENCY,
    }
