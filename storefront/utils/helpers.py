import re
from typing import Optional

from storefront.config import settings


def money(value) -> float:
    return round(float(value or 0), 2)


def to_float(value, default: float = 0.0) -> float:
    # Accepts numbers and numeric strings; anything else becomes the default
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return default


def format_currency(amount: float, currency: Optional[str] = None) -> str:
    return f"{currency or settings.CURRENCY} {money(amount):,.2f}"


def generate_slug(text: str) -> str:
    slug = re.sub(r"[^\w\s-]", "", (text or "").lower().strip())
    slug = re.sub(r"[\s_-]+", "-", slug)
    return slug.strip("-")


def image_url(path: Optional[str]) -> str:
    if not path:
        return settings.PLACEHOLDER_IMAGE
    # Absolute URLs (CDN, object storage) and local paths are used as-is
    if path.startswith("http://") or path.startswith("https://") or path.startswith("/"):
        return path
    return f"{settings.IMAGE_CDN_URL.rstrip('/')}/{path}"


def calculate_discount_percentage(original_price: float, discount_price: float) -> int:
    if original_price <= 0:
        return 0
    return round((original_price - discount_price) / original_price * 100)
