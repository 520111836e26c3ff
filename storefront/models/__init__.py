# Import every model so Base.metadata knows all tables
from storefront.models import (  # noqa: F401
    brand,
    category,
    delivery,
    discount,
    flash_deal,
    log,
    order,
    product,
    setting,
    wishlist,
)
