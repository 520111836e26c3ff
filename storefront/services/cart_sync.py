# storefront/services/cart_sync.py
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from storefront.services.cart import Cart, CartLine, make_line_id
from storefront.services.variants import VariantOption
from storefront.utils.api_client import BackendClient
from storefront.utils.errors import BackendError
from storefront.utils.helpers import to_float
from storefront.utils.tokenJWT import AuthSession

logger = logging.getLogger(__name__)

CART_PATH = "/api/cart"


def _fresh_base_price(product: Dict[str, Any]) -> float:
    # Freshest price wins: discount price, then price, then original price
    for key in ("discount_price", "price", "original_price"):
        value = product.get(key)
        if value is None or isinstance(value, bool):
            continue
        if isinstance(value, (int, float)) or str(value).strip():
            return to_float(value, 0.0)
    return 0.0


def _parse_variants(raw: Any) -> Dict[str, VariantOption]:
    if not isinstance(raw, dict):
        return {}
    parsed = {}
    for attribute_id, option in raw.items():
        if not isinstance(option, dict):
            continue
        try:
            parsed[str(attribute_id)] = VariantOption.model_validate(option)
        except ValidationError:
            logger.warning(f"Ignoring malformed variant {attribute_id!r} from server cart")
    return parsed


def transform_server_entry(entry: Any) -> Optional[CartLine]:
    product = entry.get("product") if isinstance(entry, dict) else None
    if not isinstance(product, dict) or not product.get("id"):
        return None

    quantity = int(to_float(entry.get("quantity"), 1.0)) or 1
    variants = _parse_variants(entry.get("selected_variants"))
    try:
        product_id = int(product["id"])
    except (TypeError, ValueError):
        return None

    return CartLine(
        line_id=make_line_id(product_id, variants),
        product_id=product_id,
        name=product.get("name") or "",
        slug=product.get("slug"),
        thumbnail=product.get("thumbnail"),
        base_price=_fresh_base_price(product),
        quantity=max(quantity, 1),
        selected_variants=variants,
    )


def serialize_cart_lines(lines: List[CartLine]) -> List[Dict[str, Any]]:
    # Only inputs travel to the server; prices are always recomputed there
    payload = []
    for line in lines:
        if not line.product_id:
            logger.warning(f"Skipping cart line without a resolvable product id during sync: {line.line_id}")
            continue
        payload.append({
            "product_id": line.product_id,
            "quantity": line.quantity,
            "selected_variants": {
                attr: option.model_dump() for attr, option in line.selected_variants.items()
            },
        })
    return payload


class CartSyncBridge:
    """Keeps the local cart and the server cart of a signed-in user in step."""

    def __init__(self, client: BackendClient):
        self.client = client

    async def fetch(self, session: Optional[AuthSession]) -> List[CartLine]:
        if session is None:
            return []
        try:
            result = await self.client.get(CART_PATH, token=session.access_token)
        except BackendError as e:
            logger.warning(f"Failed to fetch cart from backend: {e.message}")
            return []

        if not isinstance(result, dict) or not result.get("success") or not isinstance(result.get("data"), list):
            return []

        lines = []
        for entry in result["data"]:
            line = transform_server_entry(entry)
            if line is not None:
                lines.append(line)
        return lines

    async def push(self, session: Optional[AuthSession], cart: Cart) -> None:
        if session is None:
            return
        payload = {"items": serialize_cart_lines(cart.lines)}
        try:
            # Full replace, last write wins
            await self.client.put(CART_PATH, token=session.access_token, json=payload)
        except BackendError as e:
            logger.error(f"Failed to sync cart: {e.message}")

    async def clear(self, session: Optional[AuthSession]) -> None:
        if session is None:
            return
        try:
            await self.client.delete(CART_PATH, token=session.access_token)
        except BackendError as e:
            logger.error(f"Failed to clear cart: {e.message}")

    async def on_login(self, session: Optional[AuthSession], cart: Cart) -> Cart:
        if session is None:
            return cart
        # Server copy is authoritative on login
        cart.replace(await self.fetch(session))
        return cart

    def on_logout(self, cart: Cart) -> None:
        cart.clear()
