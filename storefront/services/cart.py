# storefront/services/cart.py
import logging
import time
from contextlib import contextmanager
from typing import Callable, Dict, List, Optional, Set

from pydantic import BaseModel, Field

from storefront.services.variants import Selection, VariantOption, resolve_price, variant_key
from storefront.utils.errors import ActionInProgress
from storefront.utils.helpers import money

logger = logging.getLogger(__name__)


# Product data a cart line is created from
class ProductSnapshot(BaseModel):
    id: Optional[int] = None
    name: str
    slug: Optional[str] = None
    thumbnail: Optional[str] = None
    base_price: float


class CartLine(BaseModel):
    line_id: str
    product_id: Optional[int] = None
    name: str
    slug: Optional[str] = None
    thumbnail: Optional[str] = None
    base_price: float
    quantity: int = Field(gt=0)
    selected_variants: Dict[str, VariantOption] = {}

    @property
    def unit_price(self) -> float:
        return resolve_price(self.base_price, self.selected_variants)

    @property
    def subtotal(self) -> float:
        return money(self.unit_price * self.quantity)


def make_line_id(product_id, selection: Optional[Selection]) -> str:
    key = variant_key(selection)
    return f"{product_id}:{key}" if key else str(product_id)


class Cart:
    """In-memory cart of one session. Mutated only by request handlers."""

    def __init__(self, lines: Optional[List[CartLine]] = None):
        self.lines: List[CartLine] = list(lines or [])
        self.applied_coupon = None
        self._pending: Set[str] = set()

    def find(self, line_id: str) -> Optional[CartLine]:
        for line in self.lines:
            if line.line_id == line_id:
                return line
        return None

    def add(self, product: ProductSnapshot, quantity: int = 1, variants: Optional[Selection] = None) -> CartLine:
        if quantity <= 0:
            raise ValueError("Quantity must be positive")
        variants = dict(variants or {})
        line_id = make_line_id(product.id, variants)

        existing = self.find(line_id)
        if existing:
            existing.quantity += quantity
            return existing

        line = CartLine(
            line_id=line_id,
            product_id=product.id,
            name=product.name,
            slug=product.slug,
            thumbnail=product.thumbnail,
            base_price=product.base_price,
            quantity=quantity,
            selected_variants=variants,
        )
        self.lines.append(line)
        return line

    def update_quantity(self, line_id: str, quantity: int) -> Optional[CartLine]:
        line = self.find(line_id)
        if line is None:
            raise KeyError(line_id)
        if quantity <= 0:
            self.remove(line_id)
            return None
        line.quantity = quantity
        return line

    def remove(self, line_id: str) -> None:
        before = len(self.lines)
        self.lines = [line for line in self.lines if line.line_id != line_id]
        if len(self.lines) == before:
            raise KeyError(line_id)

    def clear(self) -> None:
        self.lines = []
        self.applied_coupon = None

    def replace(self, lines: List[CartLine]) -> None:
        self.lines = list(lines)

    @property
    def subtotal(self) -> float:
        return money(sum(line.subtotal for line in self.lines))

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @contextmanager
    def pending(self, action: str):
        # Advisory guard, mirrors a disabled submit button
        if action in self._pending:
            raise ActionInProgress(f"{action.capitalize()} is already in progress")
        self._pending.add(action)
        try:
            yield
        finally:
            self._pending.discard(action)


class CartRegistry:
    """
    Carts keyed by user id (authenticated) or by anonymous cart-session id.

    A cart nobody touched for ``idle_ttl`` seconds is forgotten. Expired carts
    are swept at most once per ``sweep_interval`` so lookups stay cheap.
    """

    def __init__(self, idle_ttl: Optional[float] = None, clock: Callable[[], float] = time.monotonic,
                 sweep_interval: float = 60.0):
        self.idle_ttl = idle_ttl
        self.clock = clock
        self.sweep_interval = sweep_interval
        self._carts: Dict[str, Cart] = {}
        self._last_seen: Dict[str, float] = {}
        self._last_sweep = clock()

    def get(self, key: str) -> Cart:
        now = self.clock()
        self._sweep(now)
        cart = self._carts.get(key)
        if cart is None or self._expired(key, now):
            cart = Cart()
            self._carts[key] = cart
        self._last_seen[key] = now
        return cart

    def drop(self, key: str) -> None:
        self._carts.pop(key, None)
        self._last_seen.pop(key, None)

    def move(self, from_key: str, to_key: str) -> Cart:
        cart = self._carts.pop(from_key, None) or Cart()
        self._last_seen.pop(from_key, None)
        self._carts[to_key] = cart
        self._last_seen[to_key] = self.clock()
        return cart

    def _expired(self, key: str, now: float) -> bool:
        if self.idle_ttl is None:
            return False
        return now - self._last_seen.get(key, now) >= self.idle_ttl

    def _sweep(self, now: float) -> None:
        if self.idle_ttl is None or now - self._last_sweep < self.sweep_interval:
            return
        self._last_sweep = now
        for key in [k for k in self._carts if self._expired(k, now)]:
            self.drop(key)

    def __contains__(self, key: str) -> bool:
        return key in self._carts

    def __len__(self) -> int:
        return len(self._carts)
