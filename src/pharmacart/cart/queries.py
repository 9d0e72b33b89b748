"""Read-only selectors over a cart collection.

Each selector takes the ``pharmacy_id -> PharmacyCart`` mapping and derives
a view for the UI (floating cart widget, product badges, multi-cart
summaries). None of them mutate the carts.
"""

from collections.abc import Mapping
from dataclasses import dataclass


@dataclass(frozen=True)
class CartPreview:
    """Lightweight summary of one pharmacy cart."""

    pharmacy_id: str
    pharmacy_name: str
    item_count: int
    total: float


def count_items(carts: Mapping, pharmacy_id=None) -> int:
    """Units in one pharmacy's cart, or across all carts when no pharmacy is given."""
    if pharmacy_id is not None:
        cart = carts.get(pharmacy_id)
        return cart.item_count if cart else 0
    return sum(cart.item_count for cart in carts.values())


def cart_total(carts: Mapping, pharmacy_id=None) -> float:
    """Grand total of one pharmacy's cart, or summed across all carts."""
    if pharmacy_id is not None:
        cart = carts.get(pharmacy_id)
        return cart.current_totals.total if cart else 0.0
    return round(sum(cart.current_totals.total for cart in carts.values()), 2)


def has_item(carts: Mapping, pharmacy_id, product_id) -> bool:
    cart = carts.get(pharmacy_id)
    return cart is not None and cart.find_product(product_id) is not None


def item_quantity(carts: Mapping, pharmacy_id, product_id) -> int:
    cart = carts.get(pharmacy_id)
    line = cart.find_product(product_id) if cart else None
    return line.quantity if line else 0


def carts_with_items(carts: Mapping) -> list:
    return [cart for cart in carts.values() if cart.items]


def cart_previews(carts: Mapping) -> list[CartPreview]:
    return [
        CartPreview(
            pharmacy_id=str(cart.pharmacy_id),
            pharmacy_name=cart.pharmacy_name,
            item_count=cart.item_count,
            total=cart.current_totals.total,
        )
        for cart in carts.values()
    ]
