"""Cart totals law.

Totals are always recomputed from scratch over the current lines and the
cart's delivery terms. Nothing here mutates its inputs.
"""

from collections.abc import Iterable


def _round(amount: float) -> float:
    return round(amount, 2)


def line_totals(line) -> tuple[float, float]:
    """Return ``(line_total, line_discount_total)`` for one cart line.

    ``line_total`` is already net of the per-unit discount.
    """
    discount_per_unit = line.discount.per_unit(line.unit_price) if line.discount else 0.0
    line_total = (line.unit_price - discount_per_unit) * line.quantity
    return line_total, discount_per_unit * line.quantity


def compute_totals(lines: Iterable, terms) -> dict:
    """Compute subtotal, discount, delivery fee, tax and grand total.

    ``subtotal`` is the sum of discounted line totals. The flat delivery fee
    applies only to a cart with lines, while delivery is available and the
    subtotal is below the free-delivery threshold. Tax is charged on the net subtotal.
    """
    subtotal = 0.0
    total_discount = 0.0
    line_count = 0
    for line in lines:
        line_count += 1
        line_total, line_discount = line_totals(line)
        subtotal += line_total
        total_discount += line_discount

    subtotal = _round(subtotal)
    delivery_fee = 0.0
    if line_count and terms.delivery_available and subtotal < terms.free_delivery_threshold:
        delivery_fee = _round(terms.delivery_fee)

    tax_amount = _round(subtotal * terms.tax_rate)

    return {
        "subtotal": subtotal,
        "total_discount": _round(total_discount),
        "delivery_fee": delivery_fee,
        "tax_amount": tax_amount,
        "total": _round(subtotal + delivery_fee + tax_amount),
    }
