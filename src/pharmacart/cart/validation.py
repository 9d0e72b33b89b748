"""Checkout readiness checks for a pharmacy cart.

Validation is advisory: it never blocks a cart mutation. Checkout consults
``validate_cart`` before taking payment and refuses to proceed while any
issue is returned. Every rule is evaluated; none short-circuits the others.
"""

from dataclasses import dataclass
from enum import Enum


class IssueKind(Enum):
    OUT_OF_STOCK = "OUT_OF_STOCK"
    BELOW_MINIMUM_ORDER = "BELOW_MINIMUM_ORDER"
    APPROVAL_REQUIRED = "APPROVAL_REQUIRED"
    DELIVERY_UNAVAILABLE = "DELIVERY_UNAVAILABLE"


@dataclass(frozen=True)
class ValidationIssue:
    """One reason a cart cannot be checked out. ``line_id`` is set for line-scoped issues."""

    kind: IssueKind
    message: str
    line_id: str | None = None


def validate_cart(cart) -> list[ValidationIssue]:
    """Classify everything that would stop ``cart`` from being checked out.

    Pure: reads the cart and returns a fresh list, touching nothing.
    """
    issues = []

    for line in cart.items:
        if not line.in_stock:
            issues.append(
                ValidationIssue(
                    kind=IssueKind.OUT_OF_STOCK,
                    message=f"{line.name} is currently out of stock",
                    line_id=str(line.id),
                )
            )

        if line.requires_approval and not line.approval_satisfied:
            issues.append(
                ValidationIssue(
                    kind=IssueKind.APPROVAL_REQUIRED,
                    message=f"{line.name} requires a prescription",
                    line_id=str(line.id),
                )
            )

    terms = cart.current_terms
    subtotal = cart.current_totals.subtotal

    if subtotal < terms.min_order_amount:
        issues.append(
            ValidationIssue(
                kind=IssueKind.BELOW_MINIMUM_ORDER,
                message=f"Minimum order amount is ₹{terms.min_order_amount:.2f}",
            )
        )

    if not terms.delivery_available:
        issues.append(
            ValidationIssue(
                kind=IssueKind.DELIVERY_UNAVAILABLE,
                message="Delivery is not available for this pharmacy",
            )
        )

    return issues
