"""Pharmacy cart aggregate — one cart per pharmacy the customer shops from.

A PharmacyCart owns its line items and a set of derived totals. The totals
are a pure function of the lines and the cart's delivery terms: every
mutation replaces the CartTotals value object wholesale, they are never
patched field by field.

Quantity bounds are enforced by clamping. Adding more than a line's
maximum, or updating below its minimum, silently lands on the nearest bound
and is reported through the returned MutationOutcome. A line never holds a
quantity of zero: asking for zero or less removes it.
"""

import json
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from pharmacart.cart.events import (
    CartApprovalRecorded,
    CartCreated,
    CartDeliveryTermsUpdated,
    CartDiscarded,
    CartItemAdded,
    CartItemQuantityUpdated,
    CartItemRemoved,
    CartItemsRefreshed,
)
from pharmacart.cart.pricing import compute_totals
from pharmacart.domain import pharmacart

# Cart economics applied to every new cart unless the pharmacy overrides them
DEFAULT_FREE_DELIVERY_THRESHOLD = 500.0
DEFAULT_DELIVERY_FEE = 50.0
DEFAULT_TAX_RATE = 0.05
DEFAULT_MIN_ORDER_AMOUNT = 0.0
DEFAULT_ESTIMATED_DELIVERY_TIME = "30-45 mins"

DELIVERY_TERM_FIELDS = (
    "delivery_available",
    "min_order_amount",
    "free_delivery_threshold",
    "delivery_fee",
    "tax_rate",
    "estimated_delivery_time",
)

# Display fields carried from the catalog onto a line, opaque to the cart
_DISPLAY_FIELDS = ("brand", "generic_name", "strength", "form", "image", "description")


class DiscountKind(Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"


class DiscardReason(Enum):
    CLEARED = "Cleared"
    EMPTIED = "Emptied"


@dataclass(frozen=True)
class MutationOutcome:
    """What a cart mutation actually did.

    ``accepted`` is the number of units added for an add, and the quantity
    now stored on the line for an update. ``clamped`` is set whenever the
    stored quantity differs from what the caller asked for.
    """

    requested: int = 0
    accepted: int = 0
    clamped: bool = False
    removed: bool = False
    line_id: str | None = None


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@pharmacart.value_object(part_of="PharmacyCart")
class Discount:
    """Per-unit discount on a line: a percentage of the unit price or a fixed amount."""

    kind = String(choices=DiscountKind, default=DiscountKind.FIXED.value)
    amount = Float(default=0.0, min_value=0.0)

    @invariant.post
    def percentage_cannot_exceed_hundred(self):
        if self.kind == DiscountKind.PERCENTAGE.value and self.amount > 100.0:
            raise ValidationError({"discount": ["Percentage discount cannot exceed 100"]})

    @classmethod
    def percentage(cls, percent):
        return cls(kind=DiscountKind.PERCENTAGE.value, amount=percent)

    @classmethod
    def fixed(cls, amount):
        return cls(kind=DiscountKind.FIXED.value, amount=amount)

    def per_unit(self, unit_price: float) -> float:
        """Discount taken off one unit. A fixed discount never exceeds the unit price."""
        if self.kind == DiscountKind.PERCENTAGE.value:
            return unit_price * self.amount / 100
        return min(self.amount, unit_price)


@pharmacart.value_object(part_of="PharmacyCart")
class DeliveryTerms:
    """A pharmacy's delivery economics for one cart.

    The flat delivery fee is charged while the net subtotal stays below the
    free-delivery threshold. Tax is a flat rate on the net subtotal.
    """

    delivery_available = Boolean(default=True)
    min_order_amount = Float(default=DEFAULT_MIN_ORDER_AMOUNT, min_value=0.0)
    free_delivery_threshold = Float(default=DEFAULT_FREE_DELIVERY_THRESHOLD, min_value=0.0)
    delivery_fee = Float(default=DEFAULT_DELIVERY_FEE, min_value=0.0)
    tax_rate = Float(default=DEFAULT_TAX_RATE, min_value=0.0, max_value=1.0)
    estimated_delivery_time = String(max_length=50, default=DEFAULT_ESTIMATED_DELIVERY_TIME)


@pharmacart.value_object(part_of="PharmacyCart")
class CartTotals:
    """Derived money totals of a cart. ``subtotal`` is already net of line discounts."""

    subtotal = Float(default=0.0)
    total_discount = Float(default=0.0)
    delivery_fee = Float(default=0.0)
    tax_amount = Float(default=0.0)
    total = Float(default=0.0)

    @invariant.post
    def total_is_sum_of_parts(self):
        expected = round(self.subtotal + self.delivery_fee + self.tax_amount, 2)
        if abs(expected - self.total) > 0.005:
            raise ValidationError({"total": ["Total must equal subtotal plus delivery fee plus tax"]})


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@pharmacart.entity(part_of="PharmacyCart")
class CartLineItem:
    """One catalog item at one quantity inside a pharmacy's cart."""

    product_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    brand = String(max_length=255)
    generic_name = String(max_length=255)
    strength = String(max_length=100)
    form = String(max_length=100)
    image = String(max_length=1000)
    description = Text()
    unit_price = Float(required=True, min_value=0.0)
    list_price = Float(min_value=0.0)
    discount = ValueObject(Discount)
    quantity = Integer(required=True, min_value=1)
    min_quantity = Integer(default=1, min_value=1)
    max_quantity = Integer(required=True, min_value=1)
    in_stock = Boolean(default=True)
    requires_approval = Boolean(default=False)
    approval_satisfied = Boolean(default=False)
    pharmacy_id = Identifier(required=True)
    pharmacy_name = String(max_length=255)
    added_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def quantity_within_bounds(self):
        if self.min_quantity > self.max_quantity:
            raise ValidationError({"min_quantity": ["Minimum quantity cannot exceed maximum quantity"]})
        if not self.min_quantity <= self.quantity <= self.max_quantity:
            raise ValidationError(
                {"quantity": [f"Quantity must be between {self.min_quantity} and {self.max_quantity}"]}
            )

    def clamp(self, quantity: int) -> int:
        return max(self.min_quantity, min(quantity, self.max_quantity))


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@pharmacart.aggregate
class PharmacyCart:
    pharmacy_id = Identifier(required=True)
    pharmacy_name = String(required=True, max_length=255)
    items = HasMany(CartLineItem)
    delivery_terms = ValueObject(DeliveryTerms)
    totals = ValueObject(CartTotals)
    is_valid = Boolean(default=True)
    validation_errors = Text()  # JSON array of messages from the last validation snapshot
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def lines_belong_to_this_pharmacy(self):
        for line in self.items:
            if str(line.pharmacy_id) != str(self.pharmacy_id):
                raise ValidationError({"items": ["Cart lines must belong to the cart's pharmacy"]})

    @invariant.post
    def one_line_per_catalog_item(self):
        product_ids = [str(line.product_id) for line in self.items]
        if len(product_ids) != len(set(product_ids)):
            raise ValidationError({"items": ["A catalog item can appear only once per cart"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, pharmacy_id, pharmacy_name, delivery_terms=None):
        now = datetime.now(UTC)
        cart = cls(
            pharmacy_id=pharmacy_id,
            pharmacy_name=pharmacy_name,
            delivery_terms=delivery_terms or DeliveryTerms(),
            totals=CartTotals(),
            is_valid=True,
            validation_errors=json.dumps([]),
            created_at=now,
            updated_at=now,
        )
        cart.raise_(
            CartCreated(
                cart_id=str(cart.id),
                pharmacy_id=str(pharmacy_id),
                pharmacy_name=pharmacy_name,
            )
        )
        return cart

    # -------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------
    def find_line(self, line_id):
        return next((line for line in self.items if str(line.id) == str(line_id)), None)

    def find_product(self, product_id):
        return next((line for line in self.items if str(line.product_id) == str(product_id)), None)

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def current_totals(self) -> CartTotals:
        """Totals, never None. Protean stores an all-zero value object as None."""
        return self.totals or CartTotals()

    @property
    def current_terms(self) -> DeliveryTerms:
        return self.delivery_terms or DeliveryTerms()

    # -------------------------------------------------------------------
    # Line management
    # -------------------------------------------------------------------
    def add_item(self, item_data):
        """Add a catalog item, or top up its existing line.

        Lines are matched by ``product_id``, not by line id. Topping up is
        capped at the line's ``max_quantity``; a new line is clamped into
        its ``[min_quantity, max_quantity]`` range.

        Args:
            item_data: Mapping with ``product_id``, ``name``, ``unit_price``,
                ``max_quantity`` and optionally ``quantity`` (default 1),
                ``min_quantity``, ``list_price``, ``discount_kind`` /
                ``discount_amount`` (or a ``discount`` value object),
                ``in_stock``, ``requires_approval``, ``approval_satisfied``,
                ``pharmacy_name`` and display fields.
        """
        requested = _whole_number(item_data, "quantity", 1)
        if requested < 1:
            raise ValidationError({"quantity": ["Quantity to add must be at least 1"]})

        now = datetime.now(UTC)
        existing = self.find_product(item_data.get("product_id"))

        if existing:
            new_quantity = min(existing.quantity + requested, existing.max_quantity)
            accepted = new_quantity - existing.quantity
            existing.quantity = new_quantity
            existing.updated_at = now
            line = existing
        else:
            line = self._new_line(item_data, requested, now)
            accepted = line.quantity
            self.add_items(line)

        self._recalculate_totals()
        self.updated_at = now

        outcome = MutationOutcome(
            requested=requested,
            accepted=accepted,
            clamped=accepted != requested,
            line_id=str(line.id),
        )
        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                pharmacy_id=str(self.pharmacy_id),
                line_id=str(line.id),
                product_id=str(line.product_id),
                requested_quantity=requested,
                accepted_quantity=accepted,
                new_quantity=line.quantity,
                clamped=outcome.clamped,
            )
        )
        return outcome

    def update_item_quantity(self, line_id, quantity):
        """Set a line's quantity, clamped into its bounds. Zero or less removes the line."""
        line = self.find_line(line_id)
        if line is None:
            return MutationOutcome(requested=quantity)

        if quantity <= 0:
            self.remove_item(line_id)
            return MutationOutcome(requested=quantity, removed=True, line_id=str(line_id))

        previous_quantity = line.quantity
        new_quantity = line.clamp(quantity)
        now = datetime.now(UTC)
        line.quantity = new_quantity
        line.updated_at = now

        self._recalculate_totals()
        self.updated_at = now

        self.raise_(
            CartItemQuantityUpdated(
                cart_id=str(self.id),
                pharmacy_id=str(self.pharmacy_id),
                line_id=str(line_id),
                previous_quantity=previous_quantity,
                new_quantity=new_quantity,
                clamped=new_quantity != quantity,
            )
        )
        return MutationOutcome(
            requested=quantity,
            accepted=new_quantity,
            clamped=new_quantity != quantity,
            line_id=str(line_id),
        )

    def remove_item(self, line_id):
        """Remove a line unconditionally."""
        line = self.find_line(line_id)
        if line is None:
            return MutationOutcome()

        product_id = str(line.product_id)
        self.remove_items(line)
        self._recalculate_totals()
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartItemRemoved(
                cart_id=str(self.id),
                pharmacy_id=str(self.pharmacy_id),
                line_id=str(line_id),
                product_id=product_id,
            )
        )
        return MutationOutcome(removed=True, line_id=str(line_id))

    def record_approval(self, line_id):
        """Mark a line's prescription approval as satisfied."""
        line = self.find_line(line_id)
        if line is None or line.approval_satisfied:
            return False

        now = datetime.now(UTC)
        line.approval_satisfied = True
        line.updated_at = now
        self.updated_at = now

        self.raise_(
            CartApprovalRecorded(
                cart_id=str(self.id),
                pharmacy_id=str(self.pharmacy_id),
                line_id=str(line_id),
            )
        )
        return True

    def refresh_from_catalog(self, quotes):
        """Reconcile lines with the pharmacy's current price and stock quotes.

        Args:
            quotes: Mapping of product id to a quote carrying ``unit_price``,
                ``list_price``, ``in_stock`` and ``max_quantity``. A line whose
                product is missing from the quotes is marked out of stock.

        Returns:
            Number of lines that changed.
        """
        now = datetime.now(UTC)
        changed = 0

        for line in self.items:
            before = (line.unit_price, line.list_price, line.in_stock, line.quantity, line.max_quantity)
            quote = quotes.get(str(line.product_id))

            if quote is None:
                line.in_stock = False
            else:
                line.unit_price = quote.unit_price
                if quote.list_price is not None:
                    line.list_price = quote.list_price
                line.in_stock = quote.in_stock
                if quote.max_quantity is not None:
                    new_max = max(quote.max_quantity, line.min_quantity)
                    # Lower the quantity before the bound so the line never goes out of range
                    if line.quantity > new_max:
                        line.quantity = new_max
                    line.max_quantity = new_max

            after = (line.unit_price, line.list_price, line.in_stock, line.quantity, line.max_quantity)
            if after != before:
                line.updated_at = now
                changed += 1

        self._recalculate_totals()
        if changed:
            self.updated_at = now

        self.raise_(
            CartItemsRefreshed(
                cart_id=str(self.id),
                pharmacy_id=str(self.pharmacy_id),
                lines_changed=changed,
            )
        )
        return changed

    # -------------------------------------------------------------------
    # Delivery terms and totals
    # -------------------------------------------------------------------
    def update_delivery_terms(self, **terms):
        """Replace the cart's delivery terms, keeping any term not supplied."""
        unknown = sorted(set(terms) - set(DELIVERY_TERM_FIELDS))
        if unknown:
            raise ValidationError({"delivery_terms": [f"Unknown delivery terms: {', '.join(unknown)}"]})

        current = self.current_terms
        merged = {field: getattr(current, field) for field in DELIVERY_TERM_FIELDS}
        merged.update(terms)

        with atomic_change(self):
            self.delivery_terms = DeliveryTerms(**merged)
            self._recalculate_totals()
            self.updated_at = datetime.now(UTC)

        terms = self.current_terms
        self.raise_(
            CartDeliveryTermsUpdated(
                cart_id=str(self.id),
                pharmacy_id=str(self.pharmacy_id),
                delivery_available=terms.delivery_available,
                min_order_amount=terms.min_order_amount,
                free_delivery_threshold=terms.free_delivery_threshold,
                delivery_fee=terms.delivery_fee,
                tax_rate=terms.tax_rate,
            )
        )

    def recalculate_totals(self):
        """Recompute the derived totals from scratch."""
        self._recalculate_totals()

    def _recalculate_totals(self):
        self.totals = CartTotals(**compute_totals(self.items, self.current_terms))

    # -------------------------------------------------------------------
    # Validation snapshot
    # -------------------------------------------------------------------
    def record_validation(self, messages):
        """Store the outcome of the last validation pass on the cart."""
        with atomic_change(self):
            self.is_valid = not messages
            self.validation_errors = json.dumps(list(messages))

    @property
    def validation_messages(self) -> list[str]:
        return json.loads(self.validation_errors) if self.validation_errors else []

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def discard(self, reason: DiscardReason):
        """Announce that the cart is being dropped from the collection."""
        self.raise_(
            CartDiscarded(
                cart_id=str(self.id),
                pharmacy_id=str(self.pharmacy_id),
                reason=reason.value,
                discarded_at=datetime.now(UTC),
            )
        )

    def pull_events(self) -> list:
        """Hand over the events raised since the last pull and forget them."""
        events = list(self._events)
        self._events.clear()
        return events

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _new_line(self, item_data, requested, now):
        product_id = item_data.get("product_id")
        min_quantity = _whole_number(item_data, "min_quantity", 1)
        max_quantity = _whole_number(item_data, "max_quantity", None)
        if max_quantity is None:
            raise ValidationError({"max_quantity": ["is required"]})
        if min_quantity > max_quantity:
            raise ValidationError({"min_quantity": ["Minimum quantity cannot exceed maximum quantity"]})

        unit_price = item_data.get("unit_price")
        list_price = item_data.get("list_price")

        return CartLineItem(
            id=f"{self.pharmacy_id}_{product_id}_{int(now.timestamp() * 1000)}",
            product_id=product_id,
            name=item_data.get("name"),
            unit_price=unit_price,
            list_price=list_price if list_price is not None else unit_price,
            discount=_discount_from(item_data),
            quantity=max(min_quantity, min(requested, max_quantity)),
            min_quantity=min_quantity,
            max_quantity=max_quantity,
            in_stock=item_data.get("in_stock", True),
            requires_approval=item_data.get("requires_approval", False),
            approval_satisfied=item_data.get("approval_satisfied", False),
            pharmacy_id=self.pharmacy_id,
            pharmacy_name=item_data.get("pharmacy_name") or self.pharmacy_name,
            added_at=now,
            updated_at=now,
            **{field: item_data[field] for field in _DISPLAY_FIELDS if item_data.get(field) is not None},
        )


def _whole_number(item_data, field, default):
    value = item_data.get(field)
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError({field: ["must be a whole number"]}) from None


def _discount_from(item_data):
    discount = item_data.get("discount")
    if isinstance(discount, Discount):
        return discount

    kind = item_data.get("discount_kind", DiscountKind.FIXED.value)
    if isinstance(kind, DiscountKind):
        kind = kind.value
    return Discount(kind=kind, amount=item_data.get("discount_amount", 0.0) or 0.0)
