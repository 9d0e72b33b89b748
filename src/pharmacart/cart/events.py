"""Domain events for the PharmacyCart aggregate."""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String

from pharmacart.domain import pharmacart


@pharmacart.event(part_of="PharmacyCart")
class CartCreated:
    """A cart was opened for a pharmacy."""

    __version__ = 1

    cart_id = Identifier(required=True)
    pharmacy_id = Identifier(required=True)
    pharmacy_name = String(required=True)


@pharmacart.event(part_of="PharmacyCart")
class CartItemAdded:
    """A catalog item was added to a pharmacy cart, or its line was topped up."""

    __version__ = 1

    cart_id = Identifier(required=True)
    pharmacy_id = Identifier(required=True)
    line_id = Identifier(required=True)
    product_id = Identifier(required=True)
    requested_quantity = Integer(required=True)
    accepted_quantity = Integer(default=0)
    new_quantity = Integer(required=True)
    clamped = Boolean(default=False)


@pharmacart.event(part_of="PharmacyCart")
class CartItemQuantityUpdated:
    """The quantity of a cart line was changed."""

    __version__ = 1

    cart_id = Identifier(required=True)
    pharmacy_id = Identifier(required=True)
    line_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)
    clamped = Boolean(default=False)


@pharmacart.event(part_of="PharmacyCart")
class CartItemRemoved:
    """A line was removed from a pharmacy cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    pharmacy_id = Identifier(required=True)
    line_id = Identifier(required=True)
    product_id = Identifier(required=True)


@pharmacart.event(part_of="PharmacyCart")
class CartApprovalRecorded:
    """A line that needs a prescription had its approval satisfied."""

    __version__ = 1

    cart_id = Identifier(required=True)
    pharmacy_id = Identifier(required=True)
    line_id = Identifier(required=True)


@pharmacart.event(part_of="PharmacyCart")
class CartDeliveryTermsUpdated:
    """The pharmacy's delivery economics for this cart changed."""

    __version__ = 1

    cart_id = Identifier(required=True)
    pharmacy_id = Identifier(required=True)
    delivery_available = Boolean(default=True)
    min_order_amount = Float(default=0.0)
    free_delivery_threshold = Float(default=0.0)
    delivery_fee = Float(default=0.0)
    tax_rate = Float(default=0.0)


@pharmacart.event(part_of="PharmacyCart")
class CartItemsRefreshed:
    """Cart lines were reconciled against the pharmacy's current catalog."""

    __version__ = 1

    cart_id = Identifier(required=True)
    pharmacy_id = Identifier(required=True)
    lines_changed = Integer(default=0)


@pharmacart.event(part_of="PharmacyCart")
class CartDiscarded:
    """A cart was dropped from the collection, either cleared or emptied."""

    __version__ = 1

    cart_id = Identifier(required=True)
    pharmacy_id = Identifier(required=True)
    reason = String(required=True, max_length=50)
    discarded_at = DateTime(required=True)
