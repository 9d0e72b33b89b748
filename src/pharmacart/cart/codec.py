"""JSON layout of the persisted cart collection.

The collection is stored under one key as a JSON object mapping pharmacy id
to a serialized cart. Totals are written for readers that inspect the blob,
but they are recomputed on load rather than trusted.
"""

import json
from datetime import datetime

import structlog
from protean.exceptions import ValidationError

from pharmacart.cart.cart import (
    DELIVERY_TERM_FIELDS,
    CartLineItem,
    CartTotals,
    DeliveryTerms,
    Discount,
    PharmacyCart,
)

logger = structlog.get_logger(__name__)

_LINE_FIELDS = (
    "product_id",
    "name",
    "brand",
    "generic_name",
    "strength",
    "form",
    "image",
    "description",
    "unit_price",
    "list_price",
    "quantity",
    "min_quantity",
    "max_quantity",
    "in_stock",
    "requires_approval",
    "approval_satisfied",
    "pharmacy_id",
    "pharmacy_name",
)

_TOTALS_FIELDS = ("subtotal", "total_discount", "delivery_fee", "tax_amount", "total")


def _timestamp(value):
    return value.isoformat() if value else None


def _parse_timestamp(value):
    return datetime.fromisoformat(value) if value else None


def _str_or_none(value):
    return str(value) if value is not None else None


def line_to_dict(line) -> dict:
    data = {"id": str(line.id)}
    for field in _LINE_FIELDS:
        data[field] = getattr(line, field)
    data["product_id"] = str(line.product_id)
    data["pharmacy_id"] = str(line.pharmacy_id)
    data["discount"] = {"kind": line.discount.kind, "amount": line.discount.amount} if line.discount else None
    data["added_at"] = _timestamp(line.added_at)
    data["updated_at"] = _timestamp(line.updated_at)
    return data


def cart_to_dict(cart) -> dict:
    terms = cart.current_terms
    totals = cart.current_totals
    return {
        "id": str(cart.id),
        "pharmacy_id": str(cart.pharmacy_id),
        "pharmacy_name": cart.pharmacy_name,
        "items": [line_to_dict(line) for line in cart.items],
        "delivery_terms": {field: getattr(terms, field) for field in DELIVERY_TERM_FIELDS},
        "totals": {field: getattr(totals, field) for field in _TOTALS_FIELDS},
        "is_valid": cart.is_valid,
        "validation_errors": cart.validation_messages,
        "created_at": _timestamp(cart.created_at),
        "updated_at": _timestamp(cart.updated_at),
    }


def line_from_dict(data: dict) -> CartLineItem:
    discount = data.get("discount")
    return CartLineItem(
        id=data["id"],
        discount=Discount(**discount) if discount else None,
        added_at=_parse_timestamp(data.get("added_at")),
        updated_at=_parse_timestamp(data.get("updated_at")),
        **{field: data[field] for field in _LINE_FIELDS if data.get(field) is not None},
    )


def cart_from_dict(data: dict) -> PharmacyCart:
    terms = data.get("delivery_terms") or {}
    cart = PharmacyCart(
        id=data["id"],
        pharmacy_id=data["pharmacy_id"],
        pharmacy_name=data["pharmacy_name"],
        delivery_terms=DeliveryTerms(**{field: terms[field] for field in DELIVERY_TERM_FIELDS if field in terms}),
        totals=CartTotals(),
        is_valid=data.get("is_valid", True),
        validation_errors=json.dumps(data.get("validation_errors") or []),
        created_at=_parse_timestamp(data.get("created_at")),
        updated_at=_parse_timestamp(data.get("updated_at")),
    )
    for line_data in data.get("items") or []:
        cart.add_items(line_from_dict(line_data))
    cart.recalculate_totals()
    return cart


def encode_collection(carts) -> str:
    return json.dumps({pharmacy_id: cart_to_dict(cart) for pharmacy_id, cart in carts.items()})


def decode_collection(raw: str | None) -> dict:
    """Rebuild the ``pharmacy_id -> PharmacyCart`` mapping from its JSON blob.

    A missing blob is an empty collection. So is one that cannot be read:
    a corrupt blob must never stop the storefront from starting.
    """
    if not raw:
        return {}

    try:
        payload = json.loads(raw)
        if not isinstance(payload, dict):
            raise TypeError(f"Expected a JSON object, got {type(payload).__name__}")
        return {str(pharmacy_id): cart_from_dict(data) for pharmacy_id, data in payload.items()}
    except (ValueError, TypeError, KeyError, AttributeError, ValidationError) as exc:
        logger.warning("Discarding unreadable persisted carts", error=str(exc))
        return {}
