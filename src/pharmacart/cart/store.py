"""Cart store — the multi-pharmacy cart collection and its operations.

The store owns a ``pharmacy_id -> PharmacyCart`` mapping plus a pointer to
the cart currently in the foreground. Screens mutate carts only through the
store: each mutation runs to completion (recompute, persist, publish events)
before returning.

Persistence layout in the key-value store:
    ``carts``            JSON object, pharmacy id -> serialized cart
    ``activePharmacyId`` plain string

An absent key reads the same as an empty collection. A failed write is
logged and otherwise ignored: the in-memory state stays authoritative for
the life of the process.

The store is not a singleton. Whoever composes the application creates one
and hands it to the screens; tests build a fresh store per case.
"""

import threading
from collections.abc import Callable, Mapping
from types import MappingProxyType

import structlog
from protean.exceptions import ValidationError

from pharmacart.cart import queries
from pharmacart.cart.cart import DiscardReason, MutationOutcome, PharmacyCart
from pharmacart.cart.codec import decode_collection, encode_collection
from pharmacart.cart.validation import ValidationIssue, validate_cart
from pharmacart.catalog import get_catalog
from pharmacart.catalog.port import CatalogUnavailable, PharmacyCatalog
from pharmacart.storage import get_storage
from pharmacart.storage.port import KeyValueStorage, StorageError

logger = structlog.get_logger(__name__)

CARTS_KEY = "carts"
ACTIVE_PHARMACY_KEY = "activePharmacyId"


class CartStore:
    def __init__(
        self,
        storage: KeyValueStorage | None = None,
        catalog: PharmacyCatalog | None = None,
    ):
        self._storage = storage if storage is not None else get_storage()
        self._catalog = catalog
        self._lock = threading.RLock()
        self._carts: dict[str, PharmacyCart] = {}
        self._active_pharmacy_id: str | None = None
        self._listeners: list[Callable] = []

        # Cached summary for widgets that poll, refreshed on every persist
        self.total_items = 0
        self.total_amount = 0.0

        self.load()

    # -------------------------------------------------------------------
    # Cart lifecycle
    # -------------------------------------------------------------------
    def create_cart(self, pharmacy_id, pharmacy_name, delivery_terms=None) -> PharmacyCart:
        """Open a cart for a pharmacy and bring it to the foreground.

        Does nothing if the pharmacy already has a cart.
        """
        with self._lock:
            cart, created = self._ensure_cart(pharmacy_id, pharmacy_name, delivery_terms)
            if created:
                self.persist()
                self._publish(cart)
            return cart

    def set_active_cart(self, pharmacy_id) -> None:
        """Point the foreground at a pharmacy. Its cart need not exist yet."""
        with self._lock:
            self._active_pharmacy_id = str(pharmacy_id) if pharmacy_id is not None else None
            self._write_active_pointer()

    def clear_cart(self, pharmacy_id) -> None:
        with self._lock:
            pharmacy_id = str(pharmacy_id)
            cart = self._carts.get(pharmacy_id)
            if cart is not None:
                self._drop(cart, DiscardReason.CLEARED)
            elif self._active_pharmacy_id == pharmacy_id:
                self._active_pharmacy_id = None
            self.persist()

    def clear_all_carts(self) -> None:
        """Drop every cart, e.g. on logout. Deletes the persisted keys outright."""
        with self._lock:
            for cart in list(self._carts.values()):
                cart.discard(DiscardReason.CLEARED)
                self._publish(cart)
            self._carts = {}
            self._active_pharmacy_id = None
            self.total_items = 0
            self.total_amount = 0.0

            for key in (CARTS_KEY, ACTIVE_PHARMACY_KEY):
                try:
                    self._storage.delete(key)
                except (StorageError, OSError) as exc:
                    logger.error("Failed to delete persisted carts", key=key, error=str(exc))

            logger.info("All carts cleared")

    # -------------------------------------------------------------------
    # Line mutation
    # -------------------------------------------------------------------
    def add_item(self, pharmacy_id, item) -> MutationOutcome:
        """Add a catalog item to a pharmacy's cart, creating the cart on first use.

        Topping up an existing line is capped at its maximum quantity without
        raising; check ``outcome.clamped`` to tell the customer.

        Raises:
            ValidationError: if ``item`` is malformed. Nothing changes.
        """
        with self._lock:
            pharmacy_id = str(pharmacy_id)
            previous_active = self._active_pharmacy_id
            cart, created = self._ensure_cart(pharmacy_id, item.get("pharmacy_name"))

            try:
                outcome = cart.add_item(item)
            except ValidationError:
                if created:
                    del self._carts[pharmacy_id]
                    self._active_pharmacy_id = previous_active
                raise

            self._active_pharmacy_id = pharmacy_id
            self.persist()
            self._publish(cart)

            if outcome.clamped:
                logger.info(
                    "Added quantity clamped to line bounds",
                    pharmacy_id=pharmacy_id,
                    product_id=str(item.get("product_id")),
                    requested=outcome.requested,
                    accepted=outcome.accepted,
                )
            return outcome

    def update_quantity(self, pharmacy_id, line_id, quantity: int) -> MutationOutcome:
        """Set a line's quantity within its bounds. Zero or less removes the line."""
        with self._lock:
            cart = self._carts.get(str(pharmacy_id))
            if cart is None:
                return MutationOutcome(requested=quantity)

            outcome = cart.update_item_quantity(line_id, quantity)
            if outcome.line_id is None:
                return outcome

            self._commit(cart)
            return outcome

    def remove_item(self, pharmacy_id, line_id) -> MutationOutcome:
        with self._lock:
            cart = self._carts.get(str(pharmacy_id))
            if cart is None:
                return MutationOutcome()

            outcome = cart.remove_item(line_id)
            if outcome.removed:
                self._commit(cart)
            return outcome

    def record_approval(self, pharmacy_id, line_id) -> bool:
        """Mark a prescription line as approved. Returns False if nothing changed."""
        with self._lock:
            cart = self._carts.get(str(pharmacy_id))
            if cart is None or not cart.record_approval(line_id):
                return False
            self._commit(cart)
            return True

    def update_delivery_terms(self, pharmacy_id, **terms) -> PharmacyCart | None:
        """Override a pharmacy's delivery economics for its cart and re-price it."""
        with self._lock:
            cart = self._carts.get(str(pharmacy_id))
            if cart is None:
                return None
            cart.update_delivery_terms(**terms)
            self._commit(cart)
            return cart

    def recalculate_totals(self, pharmacy_id) -> PharmacyCart | None:
        with self._lock:
            cart = self._carts.get(str(pharmacy_id))
            if cart is None:
                return None
            cart.recalculate_totals()
            self.persist()
            return cart

    def sync_with_pharmacy(self, pharmacy_id) -> int:
        """Refresh a cart's prices and stock from the pharmacy's live catalog.

        Returns:
            Number of lines that changed. Zero when the cart does not exist or
            the catalog cannot be reached (the cart is then left untouched).
        """
        with self._lock:
            cart = self._carts.get(str(pharmacy_id))
            if cart is None or cart.is_empty:
                return 0

            catalog = self._catalog or get_catalog()
            product_ids = [str(line.product_id) for line in cart.items]
            try:
                quotes = catalog.quote_items(str(pharmacy_id), product_ids)
            except CatalogUnavailable as exc:
                logger.warning("Catalog sync skipped", pharmacy_id=str(pharmacy_id), error=str(exc))
                return 0

            changed = cart.refresh_from_catalog(quotes)
            self._commit(cart)
            logger.info("Cart synced with pharmacy", pharmacy_id=str(pharmacy_id), lines_changed=changed)
            return changed

    # -------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------
    def validate_cart(self, pharmacy_id) -> list[ValidationIssue]:
        """Everything that blocks checkout for this cart. Changes nothing."""
        with self._lock:
            cart = self._carts.get(str(pharmacy_id))
            return validate_cart(cart) if cart is not None else []

    def refresh_validation(self, pharmacy_id) -> list[ValidationIssue]:
        """Validate a cart and store the result as its ``is_valid`` snapshot."""
        with self._lock:
            cart = self._carts.get(str(pharmacy_id))
            if cart is None:
                return []
            issues = validate_cart(cart)
            cart.record_validation([issue.message for issue in issues])
            self.persist()
            return issues

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def carts(self) -> Mapping[str, PharmacyCart]:
        return MappingProxyType(self._carts)

    @property
    def active_pharmacy_id(self) -> str | None:
        return self._active_pharmacy_id

    def get_cart(self, pharmacy_id) -> PharmacyCart | None:
        return self._carts.get(str(pharmacy_id))

    def active_cart(self) -> PharmacyCart | None:
        with self._lock:
            return self._carts.get(self._active_pharmacy_id) if self._active_pharmacy_id else None

    def carts_with_items(self) -> list[PharmacyCart]:
        with self._lock:
            return queries.carts_with_items(self._carts)

    def count_items(self, pharmacy_id=None) -> int:
        with self._lock:
            return queries.count_items(self._carts, _key(pharmacy_id))

    def cart_total(self, pharmacy_id=None) -> float:
        with self._lock:
            return queries.cart_total(self._carts, _key(pharmacy_id))

    def has_item(self, pharmacy_id, product_id) -> bool:
        with self._lock:
            return queries.has_item(self._carts, str(pharmacy_id), product_id)

    def item_quantity(self, pharmacy_id, product_id) -> int:
        with self._lock:
            return queries.item_quantity(self._carts, str(pharmacy_id), product_id)

    def preview(self) -> list[queries.CartPreview]:
        with self._lock:
            return queries.cart_previews(self._carts)

    # -------------------------------------------------------------------
    # Event listeners
    # -------------------------------------------------------------------
    def subscribe(self, listener: Callable) -> None:
        """Call ``listener(event)`` for every domain event a mutation raises."""
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def unsubscribe(self, listener: Callable) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    # -------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------
    def load(self) -> None:
        """Replace in-memory state with what the key-value store holds."""
        with self._lock:
            try:
                raw_carts = self._storage.get_string(CARTS_KEY)
                active_pharmacy_id = self._storage.get_string(ACTIVE_PHARMACY_KEY)
            except StorageError as exc:
                logger.warning("Persisted carts unavailable, starting empty", error=str(exc))
                raw_carts, active_pharmacy_id = None, None

            self._carts = decode_collection(raw_carts)
            self._active_pharmacy_id = active_pharmacy_id or None
            self._refresh_summary()
            logger.debug("Carts loaded", cart_count=len(self._carts), active_pharmacy_id=self._active_pharmacy_id)

    def persist(self) -> None:
        """Write the whole collection and the active pointer."""
        with self._lock:
            self._refresh_summary()
            try:
                self._storage.set(CARTS_KEY, encode_collection(self._carts))
            except (StorageError, OSError) as exc:
                logger.error("Failed to persist carts", cart_count=len(self._carts), error=str(exc))
            self._write_active_pointer()

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    def _ensure_cart(self, pharmacy_id, pharmacy_name, delivery_terms=None):
        """Return the pharmacy's cart, creating it (and making it active) if needed.

        The single place carts come into existence; it does not persist.
        """
        pharmacy_id = str(pharmacy_id)
        cart = self._carts.get(pharmacy_id)
        if cart is not None:
            return cart, False

        cart = PharmacyCart.create(pharmacy_id, pharmacy_name, delivery_terms=delivery_terms)
        self._carts[pharmacy_id] = cart
        self._active_pharmacy_id = pharmacy_id
        logger.info("Cart created", pharmacy_id=pharmacy_id, pharmacy_name=pharmacy_name)
        return cart, True

    def _commit(self, cart) -> None:
        """Persist after a line mutation, dropping the cart if it has no lines left."""
        if cart.is_empty:
            self._drop(cart, DiscardReason.EMPTIED)
        else:
            self._publish(cart)
        self.persist()

    def _drop(self, cart, reason: DiscardReason) -> None:
        pharmacy_id = str(cart.pharmacy_id)
        cart.discard(reason)
        self._publish(cart)
        self._carts.pop(pharmacy_id, None)
        if self._active_pharmacy_id == pharmacy_id:
            self._active_pharmacy_id = None
        logger.info("Cart dropped", pharmacy_id=pharmacy_id, reason=reason.value)

    def _write_active_pointer(self) -> None:
        try:
            if self._active_pharmacy_id:
                self._storage.set(ACTIVE_PHARMACY_KEY, self._active_pharmacy_id)
            else:
                self._storage.delete(ACTIVE_PHARMACY_KEY)
        except (StorageError, OSError) as exc:
            logger.error("Failed to persist active cart", active_pharmacy_id=self._active_pharmacy_id, error=str(exc))

    def _refresh_summary(self) -> None:
        self.total_items = queries.count_items(self._carts)
        self.total_amount = queries.cart_total(self._carts)

    def _publish(self, cart) -> None:
        for event in cart.pull_events():
            for listener in list(self._listeners):
                try:
                    listener(event)
                except Exception:
                    logger.exception("Cart event listener failed", event_type=event.__class__.__name__)


def _key(pharmacy_id):
    return str(pharmacy_id) if pharmacy_id is not None else None
