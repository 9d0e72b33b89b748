"""Fake catalog adapter — deterministic quotes for testing and development."""

from pharmacart.catalog.port import CatalogQuote, CatalogUnavailable, PharmacyCatalog


class FakeCatalog(PharmacyCatalog):
    """In-memory catalog that always answers by default."""

    def __init__(self):
        self.quotes: dict[tuple[str, str], CatalogQuote] = {}
        self.should_succeed = True
        self.failure_reason = "Catalog unavailable"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Catalog unavailable"):
        """Configure the fake catalog behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def stock(self, pharmacy_id: str, product_id: str, unit_price: float, **terms) -> CatalogQuote:
        """Register (or replace) the quote for a product at a pharmacy."""
        quote = CatalogQuote(product_id=str(product_id), unit_price=unit_price, **terms)
        self.quotes[(str(pharmacy_id), str(product_id))] = quote
        return quote

    def delist(self, pharmacy_id: str, product_id: str) -> None:
        self.quotes.pop((str(pharmacy_id), str(product_id)), None)

    def quote_items(self, pharmacy_id: str, product_ids: list[str]) -> dict[str, CatalogQuote]:
        if not self.should_succeed:
            raise CatalogUnavailable(self.failure_reason)

        found = {}
        for product_id in product_ids:
            quote = self.quotes.get((str(pharmacy_id), str(product_id)))
            if quote is not None:
                found[str(product_id)] = quote
        return found
