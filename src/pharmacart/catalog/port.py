"""Pharmacy catalog port — abstract interface for live price and stock quotes.

Carts snapshot price and stock when an item is added. Before checkout the
storefront asks the pharmacy for current quotes through this port and
reconciles the cart with them.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


class CatalogUnavailable(Exception):
    """The pharmacy's catalog could not be reached or refused the request."""


@dataclass(frozen=True)
class CatalogQuote:
    """Current selling terms for one catalog item at one pharmacy."""

    product_id: str
    unit_price: float
    list_price: float | None = None
    in_stock: bool = True
    max_quantity: int | None = None


class PharmacyCatalog(ABC):
    """Abstract interface for pharmacy catalog adapters."""

    @abstractmethod
    def quote_items(self, pharmacy_id: str, product_ids: list[str]) -> dict[str, CatalogQuote]:
        """Quote the given products at a pharmacy.

        Returns:
            Mapping of product id to quote. Products the pharmacy no longer
            lists are left out.

        Raises:
            CatalogUnavailable: if the catalog cannot answer.
        """
        ...
