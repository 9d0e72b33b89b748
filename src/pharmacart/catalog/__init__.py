"""Pharmacy catalog factory.

Provides get_catalog() / set_catalog() to swap implementations. Defaults to
FakeCatalog until the storefront wires in its catalog service client.
"""

from pharmacart.catalog.fake_adapter import FakeCatalog
from pharmacart.catalog.port import PharmacyCatalog

_current_catalog: PharmacyCatalog | None = None


def get_catalog() -> PharmacyCatalog:
    """Return the current catalog adapter. Defaults to FakeCatalog."""
    global _current_catalog
    if _current_catalog is None:
        _current_catalog = FakeCatalog()
    return _current_catalog


def set_catalog(catalog: PharmacyCatalog) -> None:
    """Override the active catalog adapter (useful for tests)."""
    global _current_catalog
    _current_catalog = catalog


def reset_catalog() -> None:
    """Reset to default catalog."""
    global _current_catalog
    _current_catalog = None
