"""Pharmacart bounded context — multi-pharmacy shopping carts.

Holds one cart aggregate per pharmacy the customer has shopped from, keeps
their totals consistent under discount, delivery and tax rules, and persists
the whole collection to a local key-value store.
"""

from protean.domain import Domain

from pharmacart.utils.logging import configure_logging

# Configure logging for the application
configure_logging()

# Domain Composition Root
pharmacart = Domain(name="pharmacart")
