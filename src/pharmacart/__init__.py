"""Multi-pharmacy shopping carts for a medicine delivery storefront."""
