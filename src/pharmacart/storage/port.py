"""Key-value storage port — abstract interface for cart persistence.

The cart store programs against this interface; adapters are swapped via
configuration. Values are opaque strings.
"""

from abc import ABC, abstractmethod


class StorageError(Exception):
    """Raised by an adapter when a read or write cannot be completed."""


class KeyValueStorage(ABC):
    """Abstract interface for key-value storage adapters."""

    @abstractmethod
    def get_string(self, key: str) -> str | None:
        """Return the value stored under ``key``, or None when the key is absent."""
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key``. Deleting an absent key is not an error."""
        ...
