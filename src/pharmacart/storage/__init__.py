"""Cart storage factory.

Provides get_storage() / set_storage() to swap implementations:
- MemoryStorage for development and testing (default)
- FileStorage for a JSON document on local disk
- EncryptedStorage over FileStorage for encryption at rest

Configure via CART_STORAGE_ADAPTER (memory, file, encrypted),
CART_STORAGE_PATH, CART_STORAGE_KEY and CART_STORAGE_QUEUED.
"""

import os

from pharmacart.storage.port import KeyValueStorage

DEFAULT_STORAGE_PATH = ".pharmacart/cart-storage.json"

_current_storage: KeyValueStorage | None = None


def build_storage(adapter: str | None = None) -> KeyValueStorage:
    """Build a storage adapter from the environment."""
    adapter = adapter or os.environ.get("CART_STORAGE_ADAPTER", "memory")
    path = os.environ.get("CART_STORAGE_PATH", DEFAULT_STORAGE_PATH)

    if adapter == "memory":
        from pharmacart.storage.memory_adapter import MemoryStorage

        storage = MemoryStorage()
    elif adapter == "file":
        from pharmacart.storage.file_adapter import FileStorage

        storage = FileStorage(path)
    elif adapter == "encrypted":
        from pharmacart.storage.encrypted_adapter import EncryptedStorage
        from pharmacart.storage.file_adapter import FileStorage

        key = os.environ.get("CART_STORAGE_KEY")
        if not key:
            raise ValueError("CART_STORAGE_KEY is required for the encrypted storage adapter")
        storage = EncryptedStorage(FileStorage(path), key)
    else:
        raise ValueError(f"Unknown storage adapter: {adapter}")

    if os.environ.get("CART_STORAGE_QUEUED", "0") == "1":
        from pharmacart.storage.queued_adapter import QueuedStorage

        storage = QueuedStorage(storage)
    return storage


def get_storage() -> KeyValueStorage:
    """Return the configured storage adapter (singleton)."""
    global _current_storage
    if _current_storage is None:
        _current_storage = build_storage()
    return _current_storage


def set_storage(storage: KeyValueStorage) -> None:
    """Override the active storage adapter (useful for tests)."""
    global _current_storage
    _current_storage = storage


def reset_storage() -> None:
    """Reset to the environment-configured adapter."""
    global _current_storage
    _current_storage = None
