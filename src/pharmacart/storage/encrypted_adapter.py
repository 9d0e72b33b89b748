"""Encrypted storage adapter — keeps cart data encrypted at rest.

Wraps another adapter and seals every value with Fernet (AES-128-CBC with
HMAC-SHA256). Keys are stored in the clear; values are not.
"""

from cryptography.fernet import Fernet, InvalidToken

from pharmacart.storage.port import KeyValueStorage, StorageError


class EncryptedStorage(KeyValueStorage):
    def __init__(self, inner: KeyValueStorage, key: str | bytes):
        self.inner = inner
        self._fernet = Fernet(key)

    @staticmethod
    def generate_key() -> str:
        return Fernet.generate_key().decode("ascii")

    def get_string(self, key: str) -> str | None:
        token = self.inner.get_string(key)
        if token is None:
            return None
        try:
            return self._fernet.decrypt(token.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeError) as exc:
            raise StorageError(f"Cannot decrypt value for {key!r}") from exc

    def set(self, key: str, value: str) -> None:
        self.inner.set(key, self._fernet.encrypt(value.encode("utf-8")).decode("ascii"))

    def delete(self, key: str) -> None:
        self.inner.delete(key)
