"""In-memory storage adapter — for tests and ephemeral sessions.

Configurable failure behaviour lets tests exercise persistence errors.
"""

from pharmacart.storage.port import KeyValueStorage, StorageError


class MemoryStorage(KeyValueStorage):
    """Dict-backed storage that succeeds by default."""

    def __init__(self, initial: dict | None = None):
        self.data: dict[str, str] = dict(initial or {})
        self.fail_writes = False
        self.fail_reads = False
        self.failure_reason = "Storage unavailable"

    def configure(self, fail_writes: bool = False, fail_reads: bool = False, failure_reason: str = "Storage unavailable"):
        """Configure the adapter's failure behaviour for testing."""
        self.fail_writes = fail_writes
        self.fail_reads = fail_reads
        self.failure_reason = failure_reason

    def get_string(self, key: str) -> str | None:
        if self.fail_reads:
            raise StorageError(self.failure_reason)
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        if self.fail_writes:
            raise StorageError(self.failure_reason)
        self.data[key] = value

    def delete(self, key: str) -> None:
        if self.fail_writes:
            raise StorageError(self.failure_reason)
        self.data.pop(key, None)
