"""Write-behind storage adapter — ordered, fire-and-forget persistence.

Wraps a slow (for instance networked) adapter so that cart mutations never
wait on it. Writes are appended to a FIFO queue and applied one by one by a
single background thread, in the order they were issued. Reads first wait
for pending writes so they never observe a stale value.
"""

import queue
import threading

import structlog

from pharmacart.storage.port import KeyValueStorage, StorageError

logger = structlog.get_logger(__name__)

_STOP = object()


class QueuedStorage(KeyValueStorage):
    def __init__(self, inner: KeyValueStorage):
        self.inner = inner
        self._queue: queue.Queue = queue.Queue()
        self._closed = False
        self._state_lock = threading.Lock()
        self._worker = threading.Thread(target=self._drain, name="pharmacart-storage-writer", daemon=True)
        self._worker.start()

    def get_string(self, key: str) -> str | None:
        self.flush()
        return self.inner.get_string(key)

    def set(self, key: str, value: str) -> None:
        self._enqueue(("set", key, value))

    def delete(self, key: str) -> None:
        self._enqueue(("delete", key, None))

    def flush(self) -> None:
        """Block until every queued write has been applied."""
        self._queue.join()

    def close(self) -> None:
        """Apply pending writes and stop the writer thread."""
        with self._state_lock:
            if self._closed:
                return
            self._closed = True
            self._queue.put(_STOP)
        self._worker.join()

    def _enqueue(self, operation) -> None:
        with self._state_lock:
            if self._closed:
                raise StorageError("Storage queue is closed")
            self._queue.put(operation)

    def _drain(self) -> None:
        while True:
            operation = self._queue.get()
            try:
                if operation is _STOP:
                    return
                action, key, value = operation
                if action == "set":
                    self.inner.set(key, value)
                else:
                    self.inner.delete(key)
            except (StorageError, OSError) as exc:
                logger.error("Queued storage write failed", operation=operation[0], key=operation[1], error=str(exc))
            finally:
                self._queue.task_done()
