"""File storage adapter — all keys in one JSON document on local disk.

Writes go to a temporary file in the same directory and are moved into
place, so a crash mid-write leaves the previous document intact.
"""

import json
import os
import tempfile
from pathlib import Path

import structlog

from pharmacart.storage.port import KeyValueStorage, StorageError

logger = structlog.get_logger(__name__)


class FileStorage(KeyValueStorage):
    def __init__(self, path: str | Path):
        self.path = Path(path)

    def get_string(self, key: str) -> str | None:
        return self._read_document().get(key)

    def set(self, key: str, value: str) -> None:
        document = self._read_document_for_write()
        document[key] = value
        self._write_document(document)

    def delete(self, key: str) -> None:
        document = self._read_document_for_write()
        if key in document:
            del document[key]
            self._write_document(document)

    def _read_document(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            document = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise StorageError(f"Cannot read {self.path}: {exc}") from exc
        if not isinstance(document, dict):
            raise StorageError(f"Cannot read {self.path}: not a JSON object")
        return document

    def _read_document_for_write(self) -> dict:
        try:
            return self._read_document()
        except StorageError as exc:
            logger.warning("Overwriting unreadable storage file", path=str(self.path), error=str(exc))
            return {}

    def _write_document(self, document: dict) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(document, handle)
                os.replace(tmp_path, self.path)
            except BaseException:
                Path(tmp_path).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise StorageError(f"Cannot write {self.path}: {exc}") from exc
