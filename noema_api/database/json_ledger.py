"""
JSON-file ledger used by the preview services.

The whole document is read, modified and rewritten on every append. Writes go
through a per-path lock and an atomic rename, so concurrent requests inside one
process do not lose updates; separate processes writing the same file still can.
"""

from __future__ import annotations

import copy
import json
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator

from noema_api.noema_logging import get_logger

logger = get_logger(__name__)

_LOCKS: dict[Path, threading.Lock] = {}
_LOCKS_GUARD = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    with _LOCKS_GUARD:
        return _LOCKS.setdefault(path, threading.Lock())


class JsonFileLedger:
    """
    File-backed JSON document.

    default is the document written when the file does not exist yet
    ({"stakes": []} for staking, [] for mints). A file that is not valid JSON, or
    holds JSON of a different type than default, is read as the default.
    """

    def __init__(self, path: Path, default: Any, *, indent: int | None = 2):
        self.path = Path(path).resolve()
        self.default = default
        self.indent = indent

    def _ensure(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self._write(copy.deepcopy(self.default))

    def _write(self, doc: Any) -> None:
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=self.path.name, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(doc, f, indent=self.indent)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def _load(self) -> Any:
        """Current document; caller holds the lock."""
        self._ensure()
        try:
            doc = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("ledger_corrupt_reset_to_default", path=str(self.path))
            return copy.deepcopy(self.default)
        if not isinstance(doc, type(self.default)):
            logger.warning("ledger_shape_reset_to_default", path=str(self.path), found=type(doc).__name__)
            return copy.deepcopy(self.default)
        return doc

    def read(self) -> Any:
        with _lock_for(self.path):
            return self._load()

    @contextmanager
    def transaction(self) -> Iterator[Any]:
        """Yield the current document; it is written back when the block exits cleanly."""
        with _lock_for(self.path):
            doc = self._load()
            yield doc
            self._write(doc)

    def update(self, fn: Callable[[Any], Any]) -> Any:
        """Replace the document with fn(doc) under the lock; returns the new document."""
        with _lock_for(self.path):
            doc = fn(self._load())
            self._write(doc)
            return doc
