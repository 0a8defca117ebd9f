import json
import os
import tempfile
import threading
from typing import Any

from budget_categorizer.logger import get_logger

logger = get_logger(__name__)


class StoreUnavailableError(RuntimeError):
    """The backing store could not be read or written."""


class JsonFileStore:
    """
    A JSON document on disk guarded by a re-entrant lock.

    Callers mutate the document inside ``with store.locked():`` so that a
    read-decide-write sequence on one key never interleaves with another
    writer. Writes go through a temporary file and ``os.replace``.
    """

    def __init__(self, data_path: str, default: Any) -> None:
        self.data_path = data_path
        self._default = default
        self._lock = threading.RLock()

    def locked(self) -> threading.RLock:
        return self._lock

    def read(self) -> Any:
        with self._lock:
            if not os.path.exists(self.data_path):
                return json.loads(json.dumps(self._default))
            try:
                with open(self.data_path, encoding="utf-8") as f:
                    return json.load(f)
            except (OSError, json.JSONDecodeError) as exc:
                logger.error("[STORE] Failed to read %s: %s", self.data_path, exc)
                raise StoreUnavailableError(f"Cannot read {self.data_path}: {exc}") from exc

    def write(self, data: Any) -> None:
        with self._lock:
            directory = os.path.dirname(os.path.abspath(self.data_path))
            try:
                os.makedirs(directory, exist_ok=True)
                fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
                try:
                    with os.fdopen(fd, "w", encoding="utf-8") as f:
                        json.dump(data, f, indent=2)
                    os.replace(tmp_path, self.data_path)
                except BaseException:
                    if os.path.exists(tmp_path):
                        os.unlink(tmp_path)
                    raise
            except OSError as exc:
                logger.error("[STORE] Failed to write %s: %s", self.data_path, exc)
                raise StoreUnavailableError(f"Cannot write {self.data_path}: {exc}") from exc
