import copy
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from budget_categorizer.domain.normalization import MIN_STEM_LENGTH, stem
from budget_categorizer.logger import get_logger
from budget_categorizer.models import OverrideEntry, OverrideKind
from budget_categorizer.storage.jsonfile import JsonFileStore

logger = get_logger(__name__)

_SECTIONS: dict[OverrideKind, str] = {"fingerprint": "fingerprints", "stem": "stems"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OverrideStore(ABC):
    """User corrections keyed by fingerprint (exact) and by stem (generalized)."""

    @abstractmethod
    def get_by_fingerprint(self, fingerprint: str) -> str | None:
        pass

    @abstractmethod
    def get_by_stem(self, stem_key: str) -> str | None:
        pass

    @abstractmethod
    def upsert_fingerprint(self, fingerprint: str, category: str, example_merchant: str) -> None:
        pass

    @abstractmethod
    def upsert_stem(self, stem_key: str, category: str, example_merchant: str) -> bool:
        """Returns False when the stem is too short to be stored."""
        pass

    @abstractmethod
    def list_overrides(self) -> list[OverrideEntry]:
        """Fingerprint entries, most recently updated first."""
        pass

    @abstractmethod
    def list_stem_overrides(self) -> list[OverrideEntry]:
        pass

    def backfill_stems(self) -> int:
        """
        Ensure every fingerprint override has a stem override.

        Stems are derived from the stored example merchant. Existing stem
        entries are left alone, so running this repeatedly is a no-op.
        """
        created = 0
        for entry in self.list_overrides():
            stem_key = stem(entry.example_merchant)
            if not stem_key or self.get_by_stem(stem_key) is not None:
                continue
            if self.upsert_stem(stem_key, entry.category, entry.example_merchant):
                created += 1
        if created:
            logger.info("[OVERRIDE] Backfilled %d stem override(s).", created)
        return created


class JsonOverrideStore(OverrideStore):
    def __init__(
        self,
        data_path: str = "overrides.json",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._file = JsonFileStore(data_path, {"fingerprints": {}, "stems": {}})
        self._clock = clock
        self._data: dict[str, dict[str, dict[str, Any]]] | None = None

    @property
    def data_path(self) -> str:
        return self._file.data_path

    def load(self) -> dict[str, dict[str, dict[str, Any]]]:
        with self._file.locked():
            data = self._file.read()
            for section in _SECTIONS.values():
                data.setdefault(section, {})
            self._data = data
            return data

    def _snapshot(self) -> dict[str, dict[str, dict[str, Any]]]:
        if self._data is None:
            return self.load()
        return self._data

    def _get(self, kind: OverrideKind, key: str) -> str | None:
        if not key:
            return None
        with self._file.locked():
            entry = self._snapshot()[_SECTIONS[kind]].get(key)
        return entry["category"] if entry else None

    def _upsert(self, kind: OverrideKind, key: str, category: str, example_merchant: str) -> None:
        with self._file.locked():
            data = copy.deepcopy(self._snapshot())
            section = data[_SECTIONS[kind]]
            # Re-insert so dict order tracks recency.
            section.pop(key, None)
            section[key] = {
                "category": category,
                "example_merchant": example_merchant or "",
                "updated_at": self._clock().isoformat(),
            }
            self._file.write(data)
            self._data = data

    def _list(self, kind: OverrideKind) -> list[OverrideEntry]:
        with self._file.locked():
            section = self._snapshot()[_SECTIONS[kind]]
            entries = [
                OverrideEntry(
                    key=key,
                    kind=kind,
                    category=value["category"],
                    example_merchant=value.get("example_merchant", ""),
                    updated_at=value["updated_at"],
                )
                for key, value in reversed(list(section.items()))
            ]
        entries.sort(key=lambda entry: entry.updated_at, reverse=True)
        return entries

    def get_by_fingerprint(self, fingerprint: str) -> str | None:
        return self._get("fingerprint", fingerprint)

    def get_by_stem(self, stem_key: str) -> str | None:
        return self._get("stem", stem_key)

    def upsert_fingerprint(self, fingerprint: str, category: str, example_merchant: str) -> None:
        self._upsert("fingerprint", fingerprint, category, example_merchant)
        logger.debug("[OVERRIDE] fingerprint %s... -> '%s'", fingerprint[:12], category)

    def upsert_stem(self, stem_key: str, category: str, example_merchant: str) -> bool:
        if len(stem_key or "") < MIN_STEM_LENGTH:
            logger.debug("[OVERRIDE] Ignoring stem '%s' (too short).", stem_key)
            return False
        self._upsert("stem", stem_key, category, example_merchant)
        logger.debug("[OVERRIDE] stem '%s' -> '%s'", stem_key, category)
        return True

    def list_overrides(self) -> list[OverrideEntry]:
        return self._list("fingerprint")

    def list_stem_overrides(self) -> list[OverrideEntry]:
        return self._list("stem")
