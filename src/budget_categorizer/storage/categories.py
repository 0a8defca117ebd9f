from __future__ import annotations

from budget_categorizer.domain.categories import is_builtin
from budget_categorizer.logger import get_logger
from budget_categorizer.storage.jsonfile import JsonFileStore

logger = get_logger(__name__)


class CustomCategoryRegistry:
    """User-created category names, stored next to the other data files."""

    def __init__(self, data_path: str = "custom_categories.json") -> None:
        self._file = JsonFileStore(data_path, [])

    def list(self) -> list[str]:
        return sorted(str(name) for name in self._file.read())

    def add(self, name: str) -> str | None:
        trimmed = str(name).strip()
        if not trimmed:
            return None
        if is_builtin(trimmed):
            return trimmed
        with self._file.locked():
            names = list(self._file.read())
            if trimmed not in names:
                names.append(trimmed)
                self._file.write(names)
                logger.info("[CATEGORIES] Added custom category '%s'.", trimmed)
        return trimmed

    def remove(self, name: str) -> bool:
        trimmed = str(name).strip()
        with self._file.locked():
            names = list(self._file.read())
            if trimmed not in names:
                return False
            names.remove(trimmed)
            self._file.write(names)
        logger.info("[CATEGORIES] Removed custom category '%s'.", trimmed)
        return True
