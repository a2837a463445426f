"""
Key/value storage backends for client-side state.

Search counts and rate-limit records survive across sessions in a JSON file
store; per-session flags (donation prompts) live in an in-memory store. Both
expose the same small get/set/remove interface.
"""

import json
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from .exceptions import PersistenceError


@runtime_checkable
class KeyValueStore(Protocol):
    """Protocol for string key/value stores."""

    def get_item(self, key: str) -> Optional[str]:
        ...

    def set_item(self, key: str, value: str) -> None:
        ...

    def remove_item(self, key: str) -> None:
        ...


class MemoryStore:
    """Volatile store whose contents last as long as the instance."""

    def __init__(self, initial: Optional[dict[str, str]] = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = str(value)

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileStore:
    """
    Durable store backed by a single JSON object on disk.

    The file is read lazily on first access and rewritten on every change,
    so a new instance pointed at the same path starts from the last
    committed state.
    """

    VERSION = 1

    def __init__(self, file_path: Path) -> None:
        """
        Initialize the file store.

        Args:
            file_path: Path to the JSON storage file
        """
        self._file_path = Path(file_path)
        self._data: Optional[dict[str, str]] = None

    @property
    def file_path(self) -> Path:
        return self._file_path

    def load(self) -> dict[str, str]:
        """
        Load stored items from disk.

        Returns:
            Mapping of stored items (empty if the file does not exist)

        Raises:
            PersistenceError: If the file cannot be read or parsed
        """
        if not self._file_path.exists():
            self._data = {}
            return {}

        try:
            with open(self._file_path, "r", encoding="utf-8") as f:
                raw_data = json.load(f)
        except json.JSONDecodeError as e:
            raise PersistenceError(
                code="parse_error",
                message=f"Failed to parse storage file: {e}",
                details={"file_path": str(self._file_path)},
            )
        except OSError as e:
            raise PersistenceError(
                code="io_error",
                message=f"Failed to read storage file: {e}",
                details={"file_path": str(self._file_path)},
            )

        items = raw_data.get("items", {}) if isinstance(raw_data, dict) else None
        if not isinstance(items, dict):
            raise PersistenceError(
                code="parse_error",
                message="Storage file does not contain an items object",
                details={"file_path": str(self._file_path)},
            )

        self._data = {str(k): str(v) for k, v in items.items()}
        return dict(self._data)

    def save(self) -> None:
        """
        Write the current items to disk.

        Raises:
            PersistenceError: If the file cannot be written
        """
        output_data = {
            "version": self.VERSION,
            "items": self._items(),
        }

        self._file_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            with open(self._file_path, "w", encoding="utf-8") as f:
                json.dump(output_data, f, indent=2, sort_keys=True)
        except OSError as e:
            raise PersistenceError(
                code="io_error",
                message=f"Failed to write storage file: {e}",
                details={"file_path": str(self._file_path)},
            )

    def _items(self) -> dict[str, str]:
        if self._data is None:
            self.load()
        return self._data

    def get_item(self, key: str) -> Optional[str]:
        return self._items().get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items()[key] = str(value)
        self.save()

    def remove_item(self, key: str) -> None:
        items = self._items()
        if key in items:
            del items[key]
            self.save()
