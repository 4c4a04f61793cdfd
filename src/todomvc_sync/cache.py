"""Local cache store for the todo list.

The whole list is kept in a single JSON slot named after the storage key.
Every save overwrites the slot; there is no merging or versioning.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Union

from .domain import TodoList, TodoRecord


logger = logging.getLogger(__name__)


class LocalCacheStore:
    """Write-through cache of the todo list in one persistent slot."""

    def __init__(self, data_dir: Union[str, Path], storage_key: str = "todos-vuejs-2.0"):
        """Initialize the cache store.

        Args:
            data_dir: Directory holding the slot file
            storage_key: Name of the slot
        """
        self.data_dir = Path(data_dir).expanduser()
        self.storage_key = storage_key

    @property
    def path(self) -> Path:
        """File backing the slot."""
        return self.data_dir / f"{self.storage_key}.json"

    def load(self) -> TodoList:
        """Read the persisted snapshot.

        Returns:
            The cached todo list, or an empty list when the slot is missing
            or does not hold a valid snapshot
        """
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as e:
            logger.warning(f"Could not read todo cache {self.path}: {e}")
            return []

        try:
            data = json.loads(raw or "[]")
            if not isinstance(data, list):
                raise ValueError("snapshot is not a list")
            return [TodoRecord.from_dict(item) for item in data]
        except ValueError as e:
            # json.JSONDecodeError is a ValueError subclass
            logger.warning(f"Ignoring corrupt todo cache {self.path}: {e}")
            return []

    def save(self, todos: TodoList) -> None:
        """Serialize and overwrite the persisted snapshot."""
        payload = json.dumps([todo.to_dict() for todo in todos])
        self.data_dir.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(dir=self.data_dir, prefix=f".{self.storage_key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug(f"Saved {len(todos)} todos to {self.path}")

    def clear(self) -> None:
        """Remove the persisted snapshot."""
        self.path.unlink(missing_ok=True)
