"""Todo record model for the TodoMVC client."""

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Union


TodoId = Union[int, str]


class VisibilityFilter(Enum):
    """View selectors derived from the URL fragment."""
    ALL = "all"
    ACTIVE = "active"
    COMPLETED = "completed"


@dataclass(eq=True)
class TodoRecord:
    """A single todo item in its canonical shape."""

    id: TodoId
    title: str
    completed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the canonical cache representation."""
        return {"id": self.id, "title": self.title, "completed": self.completed}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TodoRecord":
        """Create from the canonical cache representation.

        Raises:
            ValueError: If a field is missing or has the wrong type
        """
        if not isinstance(data, dict):
            raise ValueError(f"Expected a mapping, got {type(data).__name__}")

        try:
            todo_id = data["id"]
            title = data["title"]
            completed = data.get("completed", False)
        except KeyError as e:
            raise ValueError(f"Missing field {e}") from e

        # bool is an int subclass; a boolean id is never valid
        if isinstance(todo_id, bool) or not isinstance(todo_id, (int, str)):
            raise ValueError(f"Invalid id: {todo_id!r}")
        if not isinstance(title, str):
            raise ValueError(f"Invalid title: {title!r}")
        if not isinstance(completed, bool):
            raise ValueError(f"Invalid completed flag: {completed!r}")

        return cls(id=todo_id, title=title, completed=completed)


TodoList = List[TodoRecord]


_id_lock = threading.Lock()
_last_temp_id = 0


def new_temp_id() -> int:
    """Return a client-side temporary id based on the current time in ms.

    Ids are strictly increasing within the process, so two adds in the same
    millisecond still get distinct ids.
    """
    global _last_temp_id
    with _id_lock:
        candidate = int(time.time() * 1000)
        if candidate <= _last_temp_id:
            candidate = _last_temp_id + 1
        _last_temp_id = candidate
        return candidate
