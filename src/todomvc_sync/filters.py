"""Visibility filters over a todo list.

All functions are pure: they never mutate the list they are given.
"""

from typing import Callable, Dict, List, Union

from .domain import TodoList, TodoRecord, VisibilityFilter


def all(todos: TodoList) -> TodoList:  # noqa: A001 - mirrors the view name
    """Return the list unchanged."""
    return todos


def active(todos: TodoList) -> TodoList:
    """Return the records that are not completed."""
    return [todo for todo in todos if not todo.completed]


def completed(todos: TodoList) -> TodoList:
    """Return the records that are completed."""
    return [todo for todo in todos if todo.completed]


FILTERS: Dict[str, Callable[[TodoList], TodoList]] = {
    VisibilityFilter.ALL.value: all,
    VisibilityFilter.ACTIVE.value: active,
    VisibilityFilter.COMPLETED.value: completed,
}


def apply_filter(visibility: Union[VisibilityFilter, str], todos: TodoList) -> TodoList:
    """Apply the filter named by ``visibility`` to ``todos``.

    Raises:
        KeyError: If the filter name is unknown
    """
    if isinstance(visibility, VisibilityFilter):
        visibility = visibility.value
    return FILTERS[visibility](todos)


def remaining(todos: List[TodoRecord]) -> int:
    """Count the active records."""
    return len(active(todos))


def all_done(todos: List[TodoRecord]) -> bool:
    """True when no active record is left."""
    return remaining(todos) == 0


def pluralize(n: int) -> str:
    """Word for the "N items left" footer."""
    return "item" if n == 1 else "items"
