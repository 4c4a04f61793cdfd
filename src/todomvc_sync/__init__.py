"""TodoMVC Sync - a TodoMVC client with a local cache and GraphQL sync."""

__version__ = "0.1.0"

from .domain import TodoRecord, VisibilityFilter
from .controller import TodoController

__all__ = ["TodoRecord", "VisibilityFilter", "TodoController", "__version__"]
