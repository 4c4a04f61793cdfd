"""Remote sync client for the TodoMVC GraphQL API.

All four operations POST ``{"query": ..., "variables": ...}`` to a single
endpoint and read the result from the ``data`` member of the response.
The server speaks a legacy schema (``_id``/``text``/``visibility``); field
names are translated only in ``record_from_wire`` and ``fields_to_wire``.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from .domain import TodoId, TodoList, TodoRecord


logger = logging.getLogger(__name__)


FIND_QUERY = """
    query {
      find {
        _id,
        text,
        createdAt,
        visibility
      }
    }
"""

CREATE_MUTATION = """
    mutation createTodo($text: String!, $visibility: Boolean!) {
      create(text: $text, visibility: $visibility)
    }
"""

UPDATE_MUTATION = """
    mutation updateTodo($_id: String!, $text: String, $visibility: Boolean) {
      update(_id: $_id, text: $text, visibility: $visibility)
    }
"""

DELETE_MUTATION = """
    mutation deleteTodo($_id: String!) {
      delete(_id: $_id)
    }
"""

# Canonical field name -> server field name
FIELD_MAP = {
    "id": "_id",
    "title": "text",
    "completed": "visibility",
}


class SyncFailure(Exception):
    """Base exception for remote sync operations."""
    pass


class NetworkError(SyncFailure):
    """Transport failure or timeout."""
    pass


class RemoteResponseError(SyncFailure):
    """The server answered with an error or a malformed body."""
    pass


def record_from_wire(data: Dict[str, Any]) -> TodoRecord:
    """Map a server record onto the canonical shape.

    Raises:
        RemoteResponseError: If the record lacks required fields
    """
    if not isinstance(data, dict):
        raise RemoteResponseError(f"Expected a todo object, got {data!r}")
    try:
        todo_id = data[FIELD_MAP["id"]]
        title = data[FIELD_MAP["title"]]
    except KeyError as e:
        raise RemoteResponseError(f"Todo object missing field {e}") from e
    # bool is an int subclass; a boolean id is never valid
    if isinstance(todo_id, bool) or not isinstance(todo_id, (int, str)):
        raise RemoteResponseError(f"Invalid todo id: {todo_id!r}")
    if not isinstance(title, str):
        raise RemoteResponseError(f"Malformed todo object: {data!r}")
    return TodoRecord(
        id=todo_id,
        title=title,
        completed=bool(data.get(FIELD_MAP["completed"], False)),
    )


def fields_to_wire(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Translate a partial update in canonical names to server names.

    Raises:
        ValueError: If a field cannot be updated remotely
    """
    wire = {}
    for name, value in fields.items():
        if name not in ("title", "completed"):
            raise ValueError(f"Field '{name}' cannot be updated")
        wire[FIELD_MAP[name]] = value
    return wire


class RemoteSyncClient:
    """Async client for the todo GraphQL endpoint."""

    def __init__(self, api_url: str, timeout: float = 30.0,
                 client: Optional[httpx.AsyncClient] = None):
        """Initialize the client.

        Args:
            api_url: GraphQL endpoint URL
            timeout: Request timeout in seconds
            client: Optional preconfigured HTTP client; the caller keeps
                ownership and must close it
        """
        self.api_url = api_url
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self.headers = {"Content-Type": "application/json"}

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self.client.aclose()

    async def _make_request(self, operation: str, query: str,
                            variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """POST a query and return the ``data`` mapping.

        Args:
            operation: Name used in log and error messages
            query: Query-language text
            variables: Query variables

        Returns:
            The ``data`` member of the response body

        Raises:
            NetworkError: If the request could not be completed
            RemoteResponseError: If the response is an error or malformed
        """
        payload: Dict[str, Any] = {"query": query}
        if variables is not None:
            payload["variables"] = variables

        logger.debug(f"Sending {operation} request to {self.api_url}")
        try:
            response = await self.client.post(self.api_url, headers=self.headers, json=payload)
        except httpx.TimeoutException as e:
            raise NetworkError(f"{operation} request timed out") from e
        except httpx.RequestError as e:
            raise NetworkError(f"{operation} request failed: {e}") from e

        if response.status_code >= 400:
            raise RemoteResponseError(
                f"{operation} failed with HTTP {response.status_code}: {response.text}"
            )

        try:
            body = response.json()
        except ValueError as e:
            raise RemoteResponseError(f"{operation} returned a non-JSON body") from e

        if not isinstance(body, dict):
            raise RemoteResponseError(f"{operation} returned an unexpected body: {body!r}")

        if body.get("errors"):
            messages = "; ".join(
                str(err.get("message", err)) if isinstance(err, dict) else str(err)
                for err in body["errors"]
            )
            raise RemoteResponseError(f"{operation} returned errors: {messages}")

        data = body.get("data")
        if not isinstance(data, dict):
            raise RemoteResponseError(f"{operation} response has no data")
        return data

    @staticmethod
    def _result(data: Dict[str, Any], key: str, operation: str) -> Any:
        if key not in data:
            raise RemoteResponseError(f"{operation} response missing '{key}'")
        return data[key]

    async def fetch_all(self) -> TodoList:
        """Fetch every todo from the server."""
        data = await self._make_request("fetch", FIND_QUERY)
        items = self._result(data, "find", "fetch")
        if not isinstance(items, list):
            raise RemoteResponseError(f"fetch returned {type(items).__name__}, expected a list")
        todos = [record_from_wire(item) for item in items]
        logger.debug(f"Fetched {len(todos)} todos")
        return todos

    async def create(self, title: str, completed: bool = False) -> TodoId:
        """Create a todo and return the id the server assigned."""
        variables = fields_to_wire({"title": title, "completed": completed})
        data = await self._make_request("create", CREATE_MUTATION, variables)
        server_id = self._result(data, "create", "create")
        if isinstance(server_id, bool) or not isinstance(server_id, (int, str)):
            raise RemoteResponseError(f"create returned an invalid id: {server_id!r}")
        return server_id

    async def update(self, todo_id: TodoId, fields: Dict[str, Any]) -> Any:
        """Send a partial update for one todo.

        Args:
            todo_id: Server id of the todo
            fields: Changed canonical fields (``title`` and/or ``completed``)

        Returns:
            The server acknowledgement
        """
        variables = {FIELD_MAP["id"]: str(todo_id), **fields_to_wire(fields)}
        data = await self._make_request("update", UPDATE_MUTATION, variables)
        return self._result(data, "update", "update")

    async def delete(self, todo_id: TodoId) -> Any:
        """Delete one todo by id."""
        data = await self._make_request("delete", DELETE_MUTATION, {FIELD_MAP["id"]: str(todo_id)})
        return self._result(data, "delete", "delete")
