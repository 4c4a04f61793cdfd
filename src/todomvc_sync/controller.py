"""Todo controller: owns the todo list and keeps cache and server in step.

Every mutation is applied to the local list first (optimistically), written
through to the cache store, and then mirrored to the server by a background
task that the caller never waits for. Failed remote calls are logged and
never rolled back.

Remote calls are scheduled on the running event loop, so mutating methods
must be called from code running inside that loop.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from . import filters
from .cache import LocalCacheStore
from .config import ConfigModel
from .domain import TodoId, TodoList, TodoRecord, VisibilityFilter, new_temp_id
from .remote import RemoteSyncClient, SyncFailure


logger = logging.getLogger(__name__)


Listener = Callable[["TodoController"], None]
TodosWatcher = Callable[[TodoList], None]


class SyncState(Enum):
    """Remote lifecycle of a locally created record."""
    PENDING = "pending"  # created locally, server has not confirmed
    CONFIRMED = "confirmed"
    ABANDONED = "abandoned"  # removed before the server confirmed


class TodoController:
    """State and behavior behind the todo view.

    Exposes ``todos``, ``new_todo``, ``edited_todo`` and ``visibility`` to
    the rendering layer, which re-renders whenever a subscriber is called.
    """

    def __init__(self, cache: LocalCacheStore, remote: Optional[RemoteSyncClient] = None,
                 config: Optional[ConfigModel] = None):
        """Initialize the controller from the cached snapshot.

        Args:
            cache: Local cache store; written on every todo list change
            remote: Remote sync client, or None to work offline
            config: Behavior switches; defaults to ``ConfigModel()``
        """
        self.cache = cache
        self.remote = remote
        self.config = config or ConfigModel()

        self.todos: TodoList = cache.load()
        self.new_todo: str = ""
        self.edited_todo: Optional[TodoRecord] = None
        self.visibility: VisibilityFilter = VisibilityFilter.ALL
        self._before_edit_cache: Optional[str] = None

        self._listeners: List[Listener] = []
        self._todo_watchers: List[TodosWatcher] = []

        # In-flight remote work
        self._tasks: Set[asyncio.Task] = set()
        self._pending: Dict[TodoId, Set[asyncio.Task]] = {}
        self._creates: Dict[TodoId, asyncio.Task] = {}
        self._states: Dict[TodoId, SyncState] = {}
        self.id_map: Dict[TodoId, TodoId] = {}

        self.watch_todos(cache.save)

    # Derived state

    @property
    def filtered_todos(self) -> TodoList:
        return filters.apply_filter(self.visibility, self.todos)

    @property
    def remaining(self) -> int:
        return filters.remaining(self.todos)

    @property
    def all_done(self) -> bool:
        return filters.all_done(self.todos)

    @property
    def pending_count(self) -> int:
        """Number of remote operations still in flight."""
        return len(self._tasks)

    def sync_state(self, record: TodoRecord) -> SyncState:
        """Remote lifecycle state of ``record``.

        Records that did not originate from ``add_todo`` in this session are
        reported as confirmed. States are only tracked when ``reconcile_ids``
        is enabled.
        """
        return self._states.get(record.id, SyncState.CONFIRMED)

    # Change notification

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a callback run after every state change.

        Returns:
            A function that removes the callback
        """
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def watch_todos(self, watcher: TodosWatcher) -> None:
        """Register a callback run with the todo list after each change to it."""
        self._todo_watchers.append(watcher)

    def _notify(self, todos_changed: bool = True) -> None:
        if todos_changed:
            for watcher in list(self._todo_watchers):
                self._call(watcher, self.todos)
        for listener in list(self._listeners):
            self._call(listener, self)

    @staticmethod
    def _call(callback: Callable[[Any], None], arg: Any) -> None:
        # One failing observer must not starve the others
        try:
            callback(arg)
        except Exception:
            logger.exception(f"State change callback {callback!r} failed")

    # Lifecycle

    async def start(self) -> None:
        """Replace the cached list with the server's list.

        A failed fetch keeps the cached state.
        """
        if self.remote is None:
            return
        try:
            todos = await self.remote.fetch_all()
        except SyncFailure as e:
            logger.warning(f"Could not fetch todos, keeping cached list: {e}")
            return
        self.todos = todos
        self._notify()

    async def drain(self) -> None:
        """Wait until every scheduled remote operation has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # View state

    def set_new_todo(self, text: str) -> None:
        self.new_todo = text
        self._notify(todos_changed=False)

    def set_visibility(self, visibility: VisibilityFilter) -> None:
        self.visibility = visibility
        self._notify(todos_changed=False)

    # Mutations

    def add_todo(self, title: Optional[str] = None) -> Optional[TodoRecord]:
        """Append a new todo with a temporary id and create it remotely.

        Args:
            title: Title to add; defaults to the ``new_todo`` input

        Returns:
            The new record, or None when the title is blank
        """
        value = (self.new_todo if title is None else title or "").strip()
        if not value:
            return None

        record = TodoRecord(id=new_temp_id(), title=value, completed=False)
        self.todos.append(record)
        self.new_todo = ""
        self._notify()

        if self.remote is not None:
            temp_id = record.id
            task = self._schedule(temp_id, self._create_remote(record, value, False), "create")
            if self.config.reconcile_ids:
                self._states[temp_id] = SyncState.PENDING
                self._creates[temp_id] = task
                task.add_done_callback(lambda _t: self._creates.pop(temp_id, None))
        return record

    def remove_todo(self, record: TodoRecord) -> None:
        """Remove ``record`` (matched by identity) and delete it remotely."""
        for index, todo in enumerate(self.todos):
            if todo is record:
                del self.todos[index]
                break
        else:
            logger.debug(f"Todo {record.id} is not in the list, nothing to remove")
            return

        if self._states.get(record.id) is SyncState.PENDING:
            self._states[record.id] = SyncState.ABANDONED
        self._notify()
        self._schedule_delete(record.id)

    def edit_todo(self, record: TodoRecord) -> None:
        """Start editing ``record``, remembering its title for cancel.

        An edit already in progress on another record is committed first.
        """
        if self.edited_todo is record:
            return
        if self.edited_todo is not None:
            self.done_edit(self.edited_todo)
        self._before_edit_cache = record.title
        self.edited_todo = record
        self._notify(todos_changed=False)

    def set_title(self, record: TodoRecord, text: str) -> None:
        """Live edit binding for a record's title."""
        record.title = text
        self._notify()

    def done_edit(self, record: TodoRecord) -> None:
        """Commit the edit; an empty title deletes the record."""
        if self.edited_todo is None or record is not self.edited_todo:
            return

        self.edited_todo = None
        self._before_edit_cache = None
        record.title = record.title.strip()
        if not record.title:
            self.remove_todo(record)
            return

        self._notify()
        self._schedule_update(record.id, {"title": record.title})

    def cancel_edit(self, record: TodoRecord) -> None:
        """Abandon the edit and restore the previous title."""
        if self.edited_todo is None or record is not self.edited_todo:
            return

        self.edited_todo = None
        if self._before_edit_cache is not None:
            record.title = self._before_edit_cache
        self._before_edit_cache = None
        self._notify()

    def toggle_todo(self, record: TodoRecord) -> None:
        """Checkbox binding: flip completion and push it remotely."""
        record.completed = not record.completed
        self._notify()
        self.complete_todo(record)

    def complete_todo(self, record: TodoRecord) -> None:
        """Push the record's current completion flag to the server."""
        self._schedule_update(record.id, {"completed": record.completed})

    def remove_completed(self) -> None:
        """Drop completed records.

        Local only unless ``sync_bulk_operations`` is enabled.
        """
        removed = filters.completed(self.todos)
        self.todos = filters.active(self.todos)
        for record in removed:
            if self._states.get(record.id) is SyncState.PENDING:
                self._states[record.id] = SyncState.ABANDONED
        self._notify()

        if self.config.sync_bulk_operations:
            for record in removed:
                self._schedule_delete(record.id)

    def set_all_completed(self, value: bool) -> None:
        """Set every record's completion flag.

        Local only unless ``sync_bulk_operations`` is enabled.
        """
        changed = [todo for todo in self.todos if todo.completed != value]
        for todo in self.todos:
            todo.completed = value
        self._notify()

        if self.config.sync_bulk_operations:
            for record in changed:
                self._schedule_update(record.id, {"completed": value})

    # Remote scheduling

    def _schedule(self, key: TodoId, coro: Awaitable[Any], operation: str) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self._run(coro, operation, key))
        self._tasks.add(task)
        self._pending.setdefault(key, set()).add(task)
        task.add_done_callback(self._forget)
        return task

    def _forget(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        for key in list(self._pending):
            tasks = self._pending[key]
            tasks.discard(task)
            if not tasks:
                del self._pending[key]

    async def _run(self, coro: Awaitable[Any], operation: str, key: TodoId) -> Any:
        try:
            return await coro
        except SyncFailure as e:
            logger.warning(f"Remote {operation} for todo {key} failed: {e}")
        except Exception:
            logger.exception(f"Unexpected error during remote {operation} for todo {key}")
        return None

    def _schedule_update(self, todo_id: TodoId, fields: Dict[str, Any]) -> None:
        if self.remote is not None:
            self._schedule(todo_id, self._update_remote(todo_id, fields), "update")

    def _schedule_delete(self, todo_id: TodoId) -> None:
        if self.remote is not None:
            self._schedule(todo_id, self._delete_remote(todo_id), "delete")

    async def _create_remote(self, record: TodoRecord, title: str, completed: bool) -> TodoId:
        temp_id = record.id
        server_id = await self.remote.create(title, completed)
        if not self.config.reconcile_ids:
            return server_id

        self.id_map[temp_id] = server_id
        if self._states.get(temp_id) is SyncState.ABANDONED:
            logger.debug(f"Todo {temp_id} was removed before the server confirmed it")
            return server_id

        self._states.pop(temp_id, None)
        if any(todo is record for todo in self.todos):
            record.id = server_id
            if temp_id in self._pending:
                self._pending.setdefault(server_id, set()).update(self._pending.pop(temp_id))
            self._notify()
        return server_id

    async def _resolve_id(self, todo_id: TodoId) -> Optional[TodoId]:
        """Server id for ``todo_id``, waiting for an in-flight create."""
        create = self._creates.get(todo_id)
        if create is not None:
            return await asyncio.shield(create)
        if todo_id in self.id_map:
            return self.id_map[todo_id]
        if self._states.get(todo_id) in (SyncState.PENDING, SyncState.ABANDONED):
            # Tracked locally but never mapped: the create failed
            return None
        return todo_id

    async def _update_remote(self, todo_id: TodoId, fields: Dict[str, Any]) -> Any:
        server_id = await self._resolve_id(todo_id)
        if server_id is None:
            logger.warning(f"Skipping update of todo {todo_id}: it was never created remotely")
            return None
        return await self.remote.update(server_id, fields)

    async def _delete_remote(self, todo_id: TodoId) -> Any:
        server_id = await self._resolve_id(todo_id)
        try:
            if server_id is None:
                logger.warning(f"Skipping delete of todo {todo_id}: it was never created remotely")
                return None
            return await self.remote.delete(server_id)
        finally:
            self._forget_record(todo_id, server_id)

    def _forget_record(self, todo_id: TodoId, server_id: Optional[TodoId]) -> None:
        """Drop bookkeeping for a record that has been deleted."""
        self._states.pop(todo_id, None)
        for temp_id, mapped in list(self.id_map.items()):
            if temp_id == todo_id or (server_id is not None and mapped == server_id):
                del self.id_map[temp_id]
