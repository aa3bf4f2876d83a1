"""
KanbanBoard: the single mutation entry point for one account's board.

Each instance owns its (columns, tasks) snapshot. Mutations run through
the ordering engine, so the board is valid again before the save hook
sees it. Unknown ids and stale drag indices are silent no-ops; invalid
input raises BoardValidationError before anything changes.
"""
import logging
from dataclasses import replace
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from . import ordering
from .migration import migrate_board, normalize_account
from .schema import (
    FALLBACK_COLUMN_ID,
    BoardSnapshot,
    BoardValidationError,
    Column,
    Priority,
    Task,
    default_columns,
    due_date_or_none,
    make_id,
    utc_now,
)

logger = logging.getLogger(__name__)

SaveHook = Callable[[BoardSnapshot], None]

# Wire names accepted alongside the attribute names
FIELD_ALIASES = {"dueDate": "due_date", "columnId": "column_id"}


def _clean_title(value: Any, what: str = "Task") -> str:
    title = str(value).strip() if value is not None else ""
    if not title:
        raise BoardValidationError(f"{what} title is required")
    return title


def _clean_due_date(value: Any) -> Optional[str]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    due = due_date_or_none(value)
    if due is None:
        raise BoardValidationError(f"Invalid due date: {value!r} (expected an ISO date such as 2025-03-01)")
    return due


def _positions(tasks: Iterable[Task]) -> Dict[str, Any]:
    return {t.id: (t.column_id, t.order) for t in tasks}


class KanbanBoard:
    """One account's board: columns, tasks, and the operations on them."""

    def __init__(
        self,
        columns: Optional[Iterable[Column]] = None,
        tasks: Optional[Iterable[Task]] = None,
        owner: str = "",
        on_save: Optional[SaveHook] = None,
    ):
        """Wrap an already-valid snapshot. Use from_records() for persisted data."""
        self.owner = owner
        self.on_save = on_save
        self._columns: List[Column] = ordering.normalize_columns(list(columns or []))
        self._tasks: List[Task] = ordering.normalize(list(tasks or []))
        self._issued_ids: Set[str] = {c.id for c in self._columns} | {t.id for t in self._tasks}

    @classmethod
    def from_records(
        cls,
        columns: Optional[Iterable[Dict[str, Any]]],
        tasks: Optional[Iterable[Dict[str, Any]]],
        owner: str = "",
        on_save: Optional[SaveHook] = None,
    ) -> "KanbanBoard":
        """Build a board from persisted records, migrating legacy shapes."""
        migrated_columns, migrated_tasks = migrate_board(columns, tasks)
        return cls(migrated_columns, migrated_tasks, owner=normalize_account(owner), on_save=on_save)

    @classmethod
    def guest(cls) -> "KanbanBoard":
        """Ephemeral default board; nothing is ever saved."""
        return cls(default_columns(), [], owner="", on_save=None)

    @property
    def is_guest(self) -> bool:
        return not self.owner

    # ──────────────────────────────────────────
    # Queries
    # ──────────────────────────────────────────

    @property
    def columns(self) -> List[Column]:
        return sorted(self._columns, key=lambda c: c.order)

    @property
    def tasks(self) -> List[Task]:
        return list(self._tasks)

    def get_task(self, task_id: str) -> Optional[Task]:
        return next((t for t in self._tasks if t.id == task_id), None)

    def get_column(self, column_id: str) -> Optional[Column]:
        return next((c for c in self._columns if c.id == column_id), None)

    def tasks_in_column(self, column_id: str) -> List[Task]:
        return ordering.tasks_in_column(self._tasks, column_id)

    def snapshot(self) -> BoardSnapshot:
        return BoardSnapshot(columns=self.columns, tasks=self.tasks)

    def to_dict(self) -> Dict[str, Any]:
        data = self.snapshot().to_dict()
        data["owner"] = self.owner
        data["guest"] = self.is_guest
        return data

    # ──────────────────────────────────────────
    # Internals
    # ──────────────────────────────────────────

    def _new_id(self, prefix: str) -> str:
        new_id = make_id(prefix)
        while new_id in self._issued_ids:
            new_id = make_id(prefix)
        self._issued_ids.add(new_id)
        return new_id

    def _default_column_id(self) -> str:
        columns = self.columns
        return columns[0].id if columns else FALLBACK_COLUMN_ID

    def _commit(self, columns: List[Column], tasks: List[Task]) -> None:
        """Install a new snapshot, then hand it to the save hook.

        A failing hook propagates to the caller; the new snapshot stays.
        """
        self._columns = columns
        self._tasks = tasks
        if self.on_save is not None:
            self.on_save(self.snapshot())

    # ──────────────────────────────────────────
    # Tasks
    # ──────────────────────────────────────────

    def add_task(self, data: Dict[str, Any], column_id: Optional[str] = None) -> Task:
        """Append a task to a column (the first column when none or unknown is given)."""
        title = _clean_title(data.get("title"))
        priority = Priority.parse(data.get("priority") or Priority.MEDIUM)

        target = column_id or data.get("columnId") or data.get("column_id") or data.get("status")
        if self.get_column(target) is None:
            target = self._default_column_id()

        now = utc_now()
        task = Task(
            id=self._new_id("task"),
            title=title,
            description=str(data.get("description") or ""),
            priority=priority,
            column_id=target,
            order=ordering.next_order_for_column(self._tasks, target),
            due_date=_clean_due_date(data.get("dueDate", data.get("due_date"))),
            owner=self.owner,
            created_at=now,
            updated_at=now,
        )
        self._commit(self._columns, self._tasks + [task])
        logger.info(f"Added task {task.id} to column {target!r}")
        return task

    def update_task(self, task_id: str, fields: Dict[str, Any]) -> Optional[Task]:
        """Merge editable fields into a task; id, createdAt, owner and order are ignored.

        A different, existing columnId (or legacy status) moves the task to
        the end of that column.
        """
        task = self.get_task(task_id)
        if task is None:
            logger.debug(f"update_task: unknown task {task_id}")
            return None

        fields = {FIELD_ALIASES.get(k, k): v for k, v in fields.items()}
        changes: Dict[str, Any] = {}
        if "title" in fields:
            changes["title"] = _clean_title(fields["title"])
        if "description" in fields:
            changes["description"] = str(fields["description"] or "")
        if "priority" in fields:
            changes["priority"] = Priority.parse(fields["priority"])
        if "due_date" in fields:
            changes["due_date"] = _clean_due_date(fields["due_date"])

        now = utc_now()
        tasks = [replace(t, **changes).touch(now) if t.id == task_id else t for t in self._tasks]

        target = fields.get("column_id") or fields.get("status")
        if target and target != task.column_id and self.get_column(target) is not None:
            end = len(ordering.tasks_in_column(tasks, target))
            tasks = ordering.move_across_columns(tasks, task_id, target, end, now=now)

        self._commit(self._columns, tasks)
        return self.get_task(task_id)

    def delete_task(self, task_id: str) -> bool:
        if self.get_task(task_id) is None:
            logger.debug(f"delete_task: unknown task {task_id}")
            return False
        remaining = [t for t in self._tasks if t.id != task_id]
        self._commit(self._columns, ordering.normalize(remaining))
        logger.info(f"Deleted task {task_id}")
        return True

    # ──────────────────────────────────────────
    # Columns
    # ──────────────────────────────────────────

    def add_column(self, title: str) -> Column:
        column = Column(
            id=self._new_id("col"),
            title=_clean_title(title, "Column"),
            order=len(self._columns),
        )
        self._commit(self._columns + [column], self._tasks)
        logger.info(f"Added column {column.id} ({column.title!r})")
        return column

    def rename_column(self, column_id: str, title: str) -> Optional[Column]:
        title = _clean_title(title, "Column")
        if self.get_column(column_id) is None:
            logger.debug(f"rename_column: unknown column {column_id}")
            return None
        columns = [replace(c, title=title) if c.id == column_id else c for c in self._columns]
        self._commit(columns, self._tasks)
        return self.get_column(column_id)

    def delete_column(self, column_id: str) -> bool:
        """Remove a column and every task in it; renumber what is left."""
        if self.get_column(column_id) is None:
            logger.debug(f"delete_column: unknown column {column_id}")
            return False
        columns = ordering.normalize_columns([c for c in self._columns if c.id != column_id])
        tasks = ordering.normalize([t for t in self._tasks if t.column_id != column_id])
        dropped = len(self._tasks) - len(tasks)
        self._commit(columns, tasks)
        logger.info(f"Deleted column {column_id} and {dropped} task(s)")
        return True

    # ──────────────────────────────────────────
    # Drag and drop
    # ──────────────────────────────────────────

    def reorder_within_column(self, column_id: str, from_index: int, to_index: int) -> bool:
        """Returns False (and changes nothing) for equal or out-of-range indices."""
        tasks = ordering.reorder_within_column(self._tasks, column_id, from_index, to_index)
        if _positions(tasks) == _positions(self._tasks):
            logger.debug(f"reorder_within_column: no-op on {column_id!r} ({from_index} -> {to_index})")
            return False
        self._commit(self._columns, tasks)
        return True

    def move_across_columns(self, task_id: str, target_column_id: str, target_index: int) -> bool:
        """Returns False (and changes nothing) for an unknown task or column."""
        if self.get_task(task_id) is None or self.get_column(target_column_id) is None:
            logger.debug(f"move_across_columns: unknown task {task_id} or column {target_column_id}")
            return False
        tasks = ordering.move_across_columns(self._tasks, task_id, target_column_id, target_index)
        if _positions(tasks) == _positions(self._tasks):
            return False
        self._commit(self._columns, tasks)
        return True

    # ──────────────────────────────────────────
    # Whole board
    # ──────────────────────────────────────────

    def reset(self) -> None:
        """Back to the default three columns with no tasks."""
        self._commit(default_columns(), [])


def open_board(store: Any, account: Optional[str]) -> KanbanBoard:
    """Load an account's board from a store, wired to save back into it.

    A blank account gets a guest board. A new account starts from the
    default columns, which are saved right away.
    """
    account = normalize_account(account)
    if not account:
        return KanbanBoard.guest()

    def on_save(snapshot: BoardSnapshot) -> None:
        store.save(account, snapshot)

    record = store.load(account)
    if record is None:
        board = KanbanBoard(default_columns(), [], owner=account, on_save=on_save)
        store.save(account, board.snapshot())
        logger.info(f"Created default board for {account}")
        return board
    return KanbanBoard.from_records(
        record.get("columns"), record.get("tasks"), owner=account, on_save=on_save
    )
