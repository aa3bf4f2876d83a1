"""
Load reconciliation: bring persisted boards up to the current shape.

Two kinds of legacy data are handled here, once per load:

  - task records keyed only by a fixed status label (no columnId/order)
  - storage layouts that predate the consolidated per-account mapping
    (a flat list of owner-tagged tasks, or separate tasks::<id> and
    columns::<id> entries)

Everything is idempotent: running it over already-migrated data is a no-op.
"""
import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .ordering import normalize, normalize_columns
from .schema import (
    FALLBACK_COLUMN_ID,
    Column,
    Task,
    coerce_order,
    default_columns,
)

logger = logging.getLogger(__name__)

LAYOUT_VERSION = 1

# Status labels written by older clients
STATUS_ALIASES = {
    "doing": "in-progress",
    "inprogress": "in-progress",
    "in_progress": "in-progress",
    "completed": "done",
    "pending": "todo",
}

LEGACY_KEY_RE = re.compile(r"^(?:kanban-)?(tasks|columns)::(.+)$")


def normalize_account(account: Optional[str]) -> str:
    """Storage key for an account id (case-insensitive, trimmed)."""
    return (account or "").strip().lower()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Records
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def resolve_columns(raw_columns: Optional[Iterable[Dict[str, Any]]]) -> List[Column]:
    """Parse column records; missing orders fall back to list position."""
    columns: List[Column] = []
    seen = set()
    for position, raw in enumerate(raw_columns or []):
        if not isinstance(raw, dict) or not raw.get("id"):
            continue
        column = Column.from_dict(raw)
        if column.id in seen:
            logger.warning(f"Dropping duplicate column {column.id!r}")
            continue
        seen.add(column.id)
        column.order = coerce_order(raw.get("order"), default=position)
        columns.append(column)
    if not columns:
        return default_columns()
    return normalize_columns(columns)


def _column_for_status(status: Any, columns: Sequence[Column]) -> str:
    ids = {c.id for c in columns}
    label = str(status or "").strip().lower()
    if label in ids:
        return label
    alias = STATUS_ALIASES.get(label)
    if alias in ids:
        return alias
    if columns:
        return min(columns, key=lambda c: c.order).id
    return FALLBACK_COLUMN_ID


def resolve_task(raw: Dict[str, Any], columns: Sequence[Column]) -> Task:
    """Resolve one persisted record (current or legacy shape) into a Task.

    A record without a columnId, or whose columnId names no column on the
    board, is placed via its legacy status label.
    """
    task = Task.from_dict(raw)
    column_id = raw.get("columnId", raw.get("column_id"))
    if not column_id or column_id not in {c.id for c in columns}:
        task.column_id = _column_for_status(raw.get("status", column_id), columns)
        if column_id:
            logger.info(f"Re-homed task {task.id} from missing column {column_id!r} to {task.column_id!r}")
    return task


def migrate_board(
    raw_columns: Optional[Iterable[Dict[str, Any]]],
    raw_tasks: Optional[Iterable[Dict[str, Any]]],
) -> Tuple[List[Column], List[Task]]:
    """Resolve a persisted (columns, tasks) pair into a valid board.

    Tasks without an id are dropped; duplicate ids keep the first
    record.
    """
    columns = resolve_columns(raw_columns)
    tasks: List[Task] = []
    seen = set()
    for raw in raw_tasks or []:
        if not isinstance(raw, dict) or not raw.get("id"):
            continue
        task = resolve_task(raw, columns)
        if task.id in seen:
            logger.warning(f"Dropping duplicate task {task.id!r}")
            continue
        seen.add(task.id)
        tasks.append(task)
    return columns, normalize(tasks)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Storage layout
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def empty_layout() -> Dict[str, Any]:
    return {"version": LAYOUT_VERSION, "users": {}}


def migrate_legacy_layout(data: Any) -> Tuple[Dict[str, Any], bool]:
    """Convert any older storage layout into {"version", "users": {...}}.

    Returns the migrated mapping and whether anything changed. Legacy
    tasks::<id> / columns::<id> keys are folded into the account mapping
    and removed.
    """
    if data is None:
        return empty_layout(), False

    # Flat list of tasks, each tagged with its owner
    if isinstance(data, list):
        layout = empty_layout()
        for raw in data:
            if not isinstance(raw, dict):
                continue
            account = normalize_account(raw.get("owner"))
            if not account:
                logger.warning(f"Dropping ownerless legacy task {raw.get('id')!r}")
                continue
            board = layout["users"].setdefault(account, {"tasks": [], "columns": []})
            board["tasks"].append(raw)
        logger.info(f"Migrated flat task list into {len(layout['users'])} account board(s)")
        return layout, True

    if not isinstance(data, dict):
        logger.warning(f"Unrecognized storage layout ({type(data).__name__}); starting empty")
        return empty_layout(), True

    changed = False
    layout = dict(data)
    users = layout.get("users")
    if not isinstance(users, dict):
        users = {}
        changed = True
    else:
        users = dict(users)
    if layout.get("version") != LAYOUT_VERSION:
        changed = True

    legacy_keys = [k for k in layout if isinstance(k, str) and LEGACY_KEY_RE.match(k)]
    for key in legacy_keys:
        kind, account = LEGACY_KEY_RE.match(key).groups()
        account = normalize_account(account)
        value = layout.pop(key)
        if not account:
            continue
        board = users.setdefault(account, {"tasks": [], "columns": []})
        board[kind] = value if isinstance(value, list) else []
        changed = True
    if legacy_keys:
        logger.info(f"Folded {len(legacy_keys)} legacy per-account key(s) into the board mapping")

    layout["version"] = LAYOUT_VERSION
    layout["users"] = users
    return layout, changed
