"""
Kanban board schema.

A board is one account's ordered columns plus the tasks placed in them.
Each task carries a column reference and a dense, zero-based order key
within that column. Records are persisted with camelCase keys
(columnId, createdAt, ...) so existing board files stay readable.
"""
import time
import uuid
from enum import Enum
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any


FALLBACK_COLUMN_ID = "todo"

DEFAULT_COLUMNS = (
    ("todo", "To Do"),
    ("in-progress", "In Progress"),
    ("done", "Done"),
)


class BoardError(Exception):
    """Base class for board errors."""
    pass


class BoardValidationError(BoardError):
    """Raised when a mutation is rejected before it touches the board."""
    pass


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def make_id(prefix: str) -> str:
    """Generate a sortable unique ID (ms-precision timestamp + random hex)."""
    ts = int(time.time() * 1000)
    rand = uuid.uuid4().hex[:8]
    return f"{prefix}-{ts}-{rand}"


def parse_timestamp(value: Any, default: Optional[datetime] = None) -> Optional[datetime]:
    """Parse an ISO-8601 string (a trailing 'Z' included) into an aware datetime.

    Naive values are taken as UTC. Unparseable values return ``default``.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return default
    else:
        return default
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def due_date_or_none(value: Any) -> Optional[str]:
    """An ISO date (or date-time) string, stripped; None for anything else."""
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    return text if parse_timestamp(text) is not None else None


def coerce_order(value: Any, default: int = 0) -> int:
    """Order keys are integers; anything non-numeric becomes ``default``."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if value != value:  # NaN
        return default
    return int(value)


class Priority(Enum):
    """Task priority."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def from_str(cls, value: Any) -> "Priority":
        """Lenient parse used on load; unknown labels fall back to MEDIUM."""
        if isinstance(value, Priority):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.MEDIUM

    @classmethod
    def parse(cls, value: Any) -> "Priority":
        """Strict parse used on mutation; raises BoardValidationError."""
        if isinstance(value, Priority):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            allowed = ", ".join(p.value for p in cls)
            raise BoardValidationError(f"Invalid priority: {value!r} (expected one of {allowed})")


@dataclass
class Column:
    """A named, ordered bucket of tasks."""
    id: str
    title: str
    order: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "title": self.title, "order": self.order}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Column":
        return cls(
            id=str(data.get("id", "")),
            title=str(data.get("title", "")),
            order=coerce_order(data.get("order")),
        )


@dataclass
class Task:
    """A single card on the board."""

    # Identity
    id: str
    title: str
    description: str = ""
    priority: Priority = Priority.MEDIUM

    # Placement
    column_id: str = FALLBACK_COLUMN_ID
    order: int = 0

    # Scheduling
    due_date: Optional[str] = None   # ISO date, e.g. "2025-03-01"

    # Metadata
    owner: str = ""
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def touch(self, now: Optional[datetime] = None) -> "Task":
        """Return a copy with updated_at refreshed (never before created_at)."""
        now = now or utc_now()
        return replace(self, updated_at=max(now, self.created_at))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "priority": self.priority.value,
            "columnId": self.column_id,
            "order": self.order,
            "dueDate": self.due_date,
            "owner": self.owner,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        """Deserialize a current-shape record (camelCase or snake_case keys).

        Legacy records without a column reference are resolved by
        ``migration.resolve_task`` instead.
        """
        now = utc_now()
        created_at = parse_timestamp(data.get("createdAt", data.get("created_at")), now)
        updated_at = parse_timestamp(data.get("updatedAt", data.get("updated_at")), created_at)
        return cls(
            id=str(data.get("id", "")),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            priority=Priority.from_str(data.get("priority", "medium")),
            column_id=str(data.get("columnId", data.get("column_id")) or FALLBACK_COLUMN_ID),
            order=coerce_order(data.get("order")),
            due_date=due_date_or_none(data.get("dueDate", data.get("due_date"))),
            owner=str(data.get("owner") or ""),
            created_at=created_at,
            updated_at=max(updated_at, created_at),
        )


@dataclass
class BoardSnapshot:
    """A (columns, tasks) pair handed to persistence adapters."""
    columns: List[Column] = field(default_factory=list)
    tasks: List[Task] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "columns": [c.to_dict() for c in self.columns],
            "tasks": [t.to_dict() for t in self.tasks],
        }


def default_columns() -> List[Column]:
    """The fixed three-column board given to new accounts and guests."""
    return [Column(id=cid, title=title, order=i) for i, (cid, title) in enumerate(DEFAULT_COLUMNS)]
