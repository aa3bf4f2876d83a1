"""
Dashboard statistics over one board.

Completion is positional: a task is completed when it sits in the "done"
column (or, on boards without one, the right-most column) and pending
when it sits in the left-most column. Everything else is in progress.
"""
from datetime import date
from typing import Any, Dict, List, Optional

from .schema import Priority, Task

DONE_COLUMN_ID = "done"
RECENT_LIMIT = 5


def _done_column_id(board) -> Optional[str]:
    columns = board.columns
    if not columns:
        return None
    if any(c.id == DONE_COLUMN_ID for c in columns):
        return DONE_COLUMN_ID
    return columns[-1].id


def _pending_column_id(board) -> Optional[str]:
    columns = board.columns
    return columns[0].id if columns else None


def _today_str(today: Optional[date]) -> str:
    return (today or date.today()).isoformat()


def _is_done(task: Task, done_id: Optional[str]) -> bool:
    return done_id is not None and task.column_id == done_id


def filter_tasks(board, kind: str, today: Optional[date] = None) -> List[Task]:
    """Tasks matching one dashboard tile; unknown kinds return every task."""
    today_str = _today_str(today)
    done_id = _done_column_id(board)
    pending_id = _pending_column_id(board)
    tasks = board.tasks

    def is_open(t: Task) -> bool:
        return not _is_done(t, done_id)

    if kind == "completed":
        return [t for t in tasks if _is_done(t, done_id)]
    if kind == "pending":
        return [t for t in tasks if t.column_id == pending_id and is_open(t)]
    if kind == "inprogress":
        return [t for t in tasks if t.column_id != pending_id and is_open(t)]
    if kind == "overdue":
        return [t for t in tasks if t.due_date and t.due_date[:10] < today_str and is_open(t)]
    if kind == "today":
        return [t for t in tasks if t.due_date and t.due_date[:10] == today_str and is_open(t)]
    if kind in ("high", "medium", "low"):
        priority = Priority(kind)
        return [t for t in tasks if t.priority == priority and is_open(t)]
    return tasks


def board_stats(board, today: Optional[date] = None) -> Dict[str, Any]:
    """Counts shown on the dashboard, plus the most recently created tasks."""
    total = len(board.tasks)
    completed = len(filter_tasks(board, "completed", today))
    recent = sorted(board.tasks, key=lambda t: t.created_at, reverse=True)[:RECENT_LIMIT]
    return {
        "totalCount": total,
        "completedCount": completed,
        "pendingCount": len(filter_tasks(board, "pending", today)),
        "inProgressCount": len(filter_tasks(board, "inprogress", today)),
        "overdueCount": len(filter_tasks(board, "overdue", today)),
        "dueTodayCount": len(filter_tasks(board, "today", today)),
        "completionRate": 0 if total == 0 else round(completed / total * 100),
        "highPriorityCount": len(filter_tasks(board, "high", today)),
        "mediumPriorityCount": len(filter_tasks(board, "medium", today)),
        "lowPriorityCount": len(filter_tasks(board, "low", today)),
        "recentTasks": [t.to_dict() for t in recent],
    }
