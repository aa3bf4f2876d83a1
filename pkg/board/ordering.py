"""
Ordering engine: dense, zero-based order keys for tasks and columns.

Every function here takes a task (or column) list and returns a new list
of new objects; inputs are never mutated. After any call, each column's
tasks carry orders 0..k-1 with no duplicates or gaps.
"""
from collections import OrderedDict
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from .schema import Column, Task, coerce_order, utc_now


def tasks_in_column(tasks: Sequence[Task], column_id: str) -> List[Task]:
    """Tasks of one column sorted by order (stable on list position)."""
    return sorted(
        (t for t in tasks if t.column_id == column_id),
        key=lambda t: coerce_order(t.order),
    )


def next_order_for_column(tasks: Sequence[Task], column_id: str) -> int:
    """Order key for a task appended at the end of a column."""
    orders = [coerce_order(t.order) for t in tasks if t.column_id == column_id]
    return max(orders) + 1 if orders else 0


def _renumber(ordered: Sequence[Task]) -> List[Task]:
    return [t if t.order == i else replace(t, order=i) for i, t in enumerate(ordered)]


def normalize(tasks: Sequence[Task]) -> List[Task]:
    """Group by column, stable-sort each group by order, reassign 0..k-1.

    Groups come out in order of first appearance, so normalizing an
    already-normalized list returns an equal list.
    """
    grouped: "OrderedDict[str, List[Task]]" = OrderedDict()
    for t in tasks:
        grouped.setdefault(t.column_id, []).append(t)
    normalized: List[Task] = []
    for column_tasks in grouped.values():
        column_tasks.sort(key=lambda t: coerce_order(t.order))
        normalized.extend(_renumber(column_tasks))
    return normalized


def reorder_within_column(
    tasks: Sequence[Task], column_id: str, from_index: int, to_index: int
) -> List[Task]:
    """Move the task at ``from_index`` of a column to ``to_index``.

    Valid when 0 <= from_index < k and 0 <= to_index <= k. Equal or
    out-of-range indices leave the snapshot unchanged.
    """
    column_tasks = tasks_in_column(tasks, column_id)
    count = len(column_tasks)
    if from_index == to_index:
        return list(tasks)
    if not 0 <= from_index < count or not 0 <= to_index <= count:
        return list(tasks)

    moved = column_tasks.pop(from_index)
    column_tasks.insert(to_index, moved)

    others = [t for t in tasks if t.column_id != column_id]
    return others + _renumber(column_tasks)


def move_across_columns(
    tasks: Sequence[Task],
    task_id: str,
    target_column_id: str,
    target_index: int,
    now: Optional[datetime] = None,
) -> List[Task]:
    """Move a task into another column at ``target_index`` (clamped).

    Unknown task ids leave the snapshot unchanged. A move into the task's
    own column is a reorder with the index clamped to the column.
    """
    task = next((t for t in tasks if t.id == task_id), None)
    if task is None:
        return list(tasks)

    source_column_id = task.column_id
    if source_column_id == target_column_id:
        column_tasks = tasks_in_column(tasks, source_column_id)
        from_index = next(i for i, t in enumerate(column_tasks) if t.id == task_id)
        to_index = min(max(target_index, 0), len(column_tasks) - 1)
        return reorder_within_column(tasks, source_column_id, from_index, to_index)

    source = [t for t in tasks_in_column(tasks, source_column_id) if t.id != task_id]
    target = tasks_in_column(tasks, target_column_id)

    moved = replace(task, column_id=target_column_id).touch(now or utc_now())
    target.insert(min(max(target_index, 0), len(target)), moved)

    others = [
        t for t in tasks
        if t.column_id not in (source_column_id, target_column_id)
    ]
    return others + _renumber(source) + _renumber(target)


def normalize_columns(columns: Sequence[Column]) -> List[Column]:
    """Sort columns by order (stable) and renumber them 0..m-1."""
    ordered = sorted(columns, key=lambda c: coerce_order(c.order))
    return [c if c.order == i else replace(c, order=i) for i, c in enumerate(ordered)]


def check_invariants(columns: Sequence[Column], tasks: Sequence[Task]) -> List[str]:
    """Describe every ordering/reference violation; empty when the board is valid."""
    problems: List[str] = []

    column_orders = sorted(c.order for c in columns)
    if column_orders != list(range(len(columns))):
        problems.append(f"column orders not dense: {column_orders}")

    column_ids = [c.id for c in columns]
    if len(set(column_ids)) != len(column_ids):
        problems.append("duplicate column ids")
    task_ids = [t.id for t in tasks]
    if len(set(task_ids)) != len(task_ids):
        problems.append("duplicate task ids")

    by_column: Dict[str, List[int]] = {}
    for t in tasks:
        by_column.setdefault(t.column_id, []).append(t.order)
    known = set(column_ids)
    for column_id, orders in by_column.items():
        if column_id not in known:
            problems.append(f"{len(orders)} task(s) reference missing column {column_id!r}")
        if sorted(orders) != list(range(len(orders))):
            problems.append(f"task orders in {column_id!r} not dense: {sorted(orders)}")

    for t in tasks:
        if t.updated_at < t.created_at:
            problems.append(f"task {t.id} updated before it was created")
    return problems
