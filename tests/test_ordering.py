"""
Tests for the ordering engine: normalize, reorder, move, invariants.
"""
from datetime import datetime, timedelta, timezone

from pkg.board.ordering import (
    check_invariants,
    move_across_columns,
    next_order_for_column,
    normalize,
    normalize_columns,
    reorder_within_column,
    tasks_in_column,
)
from pkg.board.schema import Column, Task


T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _task(task_id, column_id, order):
    return Task(id=task_id, title=task_id, column_id=column_id, order=order,
                created_at=T0, updated_at=T0)


def _titles(tasks, column_id):
    return [t.id for t in tasks_in_column(tasks, column_id)]


def _orders(tasks, column_id):
    return [t.order for t in tasks_in_column(tasks, column_id)]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# normalize
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_normalize_closes_gaps_and_duplicates():
    tasks = [
        _task("a", "todo", 4),
        _task("b", "todo", 4),
        _task("c", "todo", 1),
        _task("d", "done", 7),
    ]
    result = normalize(tasks)
    assert _titles(result, "todo") == ["c", "a", "b"]  # tie keeps list position
    assert _orders(result, "todo") == [0, 1, 2]
    assert _orders(result, "done") == [0]


def test_normalize_is_idempotent():
    tasks = [
        _task("a", "doing", 3),
        _task("b", "todo", 9),
        _task("c", "doing", 0),
        _task("d", "todo", 9),
    ]
    once = normalize(tasks)
    assert normalize(once) == once


def test_normalize_does_not_mutate_input():
    tasks = [_task("a", "todo", 5)]
    normalize(tasks)
    assert tasks[0].order == 5


def test_next_order_for_column():
    tasks = [_task("a", "todo", 0), _task("b", "todo", 1)]
    assert next_order_for_column(tasks, "todo") == 2
    assert next_order_for_column(tasks, "done") == 0


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# reorder_within_column
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_reorder_moves_first_to_last():
    tasks = [_task("A", "todo", 0), _task("B", "todo", 1), _task("C", "todo", 2)]
    result = reorder_within_column(tasks, "todo", 0, 2)
    assert _titles(result, "todo") == ["B", "C", "A"]
    assert _orders(result, "todo") == [0, 1, 2]


def test_reorder_to_index_equal_to_length_appends():
    tasks = [_task("A", "todo", 0), _task("B", "todo", 1), _task("C", "todo", 2)]
    result = reorder_within_column(tasks, "todo", 0, 3)
    assert _titles(result, "todo") == ["B", "C", "A"]


def test_reorder_same_index_is_noop():
    tasks = [_task("A", "todo", 0), _task("B", "todo", 1)]
    assert reorder_within_column(tasks, "todo", 1, 1) == tasks


def test_reorder_out_of_range_is_noop():
    tasks = [_task("A", "todo", 0), _task("B", "todo", 1)]
    assert reorder_within_column(tasks, "todo", 2, 0) == tasks
    assert reorder_within_column(tasks, "todo", -1, 0) == tasks
    assert reorder_within_column(tasks, "todo", 0, 3) == tasks
    assert reorder_within_column(tasks, "missing", 0, 0) == tasks


def test_reorder_leaves_other_columns_untouched():
    tasks = [_task("A", "todo", 0), _task("B", "todo", 1), _task("X", "done", 0)]
    result = reorder_within_column(tasks, "todo", 1, 0)
    assert _titles(result, "todo") == ["B", "A"]
    assert [t for t in result if t.column_id == "done"] == [tasks[2]]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# move_across_columns
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_move_into_other_column_at_index():
    tasks = [
        _task("A", "todo", 0), _task("B", "todo", 1), _task("C", "todo", 2),
        _task("D", "doing", 0),
    ]
    now = T0 + timedelta(hours=1)
    result = move_across_columns(tasks, "B", "doing", 0, now=now)

    assert _titles(result, "todo") == ["A", "C"]
    assert _orders(result, "todo") == [0, 1]
    assert _titles(result, "doing") == ["B", "D"]
    assert _orders(result, "doing") == [0, 1]

    moved = next(t for t in result if t.id == "B")
    assert moved.column_id == "doing"
    assert moved.updated_at == now
    assert moved.created_at == T0


def test_move_clamps_target_index():
    tasks = [_task("A", "todo", 0), _task("D", "doing", 0)]
    high = move_across_columns(tasks, "A", "doing", 99)
    assert _titles(high, "doing") == ["D", "A"]
    low = move_across_columns(tasks, "A", "doing", -5)
    assert _titles(low, "doing") == ["A", "D"]


def test_move_into_empty_column():
    tasks = [_task("A", "todo", 0)]
    result = move_across_columns(tasks, "A", "done", 3)
    assert _titles(result, "done") == ["A"]
    assert _orders(result, "done") == [0]
    assert _titles(result, "todo") == []


def test_move_unknown_task_is_noop():
    tasks = [_task("A", "todo", 0)]
    assert move_across_columns(tasks, "nope", "done", 0) == tasks


def test_move_preserves_task_count():
    tasks = [_task("A", "todo", 0), _task("B", "todo", 1), _task("C", "done", 0)]
    result = move_across_columns(tasks, "C", "todo", 1)
    assert len(result) == len(tasks)


def test_move_within_same_column_degrades_to_reorder():
    tasks = [_task("A", "todo", 0), _task("B", "todo", 1), _task("C", "todo", 2)]
    result = move_across_columns(tasks, "A", "todo", 2)
    assert _titles(result, "todo") == ["B", "C", "A"]
    # positional change only; no timestamp refresh
    assert next(t for t in result if t.id == "A").updated_at == T0

    clamped = move_across_columns(tasks, "A", "todo", 50)
    assert _titles(clamped, "todo") == ["B", "C", "A"]

    same_spot = move_across_columns(tasks, "B", "todo", 1)
    assert same_spot == tasks


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Columns and invariants
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def test_normalize_columns_renumbers_by_previous_order():
    columns = [Column("c", "C", 5), Column("a", "A", 0), Column("b", "B", 2)]
    result = normalize_columns(columns)
    assert [(c.id, c.order) for c in result] == [("a", 0), ("b", 1), ("c", 2)]


def test_check_invariants_reports_violations():
    columns = [Column("todo", "To Do", 0), Column("done", "Done", 2)]
    tasks = [_task("A", "todo", 1), _task("B", "gone", 0)]
    problems = check_invariants(columns, tasks)
    assert any("column orders" in p for p in problems)
    assert any("missing column 'gone'" in p for p in problems)
    assert any("'todo' not dense" in p for p in problems)


def test_check_invariants_accepts_valid_board():
    columns = [Column("todo", "To Do", 0), Column("done", "Done", 1)]
    tasks = [_task("A", "todo", 0), _task("B", "todo", 1), _task("C", "done", 0)]
    assert check_invariants(columns, tasks) == []
