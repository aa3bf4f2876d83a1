"""
Tests for dashboard statistics.
"""
from datetime import date

from pkg.board.board import KanbanBoard
from pkg.board.schema import Column
from pkg.board.stats import board_stats, filter_tasks


TODAY = date(2025, 3, 10)


def _board():
    board = KanbanBoard.guest()
    board.add_task({"title": "late", "priority": "high", "dueDate": "2025-03-01"}, "todo")
    board.add_task({"title": "due", "priority": "low", "dueDate": "2025-03-10"}, "todo")
    board.add_task({"title": "working", "priority": "high"}, "in-progress")
    board.add_task({"title": "shipped", "priority": "high", "dueDate": "2025-01-01"}, "done")
    return board


def _titles(tasks):
    return sorted(t.title for t in tasks)


def test_board_stats_counts():
    stats = board_stats(_board(), TODAY)
    assert stats["totalCount"] == 4
    assert stats["completedCount"] == 1
    assert stats["pendingCount"] == 2
    assert stats["inProgressCount"] == 1
    assert stats["overdueCount"] == 1
    assert stats["dueTodayCount"] == 1
    assert stats["completionRate"] == 25
    assert stats["highPriorityCount"] == 2  # done tasks excluded
    assert stats["mediumPriorityCount"] == 0
    assert stats["lowPriorityCount"] == 1
    assert len(stats["recentTasks"]) == 4


def test_board_stats_empty_board():
    stats = board_stats(KanbanBoard.guest(), TODAY)
    assert stats["totalCount"] == 0
    assert stats["completionRate"] == 0
    assert stats["recentTasks"] == []


def test_recent_tasks_limited_to_five():
    board = KanbanBoard.guest()
    for i in range(8):
        board.add_task({"title": f"t{i}"})
    assert len(board_stats(board, TODAY)["recentTasks"]) == 5


def test_filter_tasks_by_kind():
    board = _board()
    assert _titles(filter_tasks(board, "completed", TODAY)) == ["shipped"]
    assert _titles(filter_tasks(board, "pending", TODAY)) == ["due", "late"]
    assert _titles(filter_tasks(board, "inprogress", TODAY)) == ["working"]
    assert _titles(filter_tasks(board, "overdue", TODAY)) == ["late"]
    assert _titles(filter_tasks(board, "today", TODAY)) == ["due"]
    assert _titles(filter_tasks(board, "high", TODAY)) == ["late", "working"]
    assert len(filter_tasks(board, "everything", TODAY)) == 4


def test_custom_board_uses_last_column_as_done():
    board = KanbanBoard(
        [Column("backlog", "Backlog", 0), Column("ship", "Shipped", 1)], [], owner=""
    )
    board.add_task({"title": "a"}, "backlog")
    board.add_task({"title": "b"}, "ship")
    stats = board_stats(board, TODAY)
    assert stats["completedCount"] == 1
    assert stats["pendingCount"] == 1
    assert stats["inProgressCount"] == 0


def test_stored_non_string_due_dates_are_dropped_on_load():
    board = KanbanBoard.from_records(
        None,
        [
            {"id": "1", "title": "number", "columnId": "todo", "dueDate": 20250101},
            {"id": "2", "title": "garbage", "columnId": "todo", "dueDate": "soon"},
            {"id": "3", "title": "valid", "columnId": "todo", "dueDate": "2025-03-01"},
        ],
    )
    assert [t.due_date for t in board.tasks] == [None, None, "2025-03-01"]
    stats = board_stats(board, TODAY)
    assert stats["overdueCount"] == 1
    assert _titles(filter_tasks(board, "overdue", TODAY)) == ["valid"]
