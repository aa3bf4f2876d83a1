"""Shared test fixtures for the Kanban board tests."""

import sys
from pathlib import Path

import pytest

# Ensure the project root (pkg/, board_server.py) is importable
sys.path.insert(0, str(Path(__file__).parent.parent))

from pkg.board.board import KanbanBoard
from pkg.board.schema import Column


@pytest.fixture
def three_columns():
    return [
        Column(id="todo", title="To Do", order=0),
        Column(id="doing", title="Doing", order=1),
        Column(id="done", title="Done", order=2),
    ]


@pytest.fixture
def board(three_columns):
    """Unsaved board with todo/doing/done columns and no tasks."""
    return KanbanBoard(three_columns, [], owner="alice@example.com")
