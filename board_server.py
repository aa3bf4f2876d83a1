#!/usr/bin/env python3
"""
Kanban Board Server
-------------------
JSON API over the board package. Every route loads the caller's board,
applies one operation through KanbanBoard, and the board saves itself
through the configured store.

Usage:
    python board_server.py --port 3000 --db ~/kanban.json

Identity:
    The caller's account id comes from the X-Kanban-User header (or the
    ?user= query parameter). It is trusted as-is; requests without one
    share an in-memory guest board that is never persisted.

API:
    GET    /api/board                      → { columns, tasks, owner, guest }
    POST   /api/board/reset                → default columns, no tasks
    POST   /api/tasks                      → { title, description?, priority?, columnId?, dueDate? }
    PUT    /api/tasks/<id>                 → partial task fields
    DELETE /api/tasks/<id>
    POST   /api/tasks/<id>/move            → { columnId, index }
    POST   /api/columns                    → { title }
    PUT    /api/columns/<id>               → { title }
    DELETE /api/columns/<id>
    POST   /api/columns/<id>/reorder       → { fromIndex, toIndex }
    GET    /api/dashboard/stats
    GET    /api/dashboard/tasks?type=...
    GET    /health
"""

import logging
import os
import sys
from typing import Any, Optional

from flask import Flask, jsonify, request

from pkg.board.board import KanbanBoard, open_board
from pkg.board.config import BoardConfig, ConfigError
from pkg.board.schema import BoardValidationError
from pkg.board.stats import board_stats, filter_tasks
from pkg.board.store import StoreError, open_store

app = Flask(__name__)

logger = logging.getLogger("board_server")

_guest_board: Optional[KanbanBoard] = None


# ── Config ───────────────────────────────────────────────────────────────────

def get_config() -> BoardConfig:
    return BoardConfig.load()


def get_store():
    cfg = get_config()
    return open_store(cfg.storage, cfg.data_path or None)


def get_account() -> str:
    account = request.headers.get("X-Kanban-User") or request.args.get("user") or ""
    return account.strip()


def load_board() -> KanbanBoard:
    """The caller's board, or the process-wide guest board."""
    global _guest_board
    account = get_account()
    if not account:
        if _guest_board is None:
            _guest_board = KanbanBoard.guest()
        return _guest_board
    return open_board(get_store(), account)


def reset_guest_board() -> None:
    global _guest_board
    _guest_board = None


def _body() -> dict:
    data = request.get_json(force=True, silent=True)
    return data if isinstance(data, dict) else {}


def _int_arg(data: dict, *names: str) -> Optional[int]:
    for name in names:
        if name in data:
            try:
                return int(data[name])
            except (TypeError, ValueError):
                return None
    return None


def _result(board: KanbanBoard, **extra: Any):
    payload = {"board": board.to_dict()}
    payload.update(extra)
    return jsonify(payload)


# ── Errors ───────────────────────────────────────────────────────────────────

@app.errorhandler(BoardValidationError)
def handle_validation_error(e):
    return jsonify({"error": str(e)}), 400


@app.errorhandler(StoreError)
def handle_store_error(e):
    app.logger.error(f"Storage failure: {e}")
    return jsonify({"error": "Failed to persist board", "detail": str(e)}), 500


@app.errorhandler(ConfigError)
def handle_config_error(e):
    app.logger.error(f"Configuration error: {e}")
    return jsonify({"error": str(e)}), 500


# ── Board ────────────────────────────────────────────────────────────────────

@app.route("/api/board", methods=["GET"])
def api_board():
    return jsonify(load_board().to_dict())


@app.route("/api/board/reset", methods=["POST"])
def api_board_reset():
    board = load_board()
    board.reset()
    return _result(board)


# ── Tasks ────────────────────────────────────────────────────────────────────

@app.route("/api/tasks", methods=["POST"])
def api_create_task():
    data = _body()
    board = load_board()
    task = board.add_task(data, column_id=data.get("columnId"))
    return _result(board, task=task.to_dict()), 201


@app.route("/api/tasks/<task_id>", methods=["PUT"])
def api_update_task(task_id):
    board = load_board()
    task = board.update_task(task_id, _body())
    if task is None:
        return jsonify({"error": "Task not found", "board": board.to_dict()}), 404
    return _result(board, task=task.to_dict())


@app.route("/api/tasks/<task_id>", methods=["DELETE"])
def api_delete_task(task_id):
    board = load_board()
    deleted = board.delete_task(task_id)
    return _result(board, deleted=deleted)


@app.route("/api/tasks/<task_id>/move", methods=["POST"])
def api_move_task(task_id):
    data = _body()
    column_id = str(data.get("columnId") or "").strip()
    index = _int_arg(data, "index", "targetIndex")
    if not column_id or index is None:
        return jsonify({"error": "columnId and integer index are required"}), 400
    board = load_board()
    moved = board.move_across_columns(task_id, column_id, index)
    return _result(board, applied=moved)


# ── Columns ──────────────────────────────────────────────────────────────────

@app.route("/api/columns", methods=["POST"])
def api_create_column():
    board = load_board()
    column = board.add_column(_body().get("title"))
    return _result(board, column=column.to_dict()), 201


@app.route("/api/columns/<column_id>", methods=["PUT"])
def api_rename_column(column_id):
    board = load_board()
    column = board.rename_column(column_id, _body().get("title"))
    if column is None:
        return jsonify({"error": "Column not found", "board": board.to_dict()}), 404
    return _result(board, column=column.to_dict())


@app.route("/api/columns/<column_id>", methods=["DELETE"])
def api_delete_column(column_id):
    board = load_board()
    deleted = board.delete_column(column_id)
    return _result(board, deleted=deleted)


@app.route("/api/columns/<column_id>/reorder", methods=["POST"])
def api_reorder_column(column_id):
    data = _body()
    from_index = _int_arg(data, "fromIndex", "previousIndex")
    to_index = _int_arg(data, "toIndex", "currentIndex")
    if from_index is None or to_index is None:
        return jsonify({"error": "integer fromIndex and toIndex are required"}), 400
    board = load_board()
    applied = board.reorder_within_column(column_id, from_index, to_index)
    return _result(board, applied=applied)


# ── Dashboard ────────────────────────────────────────────────────────────────

@app.route("/api/dashboard/stats")
def api_dashboard_stats():
    return jsonify(board_stats(load_board()))


@app.route("/api/dashboard/tasks")
def api_dashboard_tasks():
    kind = request.args.get("type", "").strip().lower()
    if not kind:
        return jsonify({"error": "type is required"}), 400
    tasks = filter_tasks(load_board(), kind)
    return jsonify({"tasks": [t.to_dict() for t in tasks], "count": len(tasks)})


@app.route("/health")
def health():
    cfg = get_config()
    return jsonify({"status": "ok", "storage": cfg.storage, "data_path": cfg.data_path})


# ── Main ─────────────────────────────────────────────────────────────────────

if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Kanban Board Server")
    parser.add_argument("--host", help="Bind address (use 0.0.0.0 to expose on network)")
    parser.add_argument("--port", type=int)
    parser.add_argument("--db", help="Path to the board file (overrides KANBAN_DB env var)")
    parser.add_argument("--storage", choices=("json", "sqlite"),
                        help="Storage backend (overrides KANBAN_STORAGE env var)")
    parser.add_argument("--config", help="Path to board.yaml (overrides KANBAN_CONFIG env var)")
    args = parser.parse_args()

    if args.config:
        os.environ["KANBAN_CONFIG"] = args.config
    if args.db:
        os.environ["KANBAN_DB"] = args.db
    if args.storage:
        os.environ["KANBAN_STORAGE"] = args.storage

    cfg = get_config()
    logging.basicConfig(
        level=getattr(logging, cfg.log_level),
        format="%(asctime)s [kanban] %(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    host = args.host or cfg.host
    port = args.port or cfg.port
    store = open_store(cfg.storage, cfg.data_path or None)
    logger.info(f"Kanban board server on http://{host}:{port} ({cfg.storage} store)")
    logger.info(f"Boards on disk: {len(store.list_accounts())}")
    app.run(host=host, port=port, debug=False, threaded=True)
