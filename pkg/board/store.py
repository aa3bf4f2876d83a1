"""
Board persistence backends.

Both stores keep one document per account holding that account's
{columns, tasks} pair and share the same contract:

    load(account)            -> record dict, or None for an unknown account
    save(account, snapshot)  -> None
    delete(account)          -> bool
    list_accounts()          -> list of account keys

Failures raise StoreError; nothing here swallows I/O errors.
"""
import json
import logging
import os
import sqlite3
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from .migration import empty_layout, migrate_legacy_layout, normalize_account
from .schema import BoardError, BoardSnapshot

logger = logging.getLogger(__name__)

DEFAULT_JSON_PATH = Path.home() / ".local" / "share" / "kanban-board" / "kanban.json"
DEFAULT_SQLITE_PATH = Path.home() / ".local" / "share" / "kanban-board" / "kanban.db"


class StoreError(BoardError):
    """Raised when a board cannot be read from or written to storage."""
    pass


# One lock per board file, shared by every JsonBoardStore on that path
_file_locks = {}
_file_locks_guard = threading.Lock()


def _lock_for(path: Path):
    key = str(path.resolve())
    with _file_locks_guard:
        return _file_locks.setdefault(key, threading.RLock())


def _account_key(account: str) -> str:
    key = normalize_account(account)
    if not key:
        raise StoreError("An account id is required to persist a board")
    return key


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# JSON file
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class JsonBoardStore:
    """All boards in one JSON file: {"version": 1, "users": {account: board}}.

    Every read-modify-write of the file holds a per-path lock, so saves
    for different accounts from different threads never drop each other.
    """

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path).expanduser() if path else DEFAULT_JSON_PATH
        self._lock = _lock_for(self.path)

    def _read(self) -> Dict[str, Any]:
        """Read the file, migrating (and rewriting) legacy layouts once."""
        if not self.path.exists():
            return empty_layout()
        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error(f"Error reading {self.path}: {e}")
            raise StoreError(f"Cannot read {self.path}: {e}") from e
        if not text.strip():
            return empty_layout()
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as e:
            logger.error(f"Corrupt board file {self.path}: {e}")
            raise StoreError(f"Corrupt board file {self.path}: {e}") from e

        layout, changed = migrate_legacy_layout(raw)
        if changed:
            logger.info(f"Rewriting {self.path} in the consolidated layout")
            self._write(layout)
        return layout

    def _write(self, layout: Dict[str, Any]) -> None:
        """Write via a temp file + rename so a crash never leaves half a file."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(layout, f, indent=2)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            logger.error(f"Error writing {self.path}: {e}")
            raise StoreError(f"Cannot write {self.path}: {e}") from e

    def load(self, account: str) -> Optional[Dict[str, Any]]:
        key = _account_key(account)
        with self._lock:
            board = self._read()["users"].get(key)
        return board if isinstance(board, dict) else None

    def save(self, account: str, snapshot: BoardSnapshot) -> None:
        key = _account_key(account)
        with self._lock:
            layout = self._read()
            layout["users"][key] = snapshot.to_dict()
            self._write(layout)

    def delete(self, account: str) -> bool:
        key = _account_key(account)
        with self._lock:
            layout = self._read()
            if layout["users"].pop(key, None) is None:
                return False
            self._write(layout)
        return True

    def list_accounts(self) -> List[str]:
        with self._lock:
            return sorted(self._read()["users"])


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# SQLite documents
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def _connect(db_path: str) -> sqlite3.Connection:
    """Open a connection in WAL mode."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode = WAL")
    return conn


class SqliteBoardStore:
    """SQLite-backed document store: one JSON board document per account."""

    def __init__(self, db_path: Optional[str] = None):
        """Initialize store and create tables if needed."""
        if db_path is None:
            db_path = str(DEFAULT_SQLITE_PATH)
        self.db_path = str(Path(db_path).expanduser())
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _init_schema(self):
        try:
            with _connect(self.db_path) as conn:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS boards (
                        account TEXT PRIMARY KEY,
                        document TEXT NOT NULL,  -- JSON {columns, tasks}
                        updated_at TEXT NOT NULL
                    )
                """)
                conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Error initializing {self.db_path}: {e}")
            raise StoreError(f"Cannot initialize {self.db_path}: {e}") from e

    def load(self, account: str) -> Optional[Dict[str, Any]]:
        key = _account_key(account)
        try:
            with _connect(self.db_path) as conn:
                row = conn.execute(
                    "SELECT document FROM boards WHERE account = ?", (key,)
                ).fetchone()
        except sqlite3.Error as e:
            logger.error(f"Error loading board for {key}: {e}")
            raise StoreError(f"Cannot load board for {key}: {e}") from e
        if not row:
            return None
        try:
            document = json.loads(row["document"])
        except json.JSONDecodeError as e:
            logger.error(f"Corrupt board document for {key}: {e}")
            raise StoreError(f"Corrupt board document for {key}: {e}") from e
        return document if isinstance(document, dict) else None

    def save(self, account: str, snapshot: BoardSnapshot) -> None:
        key = _account_key(account)
        now = datetime.now(timezone.utc).isoformat()
        try:
            with _connect(self.db_path) as conn:
                conn.execute("""
                    INSERT INTO boards (account, document, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(account) DO UPDATE SET
                        document=excluded.document, updated_at=excluded.updated_at
                """, (key, json.dumps(snapshot.to_dict()), now))
                conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Error saving board for {key}: {e}")
            raise StoreError(f"Cannot save board for {key}: {e}") from e

    def delete(self, account: str) -> bool:
        key = _account_key(account)
        try:
            with _connect(self.db_path) as conn:
                cursor = conn.execute("DELETE FROM boards WHERE account = ?", (key,))
                conn.commit()
                return cursor.rowcount > 0
        except sqlite3.Error as e:
            logger.error(f"Error deleting board for {key}: {e}")
            raise StoreError(f"Cannot delete board for {key}: {e}") from e

    def list_accounts(self) -> List[str]:
        try:
            with _connect(self.db_path) as conn:
                rows = conn.execute("SELECT account FROM boards ORDER BY account").fetchall()
        except sqlite3.Error as e:
            logger.error(f"Error listing boards: {e}")
            raise StoreError(f"Cannot list boards: {e}") from e
        return [row["account"] for row in rows]


STORES = {
    "json": JsonBoardStore,
    "sqlite": SqliteBoardStore,
}


def open_store(backend: str = "json", path: Optional[str] = None):
    """Build the store for a backend name ("json" or "sqlite")."""
    try:
        store_cls = STORES[backend.strip().lower()]
    except KeyError:
        raise StoreError(f"Unknown storage backend: {backend!r} (expected one of {sorted(STORES)})")
    return store_cls(path)
