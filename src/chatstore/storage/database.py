# Copyright (c) EGOGE - All Rights Reserved.
# This software may be used and distributed according to the terms of the MIT license.

"""SQLite connection manager with tuning, schema initialization and statements."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Union

from chatstore.domain.exceptions import (
    BusyError,
    ConstraintError,
    NotOpenError,
    OpenError,
    StorageError,
)

logger = logging.getLogger(__name__)


DEFAULT_PRAGMAS: List[str] = [
    "journal_mode = WAL",
    "synchronous = NORMAL",
    "cache_size = -2000",  # negative = KiB, ~2MB
    "busy_timeout = 5000",  # ms
]

# DELETE ... RETURNING landed in SQLite 3.35.0
_RETURNING_MIN_VERSION = (3, 35, 0)

# Stay well under SQLITE_MAX_VARIABLE_NUMBER (999 on old builds)
MAX_BOUND_PARAMS = 500

_SCHEMA_STATEMENTS = (
    """CREATE TABLE IF NOT EXISTS chats (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        creatorID TEXT NOT NULL,
        createdAt INTEGER NOT NULL
    )""",
    """CREATE INDEX IF NOT EXISTS idx_chats_creator_createdAt
        ON chats(creatorID, createdAt)""",
    """CREATE TABLE IF NOT EXISTS messages (
        id TEXT PRIMARY KEY,
        chatID TEXT NOT NULL,
        senderID TEXT NOT NULL,
        replyTo TEXT,
        threadID TEXT,
        scene TEXT,
        step TEXT,
        body TEXT NOT NULL, -- JSON
        replyRestriction TEXT, -- JSON
        createdAt INTEGER NOT NULL
    )""",
    """CREATE INDEX IF NOT EXISTS idx_messages_chat_createdAt
        ON messages(chatID, createdAt DESC, id DESC)""",
    """CREATE TABLE IF NOT EXISTS confirmed_steps (
        id TEXT PRIMARY KEY,
        threadID TEXT NOT NULL,
        messageID TEXT NOT NULL,
        scene TEXT NOT NULL,
        step TEXT NOT NULL,
        createdAt INTEGER NOT NULL
    )""",
    """CREATE INDEX IF NOT EXISTS idx_confirmed_steps_thread_createdAt
        ON confirmed_steps(threadID, createdAt)""",
    """CREATE TABLE IF NOT EXISTS files (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        size INTEGER NOT NULL,
        mimeType TEXT NOT NULL,
        createdAt INTEGER NOT NULL
    )""",
    """CREATE INDEX IF NOT EXISTS idx_files_createdAt ON files(createdAt)""",
)


@dataclass(frozen=True)
class Statements:
    """Named SQL statements used by the stores.

    sqlite3 compiles each statement once per connection and keeps it in the
    connection's statement cache, so a ``Statements`` instance is only valid
    for the connection it was built for.
    """

    # chats
    add_chat: str = "INSERT INTO chats (id, name, creatorID, createdAt) VALUES (?, ?, ?, ?)"
    get_chat_by_id: str = "SELECT * FROM chats WHERE id = ?"
    get_chats_by_creator_id: str = (
        "SELECT * FROM chats WHERE creatorID = ? ORDER BY createdAt DESC LIMIT ? OFFSET ?"
    )
    count_chats_by_creator_id: str = "SELECT COUNT(1) AS c FROM chats WHERE creatorID = ?"
    edit_chat_by_id: str = (
        "UPDATE chats SET name = coalesce(?, name), creatorID = coalesce(?, creatorID), "
        "createdAt = coalesce(?, createdAt) WHERE id = ?"
    )
    delete_chat_by_id: str = "DELETE FROM chats WHERE id = ?"
    delete_chat_returning: Optional[str] = None

    # messages
    add_message: str = (
        "INSERT INTO messages (id, chatID, senderID, replyTo, threadID, scene, step, "
        "body, replyRestriction, createdAt) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)"
    )
    get_message_by_id: str = "SELECT * FROM messages WHERE id = ?"
    get_messages_by_chat_id: str = (
        "SELECT * FROM messages WHERE chatID = ? "
        "ORDER BY createdAt DESC, id DESC LIMIT ? OFFSET ?"
    )
    delete_old_messages: str = "DELETE FROM messages WHERE createdAt < ?"
    delete_messages_by_chat_id: str = "DELETE FROM messages WHERE chatID = ?"

    # confirmed steps
    add_confirmed_step: str = (
        "INSERT INTO confirmed_steps (id, threadID, messageID, scene, step, createdAt) "
        "VALUES (?, ?, ?, ?, ?, ?)"
    )
    get_confirmed_steps_by_thread_id: str = (
        "SELECT * FROM confirmed_steps WHERE threadID = ? ORDER BY createdAt DESC"
    )
    delete_old_confirmed_steps: str = "DELETE FROM confirmed_steps WHERE createdAt < ?"

    # files
    add_file: str = (
        "INSERT INTO files (id, name, size, mimeType, createdAt) VALUES (?, ?, ?, ?, ?)"
    )
    get_file_by_id: str = "SELECT * FROM files WHERE id = ?"
    delete_file_by_id: str = "DELETE FROM files WHERE id = ?"
    delete_file_returning: Optional[str] = None
    select_old_file_ids: str = "SELECT id FROM files WHERE createdAt < ?"
    delete_old_files_returning: Optional[str] = None

    @property
    def supports_returning(self) -> bool:
        return self.delete_chat_returning is not None

    @classmethod
    def build(cls, use_returning: bool) -> "Statements":
        """Build the statement set for an engine with or without RETURNING."""
        stmts = cls()
        if not use_returning:
            return stmts
        return replace(
            stmts,
            delete_chat_returning=(
                "DELETE FROM chats WHERE id = ? RETURNING id, name, creatorID, createdAt"
            ),
            delete_file_returning=(
                "DELETE FROM files WHERE id = ? "
                "RETURNING id, name, size, mimeType, createdAt"
            ),
            delete_old_files_returning="DELETE FROM files WHERE createdAt < ? RETURNING id",
        )


def engine_supports_returning() -> bool:
    """Return True if the linked SQLite library understands DELETE ... RETURNING."""
    return sqlite3.sqlite_version_info >= _RETURNING_MIN_VERSION


def in_placeholders(count: int) -> str:
    """Return ``?, ?, ...`` with *count* placeholders for an IN (...) clause."""
    return ", ".join("?" * count)


def chunked(values: Sequence[str], size: int = MAX_BOUND_PARAMS) -> Iterator[Sequence[str]]:
    """Yield consecutive slices of *values* holding at most *size* items."""
    for start in range(0, len(values), size):
        yield values[start:start + size]


def translate_error(exc: sqlite3.Error) -> StorageError:
    """Map an engine exception onto the storage error hierarchy."""
    message = str(exc)
    if isinstance(exc, sqlite3.IntegrityError):
        return ConstraintError(message)
    errorname = getattr(exc, "sqlite_errorname", "") or ""
    if (
        errorname.startswith(("SQLITE_BUSY", "SQLITE_LOCKED"))
        or "database is locked" in message
        or "database table is locked" in message
    ):
        return BusyError(message)
    return StorageError(message)


def _is_special_path(db_path: str) -> bool:
    return db_path == ":memory:" or db_path == "" or db_path.startswith("file:")


class Database:
    """SQLite connection manager with tuning, schema and statements.

    Args:
        db_path: Path to the SQLite data file, ``":memory:"``, or a
            ``file:`` URI.
        pragmas: Tuning directives applied verbatim, in order, as
            ``PRAGMA <directive>``. None or empty uses DEFAULT_PRAGMAS.
        use_returning: Force the DELETE ... RETURNING capability on or
            off. None checks the linked SQLite version at open time.
    """

    def __init__(
        self,
        db_path: Union[str, Path],
        pragmas: Optional[Sequence[str]] = None,
        use_returning: Optional[bool] = None,
    ):
        self.db_path = str(db_path)
        self.pragmas: List[str] = list(pragmas) if pragmas else list(DEFAULT_PRAGMAS)
        self._use_returning = use_returning
        self._conn: Optional[sqlite3.Connection] = None
        self._statements: Optional[Statements] = None

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise NotOpenError(f"Database is not open: {self.db_path}")
        return self._conn

    @property
    def statements(self) -> Statements:
        if self._statements is None:
            raise NotOpenError(f"Database is not open: {self.db_path}")
        return self._statements

    @property
    def supports_returning(self) -> bool:
        return self.statements.supports_returning

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> None:
        """Connect, apply tuning directives and schema, and build statements.

        Calling it on an open database is a no-op.

        Raises:
            OpenError: The file cannot be created or opened, or a
                directive or schema statement fails.
        """
        if self._conn is not None:
            return

        conn = self._connect()
        try:
            for directive in self.pragmas:
                conn.execute(f"PRAGMA {directive}").fetchall()
            self._init_schema(conn)
        except sqlite3.Error as exc:
            conn.close()
            logger.warning("Failed to initialize %s: %s", self.db_path, exc)
            raise OpenError(f"Cannot initialize database {self.db_path}: {exc}") from exc

        use_returning = self._use_returning
        if use_returning is None:
            use_returning = engine_supports_returning()

        self._conn = conn
        self._statements = Statements.build(use_returning)
        logger.info(
            "Opened %s (%d directives, returning=%s)",
            self.db_path, len(self.pragmas), use_returning,
        )

    def _connect(self) -> sqlite3.Connection:
        try:
            if not _is_special_path(self.db_path):
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(
                self.db_path,
                isolation_level=None,
                check_same_thread=False,
                uri=self.db_path.startswith("file:"),
            )
        except (sqlite3.Error, OSError) as exc:
            logger.warning("Failed to open %s: %s", self.db_path, exc)
            raise OpenError(f"Cannot open database {self.db_path}: {exc}") from exc
        conn.row_factory = sqlite3.Row
        return conn

    @staticmethod
    def _init_schema(conn: sqlite3.Connection) -> None:
        """Create tables and indexes if they don't exist, all or nothing."""
        conn.execute("BEGIN IMMEDIATE")
        try:
            for sql in _SCHEMA_STATEMENTS:
                conn.execute(sql)
            conn.execute("COMMIT")
        except sqlite3.Error:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise

    def close(self) -> None:
        """Close the connection and drop its statements. No-op when closed."""
        if self._conn is None:
            return
        self._conn.close()
        self._conn = None
        self._statements = None
        logger.info("Closed %s", self.db_path)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    @contextmanager
    def translate_errors(self) -> Iterator[None]:
        """Re-raise engine exceptions as storage errors."""
        try:
            yield
        except sqlite3.Error as exc:
            raise translate_error(exc) from exc

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run the enclosed statements in one write transaction."""
        conn = self.connection
        with self.translate_errors():
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
                conn.execute("COMMIT")
            except BaseException:
                # also reached when COMMIT itself fails
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise

    def execute(self, sql: str, params: Sequence = ()) -> sqlite3.Cursor:
        """Execute a single statement. Outside a transaction it commits on its own."""
        conn = self.connection
        with self.translate_errors():
            return conn.execute(sql, params)

    def fetchone(self, sql: str, params: Sequence = ()) -> Optional[sqlite3.Row]:
        """Execute and return a single row."""
        conn = self.connection
        with self.translate_errors():
            return conn.execute(sql, params).fetchone()

    def fetchall(self, sql: str, params: Sequence = ()) -> List[sqlite3.Row]:
        """Execute and return all rows (also drains RETURNING clauses)."""
        conn = self.connection
        with self.translate_errors():
            return conn.execute(sql, params).fetchall()
