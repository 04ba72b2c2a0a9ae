"""
SQLite-backed store for chat sessions and conversation turns.

This module is the persistence layer of the chat backend. It keeps two tables: `chat_sessions`,
one row per conversation with its running message counter and latest summary, and
`conversations`, one immutable row per completed turn. SQLite is an embedded, serverless
database engine, which keeps deployment to a single file on disk.

Every public method opens a short-lived connection and closes it before returning. The write
that records a turn increments the session counter and inserts the turn row inside one
transaction, so a crash can never leave the counter and the history out of step.
"""

from __future__ import annotations

import datetime as _dt
import logging
import sqlite3
from pathlib import Path
from typing import List, Optional, Tuple

from shared.models import ChatSession, ConversationTurn

logger = logging.getLogger(__name__)


class SessionNotFoundError(LookupError):
    """No chat session exists with the requested id."""

    def __init__(self, session_id: int):
        self.session_id = session_id
        super().__init__(f"Chat session {session_id} not found")


def _now_iso() -> str:
    return _dt.datetime.now(_dt.timezone.utc).isoformat()


def _row_to_session(row: sqlite3.Row) -> ChatSession:
    return ChatSession(
        id=row["id"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        is_active=bool(row["is_active"]),
        message_count=row["message_count"],
        conversation_summary=row["conversation_summary"],
    )


def _row_to_turn(row: sqlite3.Row) -> ConversationTurn:
    return ConversationTurn(
        id=row["id"],
        session_id=row["chat_session_id"],
        message=row["message"],
        response=row["response"],
        context=row["context"],
        timestamp=row["timestamp"],
    )


class SessionStore:
    """
    Session and turn persistence on a single SQLite file.

    Args:
        db_path (str): Filesystem path to the database file. Parent directories are created.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self.init_db()

    def _connect(self) -> sqlite3.Connection:
        con = sqlite3.connect(self.db_path)
        con.row_factory = sqlite3.Row
        con.execute("PRAGMA foreign_keys = ON")
        return con

    def init_db(self) -> None:
        """
        Create the database file and both tables if they do not exist yet.

        Errors propagate to the caller; the application cannot run without its store.
        """
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        con = self._connect()
        try:
            con.executescript(
                """
                CREATE TABLE IF NOT EXISTS chat_sessions (
                    id                   INTEGER PRIMARY KEY AUTOINCREMENT,
                    created_at           TEXT NOT NULL,
                    updated_at           TEXT NOT NULL,
                    is_active            INTEGER NOT NULL DEFAULT 1,
                    conversation_summary TEXT,
                    message_count        INTEGER NOT NULL DEFAULT 0
                );
                CREATE TABLE IF NOT EXISTS conversations (
                    id              INTEGER PRIMARY KEY AUTOINCREMENT,
                    chat_session_id INTEGER NOT NULL REFERENCES chat_sessions(id),
                    message         TEXT NOT NULL,
                    response        TEXT NOT NULL,
                    context         TEXT,
                    timestamp       TEXT NOT NULL
                );
                CREATE INDEX IF NOT EXISTS idx_conversations_session
                    ON conversations (chat_session_id, id);
                """
            )
            con.commit()
        finally:
            con.close()

    # --- sessions ---

    def create_session(self) -> ChatSession:
        now = _now_iso()
        con = self._connect()
        try:
            cur = con.execute(
                "INSERT INTO chat_sessions (created_at, updated_at) VALUES (?, ?)",
                (now, now),
            )
            con.commit()
            session_id = cur.lastrowid
        finally:
            con.close()
        logger.info(f"[SessionStore] Created chat session {session_id}")
        return self.get_session(session_id)

    def get_session(self, session_id: int) -> Optional[ChatSession]:
        con = self._connect()
        try:
            row = con.execute("SELECT * FROM chat_sessions WHERE id = ?", (session_id,)).fetchone()
        finally:
            con.close()
        return _row_to_session(row) if row else None

    def require_session(self, session_id: int) -> ChatSession:
        """Like `get_session` but raises `SessionNotFoundError` instead of returning None."""
        session = self.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def list_sessions(self) -> List[ChatSession]:
        """All sessions, most recently updated first."""
        con = self._connect()
        try:
            rows = con.execute("SELECT * FROM chat_sessions ORDER BY updated_at DESC, id DESC").fetchall()
        finally:
            con.close()
        return [_row_to_session(row) for row in rows]

    def update_summary(self, session_id: int, summary_json: str) -> None:
        """Overwrite the stored summary. The previous summary is discarded."""
        con = self._connect()
        try:
            cur = con.execute(
                "UPDATE chat_sessions SET conversation_summary = ?, updated_at = ? WHERE id = ?",
                (summary_json, _now_iso(), session_id),
            )
            con.commit()
            updated = cur.rowcount
        finally:
            con.close()
        if updated == 0:
            raise SessionNotFoundError(session_id)

    def increment_message_count(self, session_id: int) -> int:
        """Increment the session counter on its own and return the new value."""
        con = self._connect()
        try:
            with con:
                count = self._increment(con, session_id)
        finally:
            con.close()
        return count

    @staticmethod
    def _increment(con: sqlite3.Connection, session_id: int) -> int:
        cur = con.execute(
            "UPDATE chat_sessions SET message_count = message_count + 1, updated_at = ? WHERE id = ?",
            (_now_iso(), session_id),
        )
        if cur.rowcount == 0:
            raise SessionNotFoundError(session_id)
        return con.execute(
            "SELECT message_count FROM chat_sessions WHERE id = ?", (session_id,)
        ).fetchone()["message_count"]

    # --- turns ---

    def create_turn(self, session_id: int, message: str, response: str, context: Optional[str] = None) -> ConversationTurn:
        """Insert a turn row without touching the session counter."""
        con = self._connect()
        try:
            with con:
                turn = self._insert_turn(con, session_id, message, response, context)
        finally:
            con.close()
        return turn

    @staticmethod
    def _insert_turn(
        con: sqlite3.Connection, session_id: int, message: str, response: str, context: Optional[str]
    ) -> ConversationTurn:
        now = _now_iso()
        cur = con.execute(
            "INSERT INTO conversations (chat_session_id, message, response, context, timestamp) "
            "VALUES (?, ?, ?, ?, ?)",
            (session_id, message, response, context, now),
        )
        return ConversationTurn(
            id=cur.lastrowid,
            session_id=session_id,
            message=message,
            response=response,
            context=context,
            timestamp=now,
        )

    def record_turn(
        self, session_id: int, message: str, response: str, context: Optional[str] = None
    ) -> Tuple[ConversationTurn, int]:
        """
        Atomically increment the session counter and insert the turn.

        Both writes share one transaction: either the counter moves and the turn exists, or
        neither happens.

        Returns:
            Tuple[ConversationTurn, int]: The stored turn and the session's new message count.

        Raises:
            SessionNotFoundError: The session does not exist; nothing is written.
        """
        con = self._connect()
        try:
            with con:
                count = self._increment(con, session_id)
                turn = self._insert_turn(con, session_id, message, response, context)
        finally:
            con.close()
        logger.info(f"[SessionStore] Recorded turn {turn.id} for session {session_id} (message_count={count})")
        return turn, count

    def list_turns(self, session_id: int, order: str = "ASC", limit: Optional[int] = None) -> List[ConversationTurn]:
        """
        Turns of one session ordered by insertion.

        Args:
            session_id (int): Session id.
            order (str): "ASC" (oldest first) or "DESC" (newest first).
            limit (Optional[int]): Maximum number of rows.
        """
        direction = "DESC" if str(order).upper() == "DESC" else "ASC"
        query = f"SELECT * FROM conversations WHERE chat_session_id = ? ORDER BY id {direction}"
        params: tuple = (session_id,)
        if limit is not None:
            query += " LIMIT ?"
            params = (session_id, int(limit))
        con = self._connect()
        try:
            rows = con.execute(query, params).fetchall()
        finally:
            con.close()
        return [_row_to_turn(row) for row in rows]

    def recent_turns(self, session_id: int, n: int) -> List[ConversationTurn]:
        """The last `n` turns in chronological order."""
        if n <= 0:
            return []
        return list(reversed(self.list_turns(session_id, order="DESC", limit=n)))
