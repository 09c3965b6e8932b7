# chat_relay/history/repositories/sql_repo.py
from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from datetime import UTC, date, datetime, time, timedelta
from typing import Any

import aiosqlite

from chat_relay.history.exceptions import (
    BatchSaveError,
    DuplicateEmailError,
    InvalidBatchError,
    InvalidCredentialsError,
    PersistenceError,
)
from chat_relay.history.models import (
    ConversationRecord,
    TranscriptTurn,
    UserProfile,
    UserSummary,
)
from chat_relay.history.passwords import (
    MAX_PASSWORD_BYTES,
    hash_password,
    verify_password,
)
from chat_relay.history.repositories.base import (
    ConversationRepository,
    UserRepository,
)
from chat_relay.logging_utils import log_operation

logger = logging.getLogger(__name__)

ConversationRow = tuple[int, str, str | None, str | None, str]


class AsyncSqlRepo(UserRepository, ConversationRepository):
    """
    SQL implementation of the user and conversation repositories.
    Uses SQLite through one connection owned by the repository; swap aiosqlite
    with asyncpg or other drivers when moving to another database.
    """

    def __init__(self, db_path: str = "chat.db", *, clear_on_startup: bool = False):
        self.db_path = db_path
        self.clear_on_startup = clear_on_startup
        self._init_lock = asyncio.Lock()
        self._initialized = False
        self._connection_lock = asyncio.Lock()  # Serialize database access
        self._connection: aiosqlite.Connection | None = None

    async def _initialize(self) -> None:
        """
        Lazily open the connection and create tables on first use.
        """
        if self._initialized:
            return
        async with self._init_lock:
            if self._initialized:
                return

            self._connection = await aiosqlite.connect(self.db_path)
            self._connection.row_factory = aiosqlite.Row

            await self._connection.execute("PRAGMA journal_mode=WAL")
            await self._connection.execute("PRAGMA synchronous=NORMAL")
            await self._connection.execute("PRAGMA foreign_keys=ON")
            # 30 second timeout
            await self._connection.execute("PRAGMA busy_timeout=30000")

            await self._connection.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    user_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    email TEXT NOT NULL UNIQUE COLLATE NOCASE,
                    password_hash TEXT NOT NULL,
                    first_name TEXT,
                    last_name TEXT,
                    gender TEXT,
                    grade_level TEXT,
                    dob TEXT
                )
            """)
            await self._connection.execute("""
                CREATE TABLE IF NOT EXISTS conversations (
                    chat_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL
                        REFERENCES users(user_id) ON DELETE CASCADE,
                    session_id TEXT NOT NULL,
                    user_message TEXT,
                    ai_message TEXT,
                    timestamp TEXT NOT NULL,
                    CHECK (user_message IS NOT NULL OR ai_message IS NOT NULL)
                )
            """)
            await self._connection.execute("""
                CREATE INDEX IF NOT EXISTS idx_conversations_user_session
                ON conversations(user_id, session_id, timestamp)
            """)
            await self._connection.execute("""
                CREATE INDEX IF NOT EXISTS idx_conversations_timestamp
                ON conversations(timestamp)
            """)
            await self._connection.commit()

            self._initialized = True
            logger.info(f"Opened chat database at {self.db_path}")

            if self.clear_on_startup:
                await self.clear_all()

    def _require_connection(self) -> aiosqlite.Connection:
        if not self._connection:
            raise PersistenceError("Database connection not available")
        return self._connection

    async def close(self) -> None:
        """
        Close the database connection.
        """
        if self._connection:
            await self._connection.close()
            self._connection = None
            self._initialized = False

    async def __aenter__(self) -> AsyncSqlRepo:
        """Async context manager entry."""
        await self._initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    async def clear_all(self) -> None:
        """Delete every user and conversation row."""
        await self._initialize()
        connection = self._require_connection()

        async with self._connection_lock:
            await connection.execute("DELETE FROM conversations")
            await connection.execute("DELETE FROM users")
            await connection.commit()
        logger.info("Cleared all users and conversation history")

    # ------------------------------------------------------------------ #
    # Users                                                              #
    # ------------------------------------------------------------------ #

    @log_operation("register_user", table="users")
    async def register_user(
        self, email: str, password: str, profile: UserProfile
    ) -> int:
        await self._initialize()
        connection = self._require_connection()

        # bcrypt is CPU bound
        password_hash = await asyncio.to_thread(hash_password, password)

        async with self._connection_lock:
            try:
                cursor = await connection.execute("""
                    INSERT INTO users (
                        email, password_hash, first_name, last_name, gender,
                        grade_level, dob
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """, (
                    email.strip(),
                    password_hash,
                    profile.first_name,
                    profile.last_name,
                    profile.gender,
                    profile.grade_level,
                    profile.dob.isoformat() if profile.dob else None,
                ))
                await connection.commit()
            except aiosqlite.IntegrityError as e:
                await connection.rollback()
                raise DuplicateEmailError(email) from e
            except aiosqlite.Error as e:
                await connection.rollback()
                raise PersistenceError("Failed to register user.", str(e)) from e

        user_id = cursor.lastrowid
        if user_id is None:
            raise PersistenceError("Failed to register user.")
        return user_id

    async def authenticate(self, email: str, password: str) -> int:
        await self._initialize()
        connection = self._require_connection()

        async with self._connection_lock:
            cursor = await connection.execute(
                "SELECT user_id, password_hash FROM users WHERE email = ?",
                (email.strip(),)
            )
            row = await cursor.fetchone()
            await cursor.close()

        if row is None or len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise InvalidCredentialsError()

        matches = await asyncio.to_thread(
            verify_password, password, row["password_hash"]
        )
        if not matches:
            raise InvalidCredentialsError()
        return row["user_id"]

    async def list_users(self) -> list[UserSummary]:
        await self._initialize()
        connection = self._require_connection()

        async with self._connection_lock:
            cursor = await connection.execute("""
                SELECT user_id, first_name, last_name, gender, grade_level
                FROM users ORDER BY user_id
            """)
            rows = await cursor.fetchall()
            await cursor.close()
        return [UserSummary.model_validate(dict(row)) for row in rows]

    # ------------------------------------------------------------------ #
    # Conversations                                                      #
    # ------------------------------------------------------------------ #

    def _build_rows(
        self, user_id: int, session_id: str, turns: Sequence[TranscriptTurn]
    ) -> list[ConversationRow]:
        """Turn transcript turns into insert rows, skipping blank content."""
        timestamp = datetime.now(UTC).isoformat()
        rows: list[ConversationRow] = []
        for turn in turns:
            if turn.content is None or not turn.content.strip():
                logger.warning(
                    f"Skipping {turn.role} turn with empty content in "
                    f"session {session_id}"
                )
                continue
            user_message = turn.content if turn.role == "user" else None
            ai_message = turn.content if turn.role == "assistant" else None
            rows.append((user_id, session_id, user_message, ai_message, timestamp))
        return rows

    @log_operation("save_conversation_batch", table="conversations")
    async def save_conversation_batch(
        self, user_id: int, session_id: str, turns: Sequence[TranscriptTurn]
    ) -> int:
        await self._initialize()
        connection = self._require_connection()

        if not session_id:
            raise InvalidBatchError("A conversation id is required.")

        rows = self._build_rows(user_id, session_id, turns)
        if not rows:
            raise InvalidBatchError("No messages with content to save.")

        async with self._connection_lock:
            try:
                for row in rows:
                    await connection.execute("""
                        INSERT INTO conversations (
                            user_id, session_id, user_message, ai_message,
                            timestamp
                        ) VALUES (?, ?, ?, ?, ?)
                    """, row)
                await connection.commit()
            except aiosqlite.Error as e:
                await connection.rollback()
                logger.error(
                    f"Saving session {session_id} for user {user_id} failed, "
                    f"transaction rolled back: {e}"
                )
                raise BatchSaveError(str(e)) from e

        return len(rows)

    async def list_conversations_by_user(
        self, user_id: int
    ) -> list[ConversationRecord]:
        await self._initialize()
        connection = self._require_connection()

        async with self._connection_lock:
            cursor = await connection.execute("""
                SELECT chat_id, user_id, session_id, user_message, ai_message,
                       timestamp
                FROM conversations
                WHERE user_id = ?
                ORDER BY session_id ASC, timestamp ASC, chat_id ASC
            """, (user_id,))
            rows = await cursor.fetchall()
            await cursor.close()
        return [ConversationRecord.model_validate(dict(row)) for row in rows]

    async def list_conversations_by_filters(
        self,
        user_id: int | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[ConversationRecord]:
        await self._initialize()
        connection = self._require_connection()

        query = """
            SELECT c.chat_id, c.user_id, u.first_name, u.last_name,
                   c.session_id, c.user_message, c.ai_message, c.timestamp
            FROM conversations c
            JOIN users u ON c.user_id = u.user_id
            WHERE 1=1
        """
        params: list[Any] = []

        if user_id is not None:
            query += " AND c.user_id = ?"
            params.append(user_id)
        if start_date is not None:
            query += " AND c.timestamp >= ?"
            params.append(_day_start(start_date))
        if end_date is not None:
            # Exclusive bound at the start of the following day
            query += " AND c.timestamp < ?"
            params.append(_day_start(end_date + timedelta(days=1)))

        query += " ORDER BY c.timestamp DESC, c.chat_id DESC"

        async with self._connection_lock:
            cursor = await connection.execute(query, params)
            rows = await cursor.fetchall()
            await cursor.close()
        return [ConversationRecord.model_validate(dict(row)) for row in rows]


def _day_start(day: date) -> str:
    return datetime.combine(day, time.min, tzinfo=UTC).isoformat()
