"""Recorded conversation sessions and their messages"""
import logging
from typing import List, Optional

import aiosqlite

from nia.core.db import Store
from nia.core.exception import ValidationError
from nia.core.type import (
    Message,
    NewMessage,
    NewSession,
    Session,
    SessionDetail,
    SessionStats,
)

logger = logging.getLogger(__name__)

_SESSION_COLUMNS = (
    "start_time", "end_time", "duration_seconds", "model",
    "input_audio_tokens", "output_audio_tokens",
    "input_text_tokens", "output_text_tokens",
    "total_cost", "mic_device", "speaker_device",
)


def _row_to_session(row: aiosqlite.Row) -> Session:
    return Session(**{key: row[key] for key in row.keys()})


def _row_to_message(row: aiosqlite.Row) -> Message:
    return Message(**{key: row[key] for key in row.keys()})


def _check_duration(session: NewSession):
    # start_time and end_time are epoch milliseconds
    elapsed = (session.end_time - session.start_time) // 1000
    if session.duration_seconds != elapsed:
        raise ValidationError(
            f"duration_seconds={session.duration_seconds} does not match "
            f"the {elapsed}s between start_time and end_time"
        )


async def _insert_message(
    conn: aiosqlite.Connection,
    session_id: int,
    message: NewMessage
) -> int:
    cursor = await conn.execute(
        "INSERT INTO messages (session_id, speaker, text, timestamp) \
            VALUES (?, ?, ?, ?)",
        (session_id, message.speaker, message.text, message.timestamp)
    )
    return cursor.lastrowid


async def save_session(
    store: Store,
    session: NewSession,
    messages: List[NewMessage]
) -> int:
    """
    Persist a finished session together with its transcript.

    The session row and every message are written in one transaction; a
    rejected message (e.g. an unknown speaker) leaves nothing behind.

    Returns:
        The id of the new session

    Raises:
        ValidationError: duration_seconds disagrees with the time span
        aiosqlite.IntegrityError: A message violates a table constraint
    """
    _check_duration(session)
    placeholders = ", ".join("?" for _ in _SESSION_COLUMNS)
    async with store.connection() as conn:
        await conn.execute("BEGIN")
        try:
            cursor = await conn.execute(
                f"INSERT INTO sessions ({', '.join(_SESSION_COLUMNS)}) \
                    VALUES ({placeholders})",
                tuple(getattr(session, column) for column in _SESSION_COLUMNS)
            )
            session_id = cursor.lastrowid
            for message in messages:
                await _insert_message(conn, session_id, message)
            await conn.execute("COMMIT")
        except Exception:
            if conn.in_transaction:
                await conn.execute("ROLLBACK")
            raise

    logger.info(
        f"Saved session {session_id} with {len(messages)} message(s)"
    )
    return session_id


async def add_message(
    store: Store,
    session_id: int,
    message: NewMessage
) -> int:
    async with store.connection() as conn:
        return await _insert_message(conn, session_id, message)


async def list_sessions(
    store: Store,
    limit: Optional[int] = None
) -> List[Session]:
    """Most recent sessions first"""
    query = "SELECT * FROM sessions ORDER BY created_at DESC, id DESC"
    params: tuple = ()
    if limit is not None:
        query += " LIMIT ?"
        params = (limit,)
    async with store.connection() as conn:
        result = await conn.execute(query, params)
        rows = await result.fetchall()
        return [_row_to_session(row) for row in rows]


async def get_session(store: Store, session_id: int) -> Optional[Session]:
    async with store.connection() as conn:
        result = await conn.execute(
            "SELECT * FROM sessions WHERE id = ?",
            (session_id,)
        )
        row = await result.fetchone()
        if row:
            return _row_to_session(row)
        return None


async def list_messages(store: Store, session_id: int) -> List[Message]:
    async with store.connection() as conn:
        result = await conn.execute(
            "SELECT * FROM messages WHERE session_id = ? \
                ORDER BY timestamp ASC, id ASC",
            (session_id,)
        )
        rows = await result.fetchall()
        return [_row_to_message(row) for row in rows]


async def get_session_with_messages(
    store: Store,
    session_id: int
) -> Optional[SessionDetail]:
    session = await get_session(store, session_id)
    if session is None:
        return None
    messages = await list_messages(store, session_id)
    return SessionDetail(session=session, messages=messages)


async def delete_session(store: Store, session_id: int) -> bool:
    """Delete a session; its messages go with it"""
    async with store.connection() as conn:
        cursor = await conn.execute(
            "DELETE FROM sessions WHERE id = ?",
            (session_id,)
        )
        deleted = cursor.rowcount > 0
    if deleted:
        logger.info(f"Deleted session {session_id}")
    return deleted


async def delete_message(store: Store, message_id: int) -> bool:
    async with store.connection() as conn:
        cursor = await conn.execute(
            "DELETE FROM messages WHERE id = ?",
            (message_id,)
        )
        return cursor.rowcount > 0


async def get_session_stats(store: Store) -> SessionStats:
    async with store.connection() as conn:
        result = await conn.execute(
            """
            SELECT
                COUNT(*) AS total_sessions,
                COALESCE(SUM(duration_seconds), 0) AS total_duration,
                COALESCE(SUM(total_cost), 0) AS total_cost,
                COALESCE(AVG(duration_seconds), 0) AS average_duration,
                (SELECT COUNT(*) FROM messages) AS total_messages
            FROM sessions
            """
        )
        row = await result.fetchone()
        if row is None:
            return SessionStats()
        return SessionStats(**{key: row[key] for key in row.keys()})
