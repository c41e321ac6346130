"""
SQLite-backed conversation store.
Each call opens its own connection; writes run in a single transaction.
"""

from contextlib import contextmanager
from datetime import datetime
import os
import sqlite3
import time
from typing import Callable, Dict, List, Optional

from services.chat_service.attachment_extractor import extract_from_text
from services.chat_service.conversation_store import (
    ConversationStore,
    check_owner,
    new_attachments,
    title_or_default,
)
from services.chat_service.exceptions import NotFoundError, PersistenceError
from services.chat_service.models import (
    Attachment,
    Conversation,
    Message,
    MessageRole,
    UserContext,
    utc_now,
)
from utils.logging_config import log_conversation_event


class SqliteConversationStore(ConversationStore):
    """
    Conversation store persisted in a SQLite database.
    """

    def __init__(self, db_path: str = "conversations.db", owner_cache_ttl_seconds: float = 60.0,
                 clock: Callable[[], float] = time.monotonic):
        """
        Initialize the store and its schema

        Args:
            db_path: Path to the SQLite database file
            owner_cache_ttl_seconds: How long a positive ownership check is reused
            clock: Monotonic clock used by the ownership cache
        """
        super().__init__(owner_cache_ttl_seconds, clock)
        self.db_path = db_path
        self._init_database()

    def _init_database(self):
        """Initialize SQLite schema"""
        directory = os.path.dirname(self.db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        try:
            with self._transaction() as conn:
                conn.execute("PRAGMA journal_mode=WAL")
                conn.execute('''
                    CREATE TABLE IF NOT EXISTS conversations (
                        id TEXT PRIMARY KEY,
                        owner_id TEXT,
                        title TEXT,
                        summary TEXT,
                        summary_updated_at TEXT,
                        created_at TEXT NOT NULL
                    )
                ''')
                conn.execute('''
                    CREATE TABLE IF NOT EXISTS messages (
                        id TEXT PRIMARY KEY,
                        conversation_id TEXT NOT NULL,
                        role TEXT NOT NULL,
                        text TEXT NOT NULL,
                        archived INTEGER NOT NULL DEFAULT 0,
                        created_at TEXT NOT NULL,
                        FOREIGN KEY (conversation_id) REFERENCES conversations (id)
                    )
                ''')
                conn.execute('''
                    CREATE TABLE IF NOT EXISTS attachments (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        message_id TEXT NOT NULL,
                        type TEXT,
                        url TEXT,
                        mime_type TEXT,
                        title TEXT,
                        FOREIGN KEY (message_id) REFERENCES messages (id)
                    )
                ''')

                self._run_migrations(conn)

                conn.execute("CREATE INDEX IF NOT EXISTS idx_conversations_owner ON conversations (owner_id)")
                conn.execute("CREATE INDEX IF NOT EXISTS idx_messages_conversation ON messages (conversation_id, created_at)")
                conn.execute("CREATE INDEX IF NOT EXISTS idx_attachments_message ON attachments (message_id)")

            self.logger.info("Conversation database initialized successfully")

        except sqlite3.Error as e:
            self.logger.error(f"Error initializing conversation database: {e}")
            raise PersistenceError("Failed to initialize SQLite schema") from e

    def _run_migrations(self, conn: sqlite3.Connection):
        """Add columns missing from databases created by older versions"""
        columns = {row[1] for row in conn.execute("PRAGMA table_info(conversations)")}
        for column in ("owner_id", "title", "summary", "summary_updated_at"):
            if column not in columns:
                self.logger.info(f"Adding {column} column to conversations table")
                conn.execute(f"ALTER TABLE conversations ADD COLUMN {column} TEXT")
        if "created_at" not in columns:
            self.logger.info("Adding created_at column to conversations table")
            conn.execute("ALTER TABLE conversations ADD COLUMN created_at TEXT")

        message_columns = {row[1] for row in conn.execute("PRAGMA table_info(messages)")}
        if "archived" not in message_columns:
            self.logger.info("Adding archived column to messages table")
            conn.execute("ALTER TABLE messages ADD COLUMN archived INTEGER NOT NULL DEFAULT 0")
        if "created_at" not in message_columns:
            self.logger.info("Adding created_at column to messages table")
            conn.execute("ALTER TABLE messages ADD COLUMN created_at TEXT")

    @contextmanager
    def _transaction(self, immediate: bool = False):
        """Open a connection and commit on success, roll back on any error"""
        conn = sqlite3.connect(self.db_path, timeout=30.0)
        try:
            conn.execute("PRAGMA foreign_keys=ON")
            if immediate:
                conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.commit()
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Ownership
    # ------------------------------------------------------------------

    def _require_owned(self, conn: sqlite3.Connection, user: UserContext, conversation_id: str) -> None:
        if self.owner_cache.is_fresh(user.effective_id, conversation_id):
            return
        row = conn.execute(
            "SELECT owner_id FROM conversations WHERE id = ?", (conversation_id,)
        ).fetchone()
        if row is None:
            raise NotFoundError(conversation_id)
        check_owner(row[0], user, conversation_id)
        self.owner_cache.mark(user.effective_id, conversation_id)

    def _insert_conversation(self, conn: sqlite3.Connection, user: UserContext, conversation_id: str) -> bool:
        cursor = conn.execute('''
            INSERT OR IGNORE INTO conversations (id, owner_id, title, created_at)
            VALUES (?, ?, ?, ?)
        ''', (conversation_id, user.effective_id, conversation_id, utc_now().isoformat()))
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    def create(self, user: UserContext, conversation_id: str) -> bool:
        try:
            with self._transaction() as conn:
                created = self._insert_conversation(conn, user, conversation_id)
                # An existing id must still belong to the caller
                self._require_owned(conn, user, conversation_id)
        except sqlite3.Error as e:
            self.logger.error(f"Error creating conversation {conversation_id}: {e}")
            raise PersistenceError(f"Failed to create conversation {conversation_id}") from e

        if created:
            log_conversation_event(self.logger, "created", conversation_id, owner_id=user.effective_id)
        return created

    def list_for_owner(self, user: UserContext) -> List[Conversation]:
        try:
            with self._transaction() as conn:
                rows = conn.execute('''
                    SELECT id, owner_id, title, summary, summary_updated_at, created_at
                    FROM conversations
                    WHERE owner_id = ?
                    ORDER BY created_at, rowid
                ''', (user.effective_id,)).fetchall()
        except sqlite3.Error as e:
            self.logger.error(f"Error listing conversations: {e}")
            raise PersistenceError("Failed to list conversations") from e

        return [
            Conversation(
                id=row[0],
                owner_id=row[1],
                title=title_or_default(row[2], row[0]),
                summary=row[3],
                summary_updated_at=_parse_timestamp(row[4]),
                created_at=_parse_timestamp(row[5]) or utc_now()
            )
            for row in rows
        ]

    def set_title(self, user: UserContext, conversation_id: str, title: str) -> None:
        try:
            with self._transaction() as conn:
                self._require_owned(conn, user, conversation_id)
                conn.execute(
                    "UPDATE conversations SET title = ? WHERE id = ?",
                    (title_or_default(title, conversation_id), conversation_id)
                )
        except sqlite3.Error as e:
            self.logger.error(f"Error renaming conversation {conversation_id}: {e}")
            raise PersistenceError(f"Failed to rename conversation {conversation_id}") from e

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def get_full_history(self, user: UserContext, conversation_id: str) -> List[Message]:
        try:
            with self._transaction() as conn:
                self._require_owned(conn, user, conversation_id)
                rows = conn.execute('''
                    SELECT id, role, text, archived, created_at FROM messages
                    WHERE conversation_id = ?
                    ORDER BY created_at, rowid
                ''', (conversation_id,)).fetchall()
                attachments = self._load_conversation_attachments(conn, conversation_id)
        except sqlite3.Error as e:
            self.logger.error(f"Error loading history for {conversation_id}: {e}")
            raise PersistenceError(f"Failed to load history for {conversation_id}") from e

        messages = [self._row_to_message(row, conversation_id) for row in rows]
        for message in messages:
            message.attachments = attachments.get(message.id, [])
        return messages

    def get_active_messages(self, user: UserContext, conversation_id: str) -> List[Message]:
        try:
            with self._transaction() as conn:
                self._require_owned(conn, user, conversation_id)
                rows = conn.execute('''
                    SELECT id, role, text, archived, created_at FROM messages
                    WHERE conversation_id = ? AND archived = 0
                    ORDER BY created_at, rowid
                ''', (conversation_id,)).fetchall()
        except sqlite3.Error as e:
            self.logger.error(f"Error loading active messages for {conversation_id}: {e}")
            raise PersistenceError(f"Failed to load active messages for {conversation_id}") from e

        return [self._row_to_message(row, conversation_id) for row in rows]

    def get_summary(self, user: UserContext, conversation_id: str) -> Optional[str]:
        try:
            with self._transaction() as conn:
                self._require_owned(conn, user, conversation_id)
                row = conn.execute(
                    "SELECT summary FROM conversations WHERE id = ?", (conversation_id,)
                ).fetchone()
        except sqlite3.Error as e:
            self.logger.error(f"Error loading summary for {conversation_id}: {e}")
            raise PersistenceError(f"Failed to load summary for {conversation_id}") from e

        return row[0] if row else None

    def add_message(self, user: UserContext, conversation_id: str,
                    role: MessageRole, text: str) -> Message:
        message = Message(
            role=MessageRole.parse(role),
            text=text or "",
            conversation_id=conversation_id,
            attachments=extract_from_text(text)
        )

        try:
            with self._transaction() as conn:
                self._insert_conversation(conn, user, conversation_id)
                self._require_owned(conn, user, conversation_id)
                conn.execute('''
                    INSERT INTO messages (id, conversation_id, role, text, archived, created_at)
                    VALUES (?, ?, ?, ?, 0, ?)
                ''', (message.id, conversation_id, message.role.value, message.text,
                      message.created_at.isoformat()))
                self._insert_attachments(conn, message.id, message.attachments)
        except sqlite3.Error as e:
            self.logger.error(f"Error adding message to {conversation_id}: {e}")
            raise PersistenceError(f"Failed to add message to {conversation_id}") from e

        self.logger.debug(f"Added {message.role.value} message to conversation {conversation_id}")
        return message

    def attach_to_latest(self, user: UserContext, conversation_id: str,
                         role: MessageRole, attachments: List[Attachment]) -> None:
        if not attachments:
            return

        try:
            with self._transaction() as conn:
                self._require_owned(conn, user, conversation_id)
                row = conn.execute('''
                    SELECT id FROM messages
                    WHERE conversation_id = ? AND role = ?
                    ORDER BY created_at DESC, rowid DESC
                    LIMIT 1
                ''', (conversation_id, MessageRole.parse(role).value)).fetchone()
                if row is None:
                    return
                message_id = row[0]
                existing = self._load_attachments(conn, message_id)
                self._insert_attachments(conn, message_id, new_attachments(existing, attachments))
        except sqlite3.Error as e:
            self.logger.error(f"Error attaching to latest message in {conversation_id}: {e}")
            raise PersistenceError(f"Failed to attach to latest message in {conversation_id}") from e

    def archive_and_summarize(self, user: UserContext, conversation_id: str,
                              message_ids: List[str], new_summary: str) -> None:
        if not message_ids:
            return

        try:
            with self._transaction(immediate=True) as conn:
                self._require_owned(conn, user, conversation_id)
                self._mark_archived(conn, conversation_id, message_ids)
                self._replace_summary(conn, conversation_id, new_summary)
        except sqlite3.Error as e:
            self.logger.error(f"Error archiving messages for {conversation_id}: {e}")
            raise PersistenceError(f"Failed to archive messages for {conversation_id}") from e

        log_conversation_event(self.logger, "archived", conversation_id, archived_count=len(message_ids))

    def clear(self, user: UserContext, conversation_id: str) -> None:
        try:
            with self._transaction(immediate=True) as conn:
                self._require_owned(conn, user, conversation_id)
                conn.execute('''
                    DELETE FROM attachments WHERE message_id IN (
                        SELECT id FROM messages WHERE conversation_id = ?
                    )
                ''', (conversation_id,))
                conn.execute("DELETE FROM messages WHERE conversation_id = ?", (conversation_id,))
                conn.execute(
                    "UPDATE conversations SET summary = NULL, summary_updated_at = NULL WHERE id = ?",
                    (conversation_id,)
                )
        except sqlite3.Error as e:
            self.logger.error(f"Error clearing conversation {conversation_id}: {e}")
            raise PersistenceError(f"Failed to clear conversation {conversation_id}") from e

        log_conversation_event(self.logger, "cleared", conversation_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _mark_archived(self, conn: sqlite3.Connection, conversation_id: str, message_ids: List[str]) -> None:
        placeholders = ",".join("?" for _ in message_ids)
        conn.execute(
            f"UPDATE messages SET archived = 1 WHERE conversation_id = ? AND id IN ({placeholders})",
            (conversation_id, *message_ids)
        )

    def _replace_summary(self, conn: sqlite3.Connection, conversation_id: str, new_summary: str) -> None:
        conn.execute(
            "UPDATE conversations SET summary = ?, summary_updated_at = ? WHERE id = ?",
            (new_summary, utc_now().isoformat(), conversation_id)
        )

    def _load_attachments(self, conn: sqlite3.Connection, message_id: str) -> List[Attachment]:
        rows = conn.execute(
            "SELECT type, url, mime_type, title FROM attachments WHERE message_id = ? ORDER BY id",
            (message_id,)
        ).fetchall()
        return [Attachment(type=row[0], url=row[1], mime_type=row[2], title=row[3]) for row in rows]

    def _load_conversation_attachments(self, conn: sqlite3.Connection,
                                       conversation_id: str) -> Dict[str, List[Attachment]]:
        rows = conn.execute('''
            SELECT a.message_id, a.type, a.url, a.mime_type, a.title
            FROM attachments a JOIN messages m ON m.id = a.message_id
            WHERE m.conversation_id = ?
            ORDER BY a.id
        ''', (conversation_id,)).fetchall()
        grouped: Dict[str, List[Attachment]] = {}
        for message_id, attachment_type, url, mime_type, title in rows:
            grouped.setdefault(message_id, []).append(
                Attachment(type=attachment_type, url=url, mime_type=mime_type, title=title)
            )
        return grouped

    def _insert_attachments(self, conn: sqlite3.Connection, message_id: str,
                            attachments: List[Attachment]) -> None:
        if not attachments:
            return
        conn.executemany('''
            INSERT INTO attachments (message_id, type, url, mime_type, title)
            VALUES (?, ?, ?, ?, ?)
        ''', [(message_id, a.type, a.url, a.mime_type, a.title) for a in attachments])

    def _row_to_message(self, row, conversation_id: str) -> Message:
        message_id, role, text, archived, created_at = row
        return Message(
            id=message_id,
            conversation_id=conversation_id,
            role=MessageRole.parse(role),
            text=text or "",
            archived=bool(archived),
            created_at=_parse_timestamp(created_at) or utc_now()
        )


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Read ISO timestamps and the epoch-millisecond strings older databases wrote"""
    if value is None or not str(value).strip():
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        pass
    try:
        return datetime.fromtimestamp(int(value) / 1000.0).astimezone()
    except (ValueError, OverflowError, OSError):
        return None
