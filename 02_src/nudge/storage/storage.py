"""SQLite storage implementation."""

import asyncio
import json
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Protocol

import aiosqlite

from ..config import resolve_db_path
from ..models import (
    AppSettings,
    CachedUserAndConversationData,
    EnrichedUserInfo,
    MessageBatch,
    MessageLog,
    MessageTemplate,
    SmartGroup,
    SmartGroupMember,
    SyncMetadata,
)


def _ts(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_ts(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class IStorage(Protocol):
    """Persistent storage for templates, delivery state and caches (SQLite)."""

    async def init(self) -> None:
        """Initialize database and create tables."""
        ...

    async def close(self) -> None:
        """Close database connection."""
        ...

    # Templates
    async def save_template(self, template: MessageTemplate) -> None:
        """Insert or replace a template."""
        ...

    async def get_template(self, template_id: str) -> MessageTemplate | None:
        """Get a template by ID."""
        ...

    async def get_all_templates(self) -> list[MessageTemplate]:
        """Get all templates, newest first."""
        ...

    async def delete_template(self, template_id: str) -> bool:
        """Delete a template. Returns False if it did not exist."""
        ...

    # Batches
    async def save_batch(self, batch: MessageBatch) -> None:
        """Insert or replace a batch."""
        ...

    async def get_batch(self, batch_id: str) -> MessageBatch | None:
        """Get a batch by ID."""
        ...

    async def get_all_batches(self, template_id: str | None = None) -> list[MessageBatch]:
        """Get batches, optionally only those using a template."""
        ...

    async def delete_batch(self, batch_id: str) -> bool:
        """Delete a batch. Returns False if it did not exist."""
        ...

    # Message logs
    async def save_message_log(self, log: MessageLog) -> None:
        """Insert or replace a message log."""
        ...

    async def get_message_log(self, log_id: str) -> MessageLog | None:
        """Get a message log by ID."""
        ...

    async def get_message_logs(
        self,
        batch_ids: list[str] | None = None,
        recipient_upn: str | None = None,
        status: str | None = None,
    ) -> list[MessageLog]:
        """Get message logs with optional filters, newest first."""
        ...

    async def delete_message_logs_for_batch(self, batch_id: str) -> int:
        """Delete every log of a batch. Returns the number removed."""
        ...

    # Queue
    async def enqueue_queue_message(self, body: str) -> str:
        """Append a message to the batch queue."""
        ...

    async def dequeue_queue_message(
        self, visibility_timeout: timedelta
    ) -> tuple[str, str, int, str] | None:
        """Claim the oldest visible message: (id, pop_receipt, dequeue_count, body)."""
        ...

    async def delete_queue_message(self, message_id: str, pop_receipt: str) -> bool:
        """Remove a claimed message."""
        ...

    async def count_queue_messages(self) -> int:
        """Number of messages on the queue, visible or not."""
        ...

    # Conversation cache
    async def save_cached_user(self, user: CachedUserAndConversationData) -> None:
        """Insert or replace a cached conversation reference."""
        ...

    async def get_all_cached_users(self) -> list[CachedUserAndConversationData]:
        """Get all cached conversation references."""
        ...

    async def delete_cached_user(self, user_id: str) -> None:
        """Remove a cached conversation reference."""
        ...

    # Settings
    async def get_app_settings(self) -> AppSettings | None:
        """Get the settings row, if it has ever been saved."""
        ...

    async def save_app_settings(self, settings: AppSettings) -> None:
        """Save the settings row."""
        ...

    # Smart groups
    async def save_smart_group(self, group: SmartGroup) -> None:
        """Insert or replace a smart group."""
        ...

    async def get_smart_group(self, group_id: str) -> SmartGroup | None:
        """Get a smart group by ID."""
        ...

    async def get_all_smart_groups(self) -> list[SmartGroup]:
        """Get all smart groups."""
        ...

    async def delete_smart_group(self, group_id: str) -> bool:
        """Delete a group and its cached members."""
        ...

    async def replace_smart_group_members(
        self, group_id: str, members: list[SmartGroupMember]
    ) -> None:
        """Replace the cached members of a group."""
        ...

    async def get_smart_group_members(self, group_id: str) -> list[SmartGroupMember]:
        """Get the cached members of a group."""
        ...

    # Directory users
    async def upsert_directory_users(self, users: list[EnrichedUserInfo]) -> None:
        """Insert or update cached directory users."""
        ...

    async def replace_directory_users(self, users: list[EnrichedUserInfo]) -> None:
        """Replace the whole directory cache."""
        ...

    async def mark_directory_user_deleted(self, user_id: str) -> None:
        """Flag a directory user as removed."""
        ...

    async def get_directory_user(self, upn: str) -> EnrichedUserInfo | None:
        """Get a non-deleted directory user by UPN (case-insensitive)."""
        ...

    async def get_directory_users(self) -> list[EnrichedUserInfo]:
        """Get all non-deleted directory users."""
        ...

    async def clear_directory_users(self) -> None:
        """Remove all cached directory users."""
        ...

    async def get_sync_metadata(self) -> SyncMetadata | None:
        """Get user sync bookkeeping."""
        ...

    async def save_sync_metadata(self, metadata: SyncMetadata) -> None:
        """Save user sync bookkeeping."""
        ...

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        ...


class Storage:
    """SQLite storage implementation."""

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            self._db_path = resolve_db_path()
        else:
            self._db_path = resolve_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None
        self._queue_lock = asyncio.Lock()

    async def init(self) -> None:
        """Initialize database and create tables."""
        self._conn = await aiosqlite.connect(self._db_path)

        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, "r", encoding="utf-8") as f:
            schema_sql = f.read()
        await self._conn.executescript(schema_sql)
        await self._conn.commit()

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    def _require_conn(self) -> aiosqlite.Connection:
        if not self._conn:
            raise RuntimeError("Storage not initialized")
        return self._conn

    # Templates
    async def save_template(self, template: MessageTemplate) -> None:
        conn = self._require_conn()
        await conn.execute(
            """
            INSERT OR REPLACE INTO message_templates
            (id, template_name, json_payload, created_by_upn, created_date)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                template.id,
                template.template_name,
                template.json_payload,
                template.created_by_upn,
                _ts(template.created_date),
            ),
        )
        await conn.commit()

    async def get_template(self, template_id: str) -> MessageTemplate | None:
        conn = self._require_conn()
        cursor = await conn.execute(
            """
            SELECT id, template_name, json_payload, created_by_upn, created_date
            FROM message_templates
            WHERE id = ?
            """,
            (template_id,),
        )
        row = await cursor.fetchone()
        return self._row_to_template(row) if row else None

    async def get_all_templates(self) -> list[MessageTemplate]:
        conn = self._require_conn()
        cursor = await conn.execute(
            """
            SELECT id, template_name, json_payload, created_by_upn, created_date
            FROM message_templates
            ORDER BY created_date DESC
            """
        )
        return [self._row_to_template(row) for row in await cursor.fetchall()]

    async def delete_template(self, template_id: str) -> bool:
        conn = self._require_conn()
        cursor = await conn.execute(
            "DELETE FROM message_templates WHERE id = ?", (template_id,)
        )
        await conn.commit()
        return cursor.rowcount > 0

    @staticmethod
    def _row_to_template(row) -> MessageTemplate:
        return MessageTemplate(
            id=row[0],
            template_name=row[1],
            json_payload=row[2],
            created_by_upn=row[3],
            created_date=_parse_ts(row[4]),
        )

    # Batches
    async def save_batch(self, batch: MessageBatch) -> None:
        conn = self._require_conn()
        await conn.execute(
            """
            INSERT OR REPLACE INTO message_batches
            (id, batch_name, template_id, sender_upn, created_date)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                batch.id,
                batch.batch_name,
                batch.template_id,
                batch.sender_upn,
                _ts(batch.created_date),
            ),
        )
        await conn.commit()

    async def get_batch(self, batch_id: str) -> MessageBatch | None:
        conn = self._require_conn()
        cursor = await conn.execute(
            """
            SELECT id, batch_name, template_id, sender_upn, created_date
            FROM message_batches
            WHERE id = ?
            """,
            (batch_id,),
        )
        row = await cursor.fetchone()
        return self._row_to_batch(row) if row else None

    async def get_all_batches(self, template_id: str | None = None) -> list[MessageBatch]:
        conn = self._require_conn()
        if template_id:
            cursor = await conn.execute(
                """
                SELECT id, batch_name, template_id, sender_upn, created_date
                FROM message_batches
                WHERE template_id = ?
                ORDER BY created_date DESC
                """,
                (template_id,),
            )
        else:
            cursor = await conn.execute(
                """
                SELECT id, batch_name, template_id, sender_upn, created_date
                FROM message_batches
                ORDER BY created_date DESC
                """
            )
        return [self._row_to_batch(row) for row in await cursor.fetchall()]

    async def delete_batch(self, batch_id: str) -> bool:
        conn = self._require_conn()
        cursor = await conn.execute(
            "DELETE FROM message_batches WHERE id = ?", (batch_id,)
        )
        await conn.commit()
        return cursor.rowcount > 0

    @staticmethod
    def _row_to_batch(row) -> MessageBatch:
        return MessageBatch(
            id=row[0],
            batch_name=row[1],
            template_id=row[2],
            sender_upn=row[3],
            created_date=_parse_ts(row[4]),
        )

    # Message logs
    async def save_message_log(self, log: MessageLog) -> None:
        conn = self._require_conn()
        # Keep the original insertion time when a log is updated
        await conn.execute(
            """
            INSERT INTO message_logs
            (id, message_batch_id, recipient_upn, status, sent_date, last_error, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                message_batch_id = excluded.message_batch_id,
                recipient_upn = excluded.recipient_upn,
                status = excluded.status,
                sent_date = excluded.sent_date,
                last_error = excluded.last_error
            """,
            (
                log.id,
                log.message_batch_id,
                log.recipient_upn,
                log.status,
                _ts(log.sent_date),
                log.last_error,
                datetime.now(timezone.utc).isoformat(),
            ),
        )
        await conn.commit()

    async def get_message_log(self, log_id: str) -> MessageLog | None:
        conn = self._require_conn()
        cursor = await conn.execute(
            """
            SELECT id, message_batch_id, recipient_upn, status, sent_date, last_error
            FROM message_logs
            WHERE id = ?
            """,
            (log_id,),
        )
        row = await cursor.fetchone()
        return self._row_to_log(row) if row else None

    async def get_message_logs(
        self,
        batch_ids: list[str] | None = None,
        recipient_upn: str | None = None,
        status: str | None = None,
    ) -> list[MessageLog]:
        conn = self._require_conn()

        conditions = []
        params: list = []

        if batch_ids is not None:
            if not batch_ids:
                return []
            placeholders = ",".join("?" * len(batch_ids))
            conditions.append(f"message_batch_id IN ({placeholders})")
            params.extend(batch_ids)
        if recipient_upn:
            conditions.append("recipient_upn = ? COLLATE NOCASE")
            params.append(recipient_upn)
        if status:
            conditions.append("status = ?")
            params.append(status)

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        cursor = await conn.execute(
            f"""
            SELECT id, message_batch_id, recipient_upn, status, sent_date, last_error
            FROM message_logs
            {where_clause}
            ORDER BY created_at DESC, rowid DESC
            """,
            params,
        )
        return [self._row_to_log(row) for row in await cursor.fetchall()]

    async def delete_message_logs_for_batch(self, batch_id: str) -> int:
        conn = self._require_conn()
        cursor = await conn.execute(
            "DELETE FROM message_logs WHERE message_batch_id = ?", (batch_id,)
        )
        await conn.commit()
        return cursor.rowcount

    @staticmethod
    def _row_to_log(row) -> MessageLog:
        return MessageLog(
            id=row[0],
            message_batch_id=row[1],
            recipient_upn=row[2],
            status=row[3],
            sent_date=_parse_ts(row[4]),
            last_error=row[5],
        )

    # Queue
    async def enqueue_queue_message(self, body: str) -> str:
        conn = self._require_conn()
        message_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc).isoformat()
        await conn.execute(
            """
            INSERT INTO queue_messages (id, body, inserted_at, visible_at)
            VALUES (?, ?, ?, ?)
            """,
            (message_id, body, now, now),
        )
        await conn.commit()
        return message_id

    async def dequeue_queue_message(
        self, visibility_timeout: timedelta
    ) -> tuple[str, str, int, str] | None:
        conn = self._require_conn()
        async with self._queue_lock:
            now = datetime.now(timezone.utc)
            cursor = await conn.execute(
                """
                SELECT id, dequeue_count, body
                FROM queue_messages
                WHERE visible_at <= ?
                ORDER BY inserted_at ASC, rowid ASC
                LIMIT 1
                """,
                (now.isoformat(),),
            )
            row = await cursor.fetchone()
            if not row:
                return None

            pop_receipt = str(uuid.uuid4())
            dequeue_count = row[1] + 1
            await conn.execute(
                """
                UPDATE queue_messages
                SET pop_receipt = ?, visible_at = ?, dequeue_count = ?
                WHERE id = ?
                """,
                (pop_receipt, (now + visibility_timeout).isoformat(), dequeue_count, row[0]),
            )
            await conn.commit()
            return row[0], pop_receipt, dequeue_count, row[2]

    async def delete_queue_message(self, message_id: str, pop_receipt: str) -> bool:
        conn = self._require_conn()
        cursor = await conn.execute(
            "DELETE FROM queue_messages WHERE id = ? AND pop_receipt = ?",
            (message_id, pop_receipt),
        )
        await conn.commit()
        return cursor.rowcount > 0

    async def count_queue_messages(self) -> int:
        conn = self._require_conn()
        cursor = await conn.execute("SELECT COUNT(*) FROM queue_messages")
        row = await cursor.fetchone()
        return row[0]

    # Conversation cache
    async def save_cached_user(self, user: CachedUserAndConversationData) -> None:
        conn = self._require_conn()
        await conn.execute(
            """
            INSERT OR REPLACE INTO conversation_cache
            (user_id, service_url, conversation_id, user_principal_name)
            VALUES (?, ?, ?, ?)
            """,
            (
                user.user_id,
                user.service_url,
                user.conversation_id,
                user.user_principal_name,
            ),
        )
        await conn.commit()

    async def get_all_cached_users(self) -> list[CachedUserAndConversationData]:
        conn = self._require_conn()
        cursor = await conn.execute(
            """
            SELECT user_id, service_url, conversation_id, user_principal_name
            FROM conversation_cache
            """
        )
        return [
            CachedUserAndConversationData(
                user_id=row[0],
                service_url=row[1],
                conversation_id=row[2],
                user_principal_name=row[3],
            )
            for row in await cursor.fetchall()
        ]

    async def delete_cached_user(self, user_id: str) -> None:
        conn = self._require_conn()
        await conn.execute("DELETE FROM conversation_cache WHERE user_id = ?", (user_id,))
        await conn.commit()

    # Settings
    async def get_app_settings(self) -> AppSettings | None:
        conn = self._require_conn()
        cursor = await conn.execute(
            """
            SELECT follow_up_chat_system_prompt, last_modified_date, last_modified_by_upn
            FROM app_settings
            WHERE id = 1
            """
        )
        row = await cursor.fetchone()
        if not row:
            return None

        return AppSettings(
            follow_up_chat_system_prompt=row[0],
            last_modified_date=_parse_ts(row[1]),
            last_modified_by_upn=row[2],
        )

    async def save_app_settings(self, settings: AppSettings) -> None:
        conn = self._require_conn()
        await conn.execute(
            """
            INSERT OR REPLACE INTO app_settings
            (id, follow_up_chat_system_prompt, last_modified_date, last_modified_by_upn)
            VALUES (1, ?, ?, ?)
            """,
            (
                settings.follow_up_chat_system_prompt,
                _ts(settings.last_modified_date),
                settings.last_modified_by_upn,
            ),
        )
        await conn.commit()

    # Smart groups
    async def save_smart_group(self, group: SmartGroup) -> None:
        conn = self._require_conn()
        await conn.execute(
            """
            INSERT OR REPLACE INTO smart_groups
            (id, name, description, created_by_upn, created_date,
             last_resolved_date, last_resolved_member_count)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                group.id,
                group.name,
                group.description,
                group.created_by_upn,
                _ts(group.created_date),
                _ts(group.last_resolved_date),
                group.last_resolved_member_count,
            ),
        )
        await conn.commit()

    async def get_smart_group(self, group_id: str) -> SmartGroup | None:
        conn = self._require_conn()
        cursor = await conn.execute(
            """
            SELECT id, name, description, created_by_upn, created_date,
                   last_resolved_date, last_resolved_member_count
            FROM smart_groups
            WHERE id = ?
            """,
            (group_id,),
        )
        row = await cursor.fetchone()
        return self._row_to_group(row) if row else None

    async def get_all_smart_groups(self) -> list[SmartGroup]:
        conn = self._require_conn()
        cursor = await conn.execute(
            """
            SELECT id, name, description, created_by_upn, created_date,
                   last_resolved_date, last_resolved_member_count
            FROM smart_groups
            ORDER BY created_date DESC
            """
        )
        return [self._row_to_group(row) for row in await cursor.fetchall()]

    async def delete_smart_group(self, group_id: str) -> bool:
        conn = self._require_conn()
        await conn.execute(
            "DELETE FROM smart_group_members WHERE group_id = ?", (group_id,)
        )
        cursor = await conn.execute("DELETE FROM smart_groups WHERE id = ?", (group_id,))
        await conn.commit()
        return cursor.rowcount > 0

    async def replace_smart_group_members(
        self, group_id: str, members: list[SmartGroupMember]
    ) -> None:
        conn = self._require_conn()
        await conn.execute(
            "DELETE FROM smart_group_members WHERE group_id = ?", (group_id,)
        )
        await conn.executemany(
            """
            INSERT OR REPLACE INTO smart_group_members
            (group_id, user_principal_name, display_name, department, job_title,
             confidence_score, reason, cached_date)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    group_id,
                    m.user_principal_name,
                    m.display_name,
                    m.department,
                    m.job_title,
                    m.confidence_score,
                    m.reason,
                    _ts(m.cached_date),
                )
                for m in members
            ],
        )
        await conn.commit()

    async def get_smart_group_members(self, group_id: str) -> list[SmartGroupMember]:
        conn = self._require_conn()
        cursor = await conn.execute(
            """
            SELECT group_id, user_principal_name, display_name, department, job_title,
                   confidence_score, reason, cached_date
            FROM smart_group_members
            WHERE group_id = ?
            ORDER BY confidence_score DESC, user_principal_name ASC
            """,
            (group_id,),
        )
        return [
            SmartGroupMember(
                group_id=row[0],
                user_principal_name=row[1],
                display_name=row[2],
                department=row[3],
                job_title=row[4],
                confidence_score=row[5],
                reason=row[6],
                cached_date=_parse_ts(row[7]),
            )
            for row in await cursor.fetchall()
        ]

    @staticmethod
    def _row_to_group(row) -> SmartGroup:
        return SmartGroup(
            id=row[0],
            name=row[1],
            description=row[2],
            created_by_upn=row[3],
            created_date=_parse_ts(row[4]),
            last_resolved_date=_parse_ts(row[5]),
            last_resolved_member_count=row[6],
        )

    # Directory users
    async def upsert_directory_users(self, users: list[EnrichedUserInfo]) -> None:
        conn = self._require_conn()
        now = datetime.now(timezone.utc).isoformat()
        await conn.executemany(
            """
            INSERT OR REPLACE INTO directory_users
            (id, user_principal_name, data, is_deleted, updated_at)
            VALUES (?, ?, ?, 0, ?)
            """,
            [
                (u.id, u.user_principal_name, json.dumps(u.to_dict()), now)
                for u in users
            ],
        )
        await conn.commit()

    async def replace_directory_users(self, users: list[EnrichedUserInfo]) -> None:
        conn = self._require_conn()
        await conn.execute("DELETE FROM directory_users")
        await self.upsert_directory_users(users)

    async def mark_directory_user_deleted(self, user_id: str) -> None:
        conn = self._require_conn()
        await conn.execute(
            "UPDATE directory_users SET is_deleted = 1, updated_at = ? WHERE id = ?",
            (datetime.now(timezone.utc).isoformat(), user_id),
        )
        await conn.commit()

    async def get_directory_user(self, upn: str) -> EnrichedUserInfo | None:
        conn = self._require_conn()
        cursor = await conn.execute(
            """
            SELECT data FROM directory_users
            WHERE user_principal_name = ? COLLATE NOCASE AND is_deleted = 0
            """,
            (upn,),
        )
        row = await cursor.fetchone()
        return EnrichedUserInfo.from_dict(json.loads(row[0])) if row else None

    async def get_directory_users(self) -> list[EnrichedUserInfo]:
        conn = self._require_conn()
        cursor = await conn.execute(
            """
            SELECT data FROM directory_users
            WHERE is_deleted = 0
            ORDER BY user_principal_name COLLATE NOCASE
            """
        )
        return [
            EnrichedUserInfo.from_dict(json.loads(row[0]))
            for row in await cursor.fetchall()
        ]

    async def clear_directory_users(self) -> None:
        conn = self._require_conn()
        await conn.execute("DELETE FROM directory_users")
        await conn.commit()

    async def get_sync_metadata(self) -> SyncMetadata | None:
        conn = self._require_conn()
        cursor = await conn.execute(
            """
            SELECT delta_link, last_full_sync_date, last_delta_sync_date,
                   last_copilot_stats_update, last_sync_status, last_sync_error,
                   last_sync_user_count
            FROM sync_metadata
            WHERE id = 1
            """
        )
        row = await cursor.fetchone()
        if not row:
            return None

        return SyncMetadata(
            delta_link=row[0],
            last_full_sync_date=_parse_ts(row[1]),
            last_delta_sync_date=_parse_ts(row[2]),
            last_copilot_stats_update=_parse_ts(row[3]),
            last_sync_status=row[4],
            last_sync_error=row[5],
            last_sync_user_count=row[6],
        )

    async def save_sync_metadata(self, metadata: SyncMetadata) -> None:
        conn = self._require_conn()
        await conn.execute(
            """
            INSERT OR REPLACE INTO sync_metadata
            (id, delta_link, last_full_sync_date, last_delta_sync_date,
             last_copilot_stats_update, last_sync_status, last_sync_error,
             last_sync_user_count)
            VALUES (1, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                metadata.delta_link,
                _ts(metadata.last_full_sync_date),
                _ts(metadata.last_delta_sync_date),
                _ts(metadata.last_copilot_stats_update),
                metadata.last_sync_status,
                metadata.last_sync_error,
                metadata.last_sync_user_count,
            ),
        )
        await conn.commit()

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        conn = self._require_conn()

        tables = [
            "message_logs",
            "message_batches",
            "message_templates",
            "queue_messages",
            "conversation_cache",
            "app_settings",
            "smart_group_members",
            "smart_groups",
            "directory_users",
            "sync_metadata",
        ]

        for table in tables:
            await conn.execute(f"DELETE FROM {table}")

        await conn.commit()
