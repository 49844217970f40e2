from datetime import datetime
from typing import Any

from psycopg.rows import dict_row

from filesense.database.connection import get_connection
from filesense.pipeline.models import (
    DailyUsage,
    FileRecord,
    FileStatus,
    FileType,
    Stage,
    UsageCounter,
    UsageDelta,
    UserAccount,
    UserRole,
)
from filesense.pipeline.session import ProcessingSession, SessionStatus
from filesense.store.base import BaseSessionStore
from filesense.store.exceptions import (
    FileRecordNotFoundError,
    SessionNotFoundError,
    StoreError,
)

_FILE_COLUMNS = """
    id, owner_id, original_name, name, locator, file_type, file_size, mime_type,
    extracted_text, suggested_name, processing_status, processing_progress,
    is_processed, is_renamed, failed_stage, error_message,
    created_at, updated_at, processed_at
"""

_SESSION_COLUMNS = """
    id, owner_id, file_ids, status, progress, current_stage, current_file_index,
    current_file, message, total_files, processed_files, renamed_files,
    failed_files, error_message, failed_file_ids, created_at, updated_at, completed_at
"""


def _file_from_row(row: dict[str, Any]) -> FileRecord:
    return FileRecord(
        id=row["id"],
        owner_id=row["owner_id"],
        original_name=row["original_name"],
        name=row["name"],
        locator=row["locator"],
        file_type=FileType(row["file_type"]),
        file_size=row["file_size"],
        mime_type=row["mime_type"],
        extracted_text=row["extracted_text"],
        suggested_name=row["suggested_name"],
        processing_status=FileStatus(row["processing_status"]),
        processing_progress=row["processing_progress"],
        is_processed=row["is_processed"],
        is_renamed=row["is_renamed"],
        failed_stage=Stage(row["failed_stage"]) if row["failed_stage"] else None,
        error_message=row["error_message"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        processed_at=row["processed_at"],
    )


def _session_from_row(row: dict[str, Any]) -> ProcessingSession:
    return ProcessingSession(
        id=row["id"],
        owner_id=row["owner_id"],
        file_ids=list(row["file_ids"]),
        status=SessionStatus(row["status"]),
        progress=row["progress"],
        current_stage=Stage(row["current_stage"]) if row["current_stage"] else None,
        current_file_index=row["current_file_index"],
        current_file=row["current_file"],
        message=row["message"],
        total_files=row["total_files"],
        processed_files=row["processed_files"],
        renamed_files=row["renamed_files"],
        failed_files=row["failed_files"],
        error_message=row["error_message"],
        failed_file_ids=list(row["failed_file_ids"] or []),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        completed_at=row["completed_at"],
    )


class PostgresSessionStore(BaseSessionStore):
    """Session store backed by the files/processing_sessions/usage tables."""

    def create_file(self, file: FileRecord) -> FileRecord:
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    INSERT INTO files
                    (id, owner_id, original_name, name, locator, file_type,
                     file_size, mime_type, processing_status)
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                    RETURNING {_FILE_COLUMNS}
                    """,
                    (
                        file.id,
                        file.owner_id,
                        file.original_name,
                        file.name,
                        file.locator,
                        file.file_type.value,
                        file.file_size,
                        file.mime_type,
                        file.processing_status.value,
                    ),
                )
                row = cur.fetchone()
            conn.commit()
        if row is None:
            raise StoreError(f"Insert of file {file.id} returned no row")
        return _file_from_row(row)

    def get_file(self, file_id: str) -> FileRecord | None:
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(f"SELECT {_FILE_COLUMNS} FROM files WHERE id = %s", (file_id,))
                row = cur.fetchone()
        return _file_from_row(row) if row is not None else None

    def get_files(self, file_ids: list[str]) -> list[FileRecord]:
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"SELECT {_FILE_COLUMNS} FROM files WHERE id = ANY(%s)",
                    (file_ids,),
                )
                rows = cur.fetchall()
        by_id = {row["id"]: _file_from_row(row) for row in rows}
        missing = [file_id for file_id in file_ids if file_id not in by_id]
        if missing:
            raise FileRecordNotFoundError(f"Files not found: {missing}")
        return [by_id[file_id] for file_id in file_ids]

    def save_file(self, file: FileRecord) -> None:
        with get_connection() as conn:
            cur = conn.execute(
                """
                UPDATE files
                SET name = %s, locator = %s, extracted_text = %s, suggested_name = %s,
                    processing_status = %s, processing_progress = %s,
                    is_processed = %s, is_renamed = %s, failed_stage = %s,
                    error_message = %s, processed_at = %s, updated_at = NOW()
                WHERE id = %s
                """,
                (
                    file.name,
                    file.locator,
                    file.extracted_text,
                    file.suggested_name,
                    file.processing_status.value,
                    file.processing_progress,
                    file.is_processed,
                    file.is_renamed,
                    file.failed_stage.value if file.failed_stage else None,
                    file.error_message,
                    file.processed_at,
                    file.id,
                ),
            )
            conn.commit()
        if cur.rowcount == 0:
            raise FileRecordNotFoundError(f"File {file.id} not found")

    def list_files_by_owner(self, owner_id: str, limit: int = 50) -> list[FileRecord]:
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    SELECT {_FILE_COLUMNS}
                    FROM files
                    WHERE owner_id = %s
                    ORDER BY created_at DESC
                    LIMIT %s
                    """,
                    (owner_id, limit),
                )
                rows = cur.fetchall()
        return [_file_from_row(row) for row in rows]

    def create_session(self, session: ProcessingSession) -> None:
        with get_connection() as conn:
            conn.execute(
                """
                INSERT INTO processing_sessions
                (id, owner_id, file_ids, status, progress, total_files, message)
                VALUES (%s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    session.id,
                    session.owner_id,
                    session.file_ids,
                    session.status.value,
                    session.progress,
                    session.total_files,
                    session.message,
                ),
            )
            conn.commit()

    def get_session(self, session_id: str) -> ProcessingSession | None:
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"SELECT {_SESSION_COLUMNS} FROM processing_sessions WHERE id = %s",
                    (session_id,),
                )
                row = cur.fetchone()
        return _session_from_row(row) if row is not None else None

    def save_session(self, session: ProcessingSession) -> None:
        with get_connection() as conn:
            cur = conn.execute(
                """
                UPDATE processing_sessions
                SET status = %s, progress = %s, current_stage = %s,
                    current_file_index = %s, current_file = %s, message = %s,
                    processed_files = %s, renamed_files = %s, failed_files = %s,
                    error_message = %s, failed_file_ids = %s, completed_at = %s,
                    updated_at = NOW()
                WHERE id = %s
                """,
                (
                    session.status.value,
                    session.progress,
                    session.current_stage.value if session.current_stage else None,
                    session.current_file_index,
                    session.current_file,
                    session.message,
                    session.processed_files,
                    session.renamed_files,
                    session.failed_files,
                    session.error_message,
                    session.failed_file_ids,
                    session.completed_at,
                    session.id,
                ),
            )
            conn.commit()
        if cur.rowcount == 0:
            raise SessionNotFoundError(f"Session {session.id} not found")

    def claim_next_session(self) -> ProcessingSession | None:
        """Claim the oldest pending session using SELECT FOR UPDATE SKIP LOCKED."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    SELECT {_SESSION_COLUMNS}
                    FROM processing_sessions
                    WHERE status = 'pending'
                      AND claimed_at IS NULL
                    ORDER BY created_at
                    LIMIT 1
                    FOR UPDATE SKIP LOCKED
                    """
                )
                row = cur.fetchone()
            if row is None:
                conn.rollback()
                return None
            conn.execute(
                "UPDATE processing_sessions SET claimed_at = NOW() WHERE id = %s",
                (row["id"],),
            )
            conn.commit()
        return _session_from_row(row)

    def request_cancel(self, session_id: str) -> bool:
        with get_connection() as conn:
            cur = conn.execute(
                """
                UPDATE processing_sessions
                SET cancel_requested = TRUE, updated_at = NOW()
                WHERE id = %s
                  AND status IN ('pending', 'processing')
                """,
                (session_id,),
            )
            conn.commit()
        return cur.rowcount > 0

    def is_cancel_requested(self, session_id: str) -> bool:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT cancel_requested FROM processing_sessions WHERE id = %s",
                    (session_id,),
                )
                row = cur.fetchone()
        return bool(row and row[0])

    def create_user(self, user: UserAccount) -> None:
        with get_connection() as conn:
            conn.execute(
                """
                INSERT INTO users (uid, role, monthly_limit, total_files_processed)
                VALUES (%s, %s, %s, %s)
                """,
                (user.uid, user.role.value, user.monthly_limit, user.total_files_processed),
            )
            conn.commit()

    def get_user(self, uid: str) -> UserAccount | None:
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT uid, role, monthly_limit, total_files_processed,
                           created_at, updated_at
                    FROM users
                    WHERE uid = %s
                    """,
                    (uid,),
                )
                row = cur.fetchone()
        if row is None:
            return None
        return UserAccount(
            uid=row["uid"],
            role=UserRole(row["role"]),
            monthly_limit=row["monthly_limit"],
            total_files_processed=row["total_files_processed"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def increment_user_files(self, uid: str, count: int) -> None:
        with get_connection() as conn:
            conn.execute(
                """
                UPDATE users
                SET total_files_processed = total_files_processed + %s,
                    updated_at = NOW()
                WHERE uid = %s
                """,
                (count, uid),
            )
            conn.commit()

    def get_guest_count(self, guest_id: str) -> int:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT files_admitted FROM guest_quotas WHERE guest_id = %s",
                    (guest_id,),
                )
                row = cur.fetchone()
        return int(row[0]) if row else 0

    def reserve_guest_files(self, guest_id: str, count: int, ceiling: int) -> bool:
        """Conditional upsert: the row lock taken by ON CONFLICT serializes racing guests."""
        if count > ceiling:
            return False
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO guest_quotas (guest_id, files_admitted)
                    VALUES (%s, %s)
                    ON CONFLICT (guest_id) DO UPDATE
                    SET files_admitted = guest_quotas.files_admitted + EXCLUDED.files_admitted,
                        updated_at = NOW()
                    WHERE guest_quotas.files_admitted + EXCLUDED.files_admitted <= %s
                    RETURNING files_admitted
                    """,
                    (guest_id, count, ceiling),
                )
                row = cur.fetchone()
            conn.commit()
        return row is not None

    def release_guest_files(self, guest_id: str, count: int) -> None:
        with get_connection() as conn:
            conn.execute(
                """
                UPDATE guest_quotas
                SET files_admitted = GREATEST(files_admitted - %s, 0),
                    updated_at = NOW()
                WHERE guest_id = %s
                """,
                (count, guest_id),
            )
            conn.commit()

    def increment_usage(self, owner_id: str, delta: UsageDelta, at: datetime) -> None:
        with get_connection() as conn:
            conn.execute(
                """
                INSERT INTO usage_counters
                (owner_id, year, month, files_processed, text_extracted,
                 files_renamed, api_calls_made)
                VALUES (%s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT (owner_id, year, month) DO UPDATE
                SET files_processed = usage_counters.files_processed + EXCLUDED.files_processed,
                    text_extracted = usage_counters.text_extracted + EXCLUDED.text_extracted,
                    files_renamed = usage_counters.files_renamed + EXCLUDED.files_renamed,
                    api_calls_made = usage_counters.api_calls_made + EXCLUDED.api_calls_made,
                    updated_at = NOW()
                """,
                (
                    owner_id,
                    at.year,
                    at.month,
                    delta.files_processed,
                    delta.text_extracted,
                    delta.files_renamed,
                    delta.api_calls_made,
                ),
            )
            conn.execute(
                """
                INSERT INTO usage_daily
                (owner_id, year, month, day, files_processed, text_extracted, files_renamed)
                VALUES (%s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT (owner_id, year, month, day) DO UPDATE
                SET files_processed = usage_daily.files_processed + EXCLUDED.files_processed,
                    text_extracted = usage_daily.text_extracted + EXCLUDED.text_extracted,
                    files_renamed = usage_daily.files_renamed + EXCLUDED.files_renamed
                """,
                (
                    owner_id,
                    at.year,
                    at.month,
                    at.day,
                    delta.files_processed,
                    delta.text_extracted,
                    delta.files_renamed,
                ),
            )
            conn.commit()

    def get_usage(self, owner_id: str, year: int, month: int) -> UsageCounter | None:
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT files_processed, text_extracted, files_renamed, api_calls_made
                    FROM usage_counters
                    WHERE owner_id = %s AND year = %s AND month = %s
                    """,
                    (owner_id, year, month),
                )
                row = cur.fetchone()
                if row is None:
                    return None
                cur.execute(
                    """
                    SELECT day, files_processed, text_extracted, files_renamed
                    FROM usage_daily
                    WHERE owner_id = %s AND year = %s AND month = %s
                    ORDER BY day
                    """,
                    (owner_id, year, month),
                )
                daily_rows = cur.fetchall()
        return UsageCounter(
            owner_id=owner_id,
            year=year,
            month=month,
            files_processed=row["files_processed"],
            text_extracted=row["text_extracted"],
            files_renamed=row["files_renamed"],
            api_calls_made=row["api_calls_made"],
            daily_stats={
                f"{d['day']:02d}": DailyUsage(
                    files_processed=d["files_processed"],
                    text_extracted=d["text_extracted"],
                    files_renamed=d["files_renamed"],
                )
                for d in daily_rows
            },
        )
