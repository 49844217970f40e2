"""In-process session store.

No database required. Useful for local development, tests, and running
worker threads next to the submitting code in a single process. A single
lock serializes every operation, which makes the guest reservation and the
usage increments atomic.
"""

import copy
import threading
from datetime import UTC, datetime

from filesense.pipeline.models import FileRecord, UsageCounter, UsageDelta, UserAccount
from filesense.pipeline.session import ProcessingSession, SessionStatus
from filesense.store.base import BaseSessionStore
from filesense.store.exceptions import FileRecordNotFoundError, SessionNotFoundError


def _now() -> datetime:
    return datetime.now(UTC)


class InMemorySessionStore(BaseSessionStore):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._files: dict[str, FileRecord] = {}
        self._sessions: dict[str, ProcessingSession] = {}
        self._claimed: set[str] = set()
        self._cancel_requests: set[str] = set()
        self._users: dict[str, UserAccount] = {}
        self._guest_counts: dict[str, int] = {}
        self._usage: dict[tuple[str, int, int], UsageCounter] = {}

    def create_file(self, file: FileRecord) -> FileRecord:
        with self._lock:
            stored = copy.deepcopy(file)
            stored.created_at = stored.created_at or _now()
            stored.updated_at = stored.created_at
            self._files[stored.id] = stored
            return copy.deepcopy(stored)

    def get_file(self, file_id: str) -> FileRecord | None:
        with self._lock:
            stored = self._files.get(file_id)
            return copy.deepcopy(stored) if stored is not None else None

    def get_files(self, file_ids: list[str]) -> list[FileRecord]:
        with self._lock:
            missing = [file_id for file_id in file_ids if file_id not in self._files]
            if missing:
                raise FileRecordNotFoundError(f"Files not found: {missing}")
            return [copy.deepcopy(self._files[file_id]) for file_id in file_ids]

    def save_file(self, file: FileRecord) -> None:
        with self._lock:
            if file.id not in self._files:
                raise FileRecordNotFoundError(f"File {file.id} not found")
            stored = copy.deepcopy(file)
            stored.updated_at = _now()
            self._files[file.id] = stored

    def list_files_by_owner(self, owner_id: str, limit: int = 50) -> list[FileRecord]:
        with self._lock:
            owned = [f for f in self._files.values() if f.owner_id == owner_id]
        owned.sort(key=lambda f: f.created_at or datetime.min.replace(tzinfo=UTC), reverse=True)
        return [copy.deepcopy(f) for f in owned[:limit]]

    def create_session(self, session: ProcessingSession) -> None:
        with self._lock:
            stored = copy.deepcopy(session)
            stored.created_at = stored.created_at or _now()
            stored.updated_at = stored.created_at
            self._sessions[stored.id] = stored

    def get_session(self, session_id: str) -> ProcessingSession | None:
        with self._lock:
            stored = self._sessions.get(session_id)
            return copy.deepcopy(stored) if stored is not None else None

    def save_session(self, session: ProcessingSession) -> None:
        with self._lock:
            if session.id not in self._sessions:
                raise SessionNotFoundError(f"Session {session.id} not found")
            self._sessions[session.id] = copy.deepcopy(session)

    def claim_next_session(self) -> ProcessingSession | None:
        with self._lock:
            pending = [
                s
                for s in self._sessions.values()
                if s.status == SessionStatus.PENDING and s.id not in self._claimed
            ]
            if not pending:
                return None
            oldest = min(pending, key=lambda s: s.created_at or _now())
            self._claimed.add(oldest.id)
            return copy.deepcopy(oldest)

    def request_cancel(self, session_id: str) -> bool:
        with self._lock:
            stored = self._sessions.get(session_id)
            if stored is None or stored.is_terminal:
                return False
            self._cancel_requests.add(session_id)
            return True

    def is_cancel_requested(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._cancel_requests

    def create_user(self, user: UserAccount) -> None:
        with self._lock:
            stored = copy.deepcopy(user)
            stored.created_at = stored.created_at or _now()
            stored.updated_at = stored.created_at
            self._users[user.uid] = stored

    def get_user(self, uid: str) -> UserAccount | None:
        with self._lock:
            stored = self._users.get(uid)
            return copy.deepcopy(stored) if stored is not None else None

    def increment_user_files(self, uid: str, count: int) -> None:
        with self._lock:
            stored = self._users.get(uid)
            if stored is None:
                return
            stored.total_files_processed += count
            stored.updated_at = _now()

    def get_guest_count(self, guest_id: str) -> int:
        with self._lock:
            return self._guest_counts.get(guest_id, 0)

    def reserve_guest_files(self, guest_id: str, count: int, ceiling: int) -> bool:
        with self._lock:
            current = self._guest_counts.get(guest_id, 0)
            if current + count > ceiling:
                return False
            self._guest_counts[guest_id] = current + count
            return True

    def release_guest_files(self, guest_id: str, count: int) -> None:
        with self._lock:
            current = self._guest_counts.get(guest_id, 0)
            self._guest_counts[guest_id] = max(current - count, 0)

    def increment_usage(self, owner_id: str, delta: UsageDelta, at: datetime) -> None:
        with self._lock:
            key = (owner_id, at.year, at.month)
            counter = self._usage.setdefault(
                key, UsageCounter(owner_id=owner_id, year=at.year, month=at.month)
            )
            counter.apply(delta, day=at.day)

    def get_usage(self, owner_id: str, year: int, month: int) -> UsageCounter | None:
        with self._lock:
            counter = self._usage.get((owner_id, year, month))
            return copy.deepcopy(counter) if counter is not None else None
