import uuid
from collections.abc import Callable
from datetime import UTC, datetime

from filesense.config.settings import Settings
from filesense.logging.logger import Log
from filesense.naming.base import BaseFilenameSuggester
from filesense.naming.exceptions import SuggestionError
from filesense.naming.factory import SuggesterFactory
from filesense.naming.fallback import fallback_filename
from filesense.pipeline.exceptions import (
    BatchValidationError,
    QuotaExceededError,
    UnknownUserError,
)
from filesense.pipeline.models import (
    GUEST_OWNER_ID,
    FileRecord,
    FilenameSuggestion,
    UsageCounter,
    UsageDelta,
    UserAccount,
    UserRole,
)
from filesense.pipeline.quota import GuestOwner, OwnerContext, QuotaGate, RegisteredOwner
from filesense.pipeline.session import ProcessingSession
from filesense.store.base import BaseSessionStore


def _now() -> datetime:
    return datetime.now(UTC)


class PipelineOrchestrator:
    """Entry point for callers: admits batches and answers status polls.

    `submit` only persists a pending session; a Worker picks it up and runs
    it detached from the caller. Everything after submission is observed by
    polling `get_status`.
    """

    def __init__(
        self,
        store: BaseSessionStore,
        quota_gate: QuotaGate,
        suggester: BaseFilenameSuggester,
        settings: Settings,
        clock: Callable[[], datetime] = _now,
    ) -> None:
        self._store = store
        self._quota_gate = quota_gate
        self._suggester = suggester
        self._settings = settings
        self._clock = clock

    def register_user(
        self,
        uid: str,
        role: UserRole = UserRole.FREE,
        monthly_limit: int | None = None,
    ) -> UserAccount:
        user = UserAccount(
            uid=uid,
            role=role,
            monthly_limit=(
                monthly_limit if monthly_limit is not None else self._settings.free_monthly_limit
            ),
        )
        self._store.create_user(user)
        Log.info(f"Registered user {uid}", role=role.value)
        return user

    def submit(
        self,
        file_ids: list[str],
        *,
        user_id: str | None = None,
        guest_id: str | None = None,
    ) -> str:
        """Admit a batch and queue it as a pending session.

        Returns:
            The new session id. Nothing has run yet when this returns.

        Raises:
            BatchValidationError: malformed request or files not owned by the caller.
            UnknownUserError: user_id has no account.
            QuotaExceededError: the batch would exceed the caller's quota.
        """
        self._validate_batch(file_ids, user_id=user_id, guest_id=guest_id)
        owner = self._owner_context(user_id=user_id, guest_id=guest_id)

        requested = len(file_ids)
        decision = self._quota_gate.can_process(owner, requested)
        if not decision.allowed:
            remaining = decision.remaining or 0
            Log.warning(
                f"Quota exceeded: requested {requested}, remaining {remaining}",
                owner=user_id or guest_id,
            )
            raise QuotaExceededError(
                f"Quota exceeded: {requested} files requested, {max(remaining, 0)} remaining",
                remaining=remaining,
                requested=requested,
            )

        if isinstance(owner, GuestOwner):
            self._reserve_guest_files(owner.guest_id, requested)

        session = ProcessingSession(
            id=str(uuid.uuid4()),
            owner_id=user_id if user_id is not None else GUEST_OWNER_ID,
            file_ids=list(file_ids),
        )
        try:
            self._store.create_session(session)
        except Exception:
            if isinstance(owner, GuestOwner):
                self._store.release_guest_files(owner.guest_id, requested)
            raise
        Log.info(
            f"Session {session.id} queued with {requested} files",
            owner=user_id or guest_id,
        )
        return session.id

    def get_status(self, session_id: str) -> ProcessingSession | None:
        """Current session snapshot, or None for an unknown id. Never mutates."""
        return self._store.get_session(session_id)

    def get_session_files(self, session_id: str) -> list[FileRecord]:
        session = self._store.get_session(session_id)
        if session is None:
            return []
        return self._store.get_files(session.file_ids)

    def cancel(self, session_id: str) -> bool:
        """Ask the worker running the session to stop at the next file boundary.

        Returns False for unknown or already finished sessions.
        """
        requested = self._store.request_cancel(session_id)
        if requested:
            Log.info(f"Cancellation requested for session {session_id}")
        return requested

    def generate_filename(
        self,
        extracted_text: str,
        original_filename: str,
        file_type: str | None = None,
        *,
        user_id: str | None = None,
    ) -> FilenameSuggestion:
        """Suggest a name for a single file without creating a session."""
        if not extracted_text or not extracted_text.strip():
            raise BatchValidationError("extracted_text is required")
        if not original_filename or not original_filename.strip():
            raise BatchValidationError("original_filename is required")

        try:
            suggested = self._suggester.suggest(extracted_text, original_filename, file_type)
            used_fallback = False
        except SuggestionError as exc:
            if not self._settings.naming_fallback_enabled:
                raise
            Log.warning(f"Naming provider failed, using fallback name: {exc}")
            suggested = fallback_filename(extracted_text, self._clock().date())
            used_fallback = True

        if user_id is not None and not used_fallback:
            self._store.increment_usage(user_id, UsageDelta(api_calls_made=1), self._clock())

        return FilenameSuggestion(
            original_filename=original_filename,
            suggested_filename=suggested,
            used_fallback=used_fallback,
        )

    def list_user_files(self, user_id: str, limit: int = 50) -> list[FileRecord]:
        if limit <= 0:
            raise BatchValidationError(f"limit must be positive, got {limit}")
        return self._store.list_files_by_owner(user_id, limit)

    def get_usage(
        self,
        user_id: str,
        year: int | None = None,
        month: int | None = None,
    ) -> UsageCounter:
        """Usage for one month, defaulting to the current one. Zeroed if nothing ran."""
        now = self._clock()
        year = year if year is not None else now.year
        month = month if month is not None else now.month
        counter = self._store.get_usage(user_id, year, month)
        if counter is None:
            return UsageCounter(owner_id=user_id, year=year, month=month)
        return counter

    def _validate_batch(
        self,
        file_ids: list[str],
        *,
        user_id: str | None,
        guest_id: str | None,
    ) -> None:
        if (user_id is None) == (guest_id is None):
            raise BatchValidationError("Exactly one of user_id or guest_id is required")
        if not file_ids:
            raise BatchValidationError("No files to process")
        if len(set(file_ids)) != len(file_ids):
            raise BatchValidationError("Duplicate file ids in batch")

        expected_owner = user_id if user_id is not None else GUEST_OWNER_ID
        for file_id in file_ids:
            file = self._store.get_file(file_id)
            if file is None:
                raise BatchValidationError(f"File {file_id} not found")
            if file.owner_id != expected_owner:
                raise BatchValidationError(f"File {file_id} does not belong to the caller")

    def _owner_context(self, *, user_id: str | None, guest_id: str | None) -> OwnerContext:
        if guest_id is not None:
            return GuestOwner(
                guest_id=guest_id,
                current_guest_count=self._store.get_guest_count(guest_id),
            )

        user = self._store.get_user(user_id)
        if user is None:
            raise UnknownUserError(f"User {user_id} not found")
        now = self._clock()
        usage = self._store.get_usage(user.uid, now.year, now.month)
        return RegisteredOwner(
            user_id=user.uid,
            monthly_limit=user.monthly_limit,
            files_processed_this_month=usage.files_processed if usage is not None else 0,
            role=user.role,
        )

    def _reserve_guest_files(self, guest_id: str, count: int) -> None:
        ceiling = self._quota_gate.guest_file_limit
        if self._store.reserve_guest_files(guest_id, count, ceiling):
            return
        # Another submission for the same guest won the race.
        remaining = ceiling - self._store.get_guest_count(guest_id)
        Log.warning(f"Guest reservation rejected: requested {count}", guest=guest_id)
        raise QuotaExceededError(
            f"Guest limit reached: {count} files requested, {max(remaining, 0)} remaining",
            remaining=remaining,
            requested=count,
        )


def build_orchestrator(settings: Settings, store: BaseSessionStore) -> PipelineOrchestrator:
    """Build a PipelineOrchestrator with all required dependencies."""
    return PipelineOrchestrator(
        store=store,
        quota_gate=QuotaGate(guest_file_limit=settings.guest_file_limit),
        suggester=SuggesterFactory.create(settings),
        settings=settings,
    )
