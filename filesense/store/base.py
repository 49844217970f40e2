from abc import ABC, abstractmethod
from datetime import datetime

from filesense.pipeline.models import FileRecord, UsageCounter, UsageDelta, UserAccount
from filesense.pipeline.session import ProcessingSession


class BaseSessionStore(ABC):
    """Persistence contract for files, sessions, users and quota counters.

    Every read returns a detached copy: mutating a returned object never
    changes stored state until it is saved back.
    """

    # -- files ----------------------------------------------------------------

    @abstractmethod
    def create_file(self, file: FileRecord) -> FileRecord:
        """Persist a new file record and return it with timestamps set."""

    @abstractmethod
    def get_file(self, file_id: str) -> FileRecord | None:
        """Return a file record, or None if it does not exist."""

    @abstractmethod
    def get_files(self, file_ids: list[str]) -> list[FileRecord]:
        """Return file records in the order of `file_ids`.

        Raises:
            FileRecordNotFoundError: if any id is unknown.
        """

    @abstractmethod
    def save_file(self, file: FileRecord) -> None:
        """Overwrite the stored derived fields of a file record.

        Raises:
            FileRecordNotFoundError: if the file does not exist.
        """

    @abstractmethod
    def list_files_by_owner(self, owner_id: str, limit: int = 50) -> list[FileRecord]:
        """Return the owner's newest files first."""

    # -- sessions -------------------------------------------------------------

    @abstractmethod
    def create_session(self, session: ProcessingSession) -> None:
        """Persist a new pending session."""

    @abstractmethod
    def get_session(self, session_id: str) -> ProcessingSession | None:
        """Return a session snapshot, or None if it does not exist. Never mutates."""

    @abstractmethod
    def save_session(self, session: ProcessingSession) -> None:
        """Overwrite a session's state. Never clears a pending cancel request.

        Raises:
            SessionNotFoundError: if the session does not exist.
        """

    @abstractmethod
    def claim_next_session(self) -> ProcessingSession | None:
        """Claim the oldest unclaimed pending session for exactly one worker."""

    @abstractmethod
    def request_cancel(self, session_id: str) -> bool:
        """Flag a non-terminal session for cancellation. False if unknown or finished."""

    @abstractmethod
    def is_cancel_requested(self, session_id: str) -> bool:
        """Return whether cancellation has been requested for the session."""

    # -- users ----------------------------------------------------------------

    @abstractmethod
    def create_user(self, user: UserAccount) -> None:
        """Persist a new registered user."""

    @abstractmethod
    def get_user(self, uid: str) -> UserAccount | None:
        """Return a registered user, or None."""

    @abstractmethod
    def increment_user_files(self, uid: str, count: int) -> None:
        """Atomically add `count` to the user's lifetime processed files."""

    # -- quota counters -------------------------------------------------------

    @abstractmethod
    def get_guest_count(self, guest_id: str) -> int:
        """Return how many files have been admitted for a guest identity."""

    @abstractmethod
    def reserve_guest_files(self, guest_id: str, count: int, ceiling: int) -> bool:
        """Atomically admit `count` files unless that would exceed `ceiling`.

        Returns:
            True if the files were admitted and the counter incremented.
        """

    @abstractmethod
    def release_guest_files(self, guest_id: str, count: int) -> None:
        """Give back files admitted by reserve_guest_files that never got a session."""

    @abstractmethod
    def increment_usage(self, owner_id: str, delta: UsageDelta, at: datetime) -> None:
        """Atomically add `delta` to the owner's counter for the month of `at`."""

    @abstractmethod
    def get_usage(self, owner_id: str, year: int, month: int) -> UsageCounter | None:
        """Return the owner's usage counter for a month, or None if unused."""
