"""Processing session record and its state machine.

pending -> processing -> completed | failed | cancelled
pending -> failed | cancelled

Terminal sessions never change again. Progress only moves forward, and the
current stage only advances in pipeline order.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from filesense.pipeline.exceptions import InvalidSessionTransitionError
from filesense.pipeline.models import STAGE_ORDER, ProgressSnapshot, Stage

CANCELLED_MESSAGE = "Processing cancelled"
UNKNOWN_ERROR_MESSAGE = "Unknown error"


class SessionStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset(
    {SessionStatus.COMPLETED, SessionStatus.FAILED, SessionStatus.CANCELLED}
)


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass
class ProcessingSession:
    """Aggregate record for one batch of files moving through the pipeline."""

    id: str
    owner_id: str
    file_ids: list[str]
    status: SessionStatus = SessionStatus.PENDING
    progress: int = 0
    current_stage: Stage | None = None
    current_file_index: int = 0
    current_file: str | None = None
    message: str = ""
    total_files: int = 0
    processed_files: int = 0
    renamed_files: int = 0
    failed_files: int = 0
    error_message: str | None = None
    failed_file_ids: list[str] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    completed_at: datetime | None = None

    def __post_init__(self) -> None:
        if not self.total_files:
            self.total_files = len(self.file_ids)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def start(self) -> None:
        self._require(SessionStatus.PENDING, action="start")
        self.status = SessionStatus.PROCESSING
        self.current_stage = Stage.EXTRACT
        self.message = "Extracting text from files..."
        self._touch()

    def report_progress(self, snapshot: ProgressSnapshot) -> None:
        """Apply a stage snapshot without ever moving progress or stage backwards."""
        self._require(SessionStatus.PROCESSING, action="report progress on")
        if self.current_stage is not None and (
            STAGE_ORDER.index(snapshot.stage) < STAGE_ORDER.index(self.current_stage)
        ):
            raise InvalidSessionTransitionError(
                f"Session {self.id} is already {self.current_stage.value}, "
                f"cannot go back to {snapshot.stage.value}"
            )
        self.current_stage = snapshot.stage
        self.message = snapshot.message
        self.progress = max(self.progress, min(snapshot.progress, 100))
        self.current_file = snapshot.current_file
        self.current_file_index = snapshot.current_file_index
        self._touch()

    def record_counts(self, processed: int, renamed: int, failed_file_ids: list[str]) -> None:
        if processed + len(failed_file_ids) > self.total_files:
            raise InvalidSessionTransitionError(
                f"Session {self.id}: processed ({processed}) + failed "
                f"({len(failed_file_ids)}) exceeds total ({self.total_files})"
            )
        self.processed_files = processed
        self.renamed_files = renamed
        self.failed_file_ids = list(failed_file_ids)
        self.failed_files = len(failed_file_ids)
        self._touch()

    def complete(self) -> None:
        self._require(SessionStatus.PROCESSING, action="complete")
        self.status = SessionStatus.COMPLETED
        self.progress = 100
        self.current_stage = None
        self.current_file = None
        self.message = "All files processed successfully!"
        self.completed_at = _now()
        self._touch()

    def fail(self, message: str) -> None:
        self._require(SessionStatus.PENDING, SessionStatus.PROCESSING, action="fail")
        self.status = SessionStatus.FAILED
        self.error_message = message.strip() or UNKNOWN_ERROR_MESSAGE
        self.message = "Something went wrong during processing"
        self.completed_at = _now()
        self._touch()

    def cancel(self) -> None:
        self._require(SessionStatus.PENDING, SessionStatus.PROCESSING, action="cancel")
        self.status = SessionStatus.CANCELLED
        self.error_message = CANCELLED_MESSAGE
        self.message = CANCELLED_MESSAGE
        self.completed_at = _now()
        self._touch()

    def _require(self, *allowed: SessionStatus, action: str) -> None:
        if self.status not in allowed:
            raise InvalidSessionTransitionError(
                f"Cannot {action} session {self.id} in status '{self.status.value}'"
            )

    def _touch(self) -> None:
        self.updated_at = _now()
