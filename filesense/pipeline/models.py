from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

GUEST_OWNER_ID = "guest"


class FileType(str, Enum):
    IMAGE = "image"
    PDF = "pdf"
    DOCUMENT = "document"


class FileStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Stage(str, Enum):
    """Pipeline stages in execution order."""

    EXTRACT = "extracting"
    ANALYZE = "analyzing"
    RENAME = "renaming"


STAGE_ORDER: tuple[Stage, ...] = (Stage.EXTRACT, Stage.ANALYZE, Stage.RENAME)

# Share of the overall 0-100 progress range owned by each stage.
STAGE_OFFSETS: dict[Stage, int] = {Stage.EXTRACT: 0, Stage.ANALYZE: 33, Stage.RENAME: 66}
STAGE_WEIGHTS: dict[Stage, int] = {Stage.EXTRACT: 33, Stage.ANALYZE: 33, Stage.RENAME: 34}


def stage_progress(stage: Stage, index: int, total: int) -> int:
    """Overall progress when the file at `index` of `total` starts `stage`."""
    if total <= 0:
        return STAGE_OFFSETS[stage]
    return int(STAGE_OFFSETS[stage] + (index / total) * STAGE_WEIGHTS[stage])


def stage_end_progress(stage: Stage) -> int:
    return STAGE_OFFSETS[stage] + STAGE_WEIGHTS[stage]


def file_type_for_mime(mime_type: str) -> FileType:
    if mime_type.startswith("image/"):
        return FileType.IMAGE
    if mime_type == "application/pdf":
        return FileType.PDF
    return FileType.DOCUMENT


@dataclass
class FileRecord:
    """One file being organized, mutated in place by the running stage."""

    id: str
    owner_id: str
    original_name: str
    locator: str
    file_type: FileType
    file_size: int
    mime_type: str
    name: str = ""
    extracted_text: str | None = None
    suggested_name: str | None = None
    processing_status: FileStatus = FileStatus.PENDING
    processing_progress: int = 0
    is_processed: bool = False
    is_renamed: bool = False
    failed_stage: Stage | None = None
    error_message: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    processed_at: datetime | None = None

    def __post_init__(self) -> None:
        if not self.name:
            self.name = self.original_name

    @property
    def is_failed(self) -> bool:
        return self.failed_stage is not None

    def mark_processing(self) -> None:
        self.processing_status = FileStatus.PROCESSING
        self.processing_progress = 0

    def mark_completed(self) -> None:
        self.processing_status = FileStatus.COMPLETED
        self.processing_progress = 100

    def mark_failed(self, stage: Stage, message: str) -> None:
        self.processing_status = FileStatus.FAILED
        self.processing_progress = 0
        self.failed_stage = stage
        self.error_message = message


@dataclass(frozen=True)
class ProgressSnapshot:
    """What a poller sees about the file a stage is currently working on."""

    stage: Stage
    message: str
    progress: int
    current_file: str | None = None
    current_file_index: int = 0


@dataclass
class StageResult:
    """Outcome of one stage over a file list."""

    stage: Stage
    files: list[FileRecord]
    succeeded_ids: list[str] = field(default_factory=list)
    failed_ids: list[str] = field(default_factory=list)
    fallback_ids: list[str] = field(default_factory=list)
    cancelled: bool = False


@dataclass(frozen=True)
class UsageDelta:
    """Increments applied to an owner's monthly usage counter."""

    files_processed: int = 0
    text_extracted: int = 0
    files_renamed: int = 0
    api_calls_made: int = 0


@dataclass
class DailyUsage:
    files_processed: int = 0
    text_extracted: int = 0
    files_renamed: int = 0


@dataclass
class UsageCounter:
    """Per-owner, per-month usage aggregate with a day-keyed breakdown."""

    owner_id: str
    year: int
    month: int
    files_processed: int = 0
    text_extracted: int = 0
    files_renamed: int = 0
    api_calls_made: int = 0
    daily_stats: dict[str, DailyUsage] = field(default_factory=dict)

    def apply(self, delta: UsageDelta, day: int) -> None:
        self.files_processed += delta.files_processed
        self.text_extracted += delta.text_extracted
        self.files_renamed += delta.files_renamed
        self.api_calls_made += delta.api_calls_made
        daily = self.daily_stats.setdefault(f"{day:02d}", DailyUsage())
        daily.files_processed += delta.files_processed
        daily.text_extracted += delta.text_extracted
        daily.files_renamed += delta.files_renamed


class UserRole(str, Enum):
    FREE = "free"
    PREMIUM = "premium"
    ADMIN = "admin"


@dataclass
class UserAccount:
    """Registered owner; monthly usage lives in UsageCounter."""

    uid: str
    monthly_limit: int
    role: UserRole = UserRole.FREE
    total_files_processed: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class UploadedFile:
    """A file that has already been written to storage and awaits registration."""

    original_name: str
    locator: str
    file_size: int
    mime_type: str


@dataclass(frozen=True)
class FilenameSuggestion:
    """Result of a synchronous single-file naming call."""

    original_filename: str
    suggested_filename: str
    used_fallback: bool
