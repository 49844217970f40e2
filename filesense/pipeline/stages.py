from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import PurePath
from typing import ClassVar

from filesense.extraction.base import BaseTextExtractor
from filesense.logging.logger import Log
from filesense.naming.base import BaseFilenameSuggester
from filesense.naming.exceptions import SuggestionError
from filesense.naming.fallback import fallback_filename
from filesense.pipeline.models import (
    FileRecord,
    ProgressSnapshot,
    Stage,
    StageResult,
    stage_progress,
)
from filesense.renaming.base import BaseRenamer
from filesense.store.base import BaseSessionStore

ProgressCallback = Callable[[ProgressSnapshot], None]
CancelCheck = Callable[[], bool]


def _now() -> datetime:
    return datetime.now(UTC)


def base_name(filename: str) -> str:
    stem, dot, _ext = filename.rpartition(".")
    return stem if dot and stem else filename


class StageHandler(ABC):
    """Per-file unit of work for one pipeline stage."""

    stage: ClassVar[Stage]

    @abstractmethod
    def is_eligible(self, file: FileRecord) -> bool:
        """Whether the file takes part in this stage at all."""

    @abstractmethod
    def run(self, file: FileRecord) -> bool:
        """Do the stage's work and set the file's derived field.

        Returns:
            False if the work was done in degraded (fallback) mode.

        Raises:
            Exception: any provider error; the executor records it as a
                failure of this file only.
        """

    @abstractmethod
    def describe(self, file: FileRecord) -> str:
        """Human-readable progress message for the file."""


class ExtractStageHandler(StageHandler):
    stage = Stage.EXTRACT

    def __init__(self, extractor: BaseTextExtractor) -> None:
        self._extractor = extractor

    def is_eligible(self, file: FileRecord) -> bool:
        return True

    def run(self, file: FileRecord) -> bool:
        file.extracted_text = self._extractor.extract(file.locator, file.file_type)
        return True

    def describe(self, file: FileRecord) -> str:
        return f"Extracting text from {file.name}..."


class AnalyzeStageHandler(StageHandler):
    stage = Stage.ANALYZE

    def __init__(
        self,
        suggester: BaseFilenameSuggester,
        fallback_enabled: bool = True,
        clock: Callable[[], datetime] = _now,
    ) -> None:
        self._suggester = suggester
        self._fallback_enabled = fallback_enabled
        self._clock = clock

    def is_eligible(self, file: FileRecord) -> bool:
        return bool(file.extracted_text)

    def run(self, file: FileRecord) -> bool:
        text = file.extracted_text or ""
        try:
            file.suggested_name = self._suggester.suggest(
                text, file.original_name, file.file_type.value
            )
            return True
        except SuggestionError as exc:
            if not self._fallback_enabled:
                raise
            file.suggested_name = fallback_filename(text, self._clock().date())
            Log.warning(
                f"Naming provider failed for file {file.id}, using fallback name",
                error=str(exc),
                fallback=file.suggested_name,
            )
            return False

    def describe(self, file: FileRecord) -> str:
        return f"Analyzing {file.name}..."


class RenameStageHandler(StageHandler):
    stage = Stage.RENAME

    def __init__(self, renamer: BaseRenamer) -> None:
        self._renamer = renamer

    def is_eligible(self, file: FileRecord) -> bool:
        return bool(file.suggested_name)

    def run(self, file: FileRecord) -> bool:
        suggested = file.suggested_name or ""
        if suggested == base_name(file.name):
            Log.info(f"File {file.id} already named {file.name}, nothing to rename")
            return True
        file.locator = self._renamer.rename(file.locator, suggested)
        file.name = PurePath(file.locator).name
        file.is_renamed = file.name != file.original_name
        return True

    def describe(self, file: FileRecord) -> str:
        return f"Renaming {file.name}..."


class StageExecutor:
    """Runs one stage over a file list, isolating per-file provider failures."""

    def __init__(self, handlers: dict[Stage, StageHandler], store: BaseSessionStore) -> None:
        self._handlers = handlers
        self._store = store

    def run_stage(
        self,
        stage: Stage,
        files: list[FileRecord],
        on_progress: ProgressCallback,
        should_cancel: CancelCheck | None = None,
    ) -> StageResult:
        """Visit every eligible file in list order.

        Files that failed an earlier stage or are not eligible pass through
        untouched. Store errors are not caught: they end the session.
        """
        handler = self._handlers[stage]
        eligible = [f for f in files if not f.is_failed and handler.is_eligible(f)]
        positions = {f.id: i for i, f in enumerate(files)}
        result = StageResult(stage=stage, files=files)
        Log.info(f"Stage {stage.value}: {len(eligible)} of {len(files)} files eligible")

        for index, file in enumerate(eligible):
            if should_cancel is not None and should_cancel():
                Log.info(f"Stage {stage.value} cancelled before file {file.id}")
                result.cancelled = True
                return result

            file.mark_processing()
            self._store.save_file(file)
            on_progress(
                ProgressSnapshot(
                    stage=stage,
                    message=handler.describe(file),
                    progress=stage_progress(stage, index, len(eligible)),
                    current_file=file.name,
                    current_file_index=positions[file.id],
                )
            )

            try:
                provider_handled = handler.run(file)
            except Exception as exc:
                Log.warning(
                    f"Stage {stage.value} failed for file {file.id}: {exc}",
                    file=file.name,
                )
                file.mark_failed(stage, str(exc) or type(exc).__name__)
                result.failed_ids.append(file.id)
            else:
                file.mark_completed()
                result.succeeded_ids.append(file.id)
                if not provider_handled:
                    result.fallback_ids.append(file.id)
            self._store.save_file(file)

        return result
