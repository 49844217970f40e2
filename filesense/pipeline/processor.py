from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

from filesense.config.settings import Settings
from filesense.extraction.factory import TextExtractorFactory
from filesense.logging.logger import Log
from filesense.naming.factory import SuggesterFactory
from filesense.pipeline.exceptions import SessionFatalError
from filesense.pipeline.models import (
    GUEST_OWNER_ID,
    STAGE_ORDER,
    FileRecord,
    ProgressSnapshot,
    Stage,
    StageResult,
    UsageDelta,
    stage_end_progress,
)
from filesense.pipeline.session import ProcessingSession
from filesense.pipeline.stages import (
    AnalyzeStageHandler,
    ExtractStageHandler,
    RenameStageHandler,
    StageExecutor,
)
from filesense.renaming.local_renamer import LocalFileRenamer
from filesense.store.base import BaseSessionStore
from filesense.store.exceptions import FileRecordNotFoundError

_STAGE_DONE_MESSAGES: dict[Stage, str] = {
    Stage.EXTRACT: "Text extraction finished",
    Stage.ANALYZE: "AI analysis finished",
}


def _now() -> datetime:
    return datetime.now(UTC)


def _is_finished(file: FileRecord, completed_stage: Stage) -> bool:
    """Whether no later stage will pick the file up."""
    if completed_stage == Stage.EXTRACT:
        return not file.extracted_text
    if completed_stage == Stage.ANALYZE:
        return not file.extracted_text or not file.suggested_name
    return True


class SessionProcessor:
    """Runs a claimed session through the pipeline.

    Pipeline: extract -> analyze -> rename -> complete -> usage accounting.
    Per-file failures are absorbed by the StageExecutor; anything raised
    from here is fatal for the session and handled by the SessionRunner.
    """

    def __init__(
        self,
        store: BaseSessionStore,
        executor: StageExecutor,
        clock: Callable[[], datetime] = _now,
    ) -> None:
        self._store = store
        self._executor = executor
        self._clock = clock

    def process(self, session: ProcessingSession) -> ProcessingSession:
        """Run every stage for the session and persist its final state."""
        Log.info(f"Processing session {session.id}: {session.total_files} files")

        if self._cancel_requested(session):
            return self._cancel(session)

        files = self._load_files(session)
        session.start()
        self._store.save_session(session)

        api_calls = 0
        for stage in STAGE_ORDER:
            if self._cancel_requested(session):
                return self._cancel(session)
            result = self._executor.run_stage(
                stage,
                files,
                on_progress=lambda snapshot: self._report(session, snapshot),
                should_cancel=lambda: self._cancel_requested(session),
            )
            self._record_stage(session, result)
            if stage == Stage.ANALYZE:
                api_calls = len(result.succeeded_ids) - len(result.fallback_ids)
            if result.cancelled:
                return self._cancel(session)

        if self._cancel_requested(session):
            return self._cancel(session)

        self._mark_processed(files)
        session.complete()
        self._store.save_session(session)
        Log.info(
            f"Session {session.id} completed: {session.processed_files} processed, "
            f"{session.renamed_files} renamed, {session.failed_files} failed"
        )

        self._record_usage(session, files, api_calls)
        return session

    def _load_files(self, session: ProcessingSession) -> list[FileRecord]:
        try:
            return self._store.get_files(session.file_ids)
        except FileRecordNotFoundError as exc:
            raise SessionFatalError(f"Session {session.id}: {exc}") from exc

    def _cancel_requested(self, session: ProcessingSession) -> bool:
        return self._store.is_cancel_requested(session.id)

    def _cancel(self, session: ProcessingSession) -> ProcessingSession:
        session.cancel()
        self._store.save_session(session)
        Log.info(f"Session {session.id} cancelled at {session.progress}%")
        return session

    def _report(self, session: ProcessingSession, snapshot: ProgressSnapshot) -> None:
        session.report_progress(snapshot)
        self._store.save_session(session)

    def _record_stage(self, session: ProcessingSession, result: StageResult) -> None:
        files = result.files
        failed_ids = [f.id for f in files if f.is_failed]
        if result.cancelled:
            # Files after the cancellation point were never visited.
            processed = session.processed_files
        else:
            processed = sum(
                1 for f in files if not f.is_failed and _is_finished(f, result.stage)
            )
        renamed = sum(1 for f in files if f.is_renamed)
        session.record_counts(processed, renamed, failed_ids)
        # Only complete() may take the session to 100.
        if not result.cancelled and result.stage != STAGE_ORDER[-1]:
            session.report_progress(
                ProgressSnapshot(
                    stage=result.stage,
                    message=_STAGE_DONE_MESSAGES[result.stage],
                    progress=stage_end_progress(result.stage),
                    current_file=None,
                    current_file_index=session.current_file_index,
                )
            )
        self._store.save_session(session)
        Log.info(
            f"Session {session.id} finished {result.stage.value}: "
            f"{len(result.succeeded_ids)} ok, {len(result.failed_ids)} failed"
        )

    def _mark_processed(self, files: list[FileRecord]) -> None:
        processed_at = self._clock()
        for file in files:
            if file.is_failed:
                continue
            file.is_processed = True
            file.processed_at = processed_at
            self._store.save_file(file)

    def _record_usage(
        self,
        session: ProcessingSession,
        files: list[FileRecord],
        api_calls: int,
    ) -> None:
        if session.owner_id == GUEST_OWNER_ID:
            return
        delta = UsageDelta(
            files_processed=session.processed_files,
            text_extracted=sum(1 for f in files if f.extracted_text),
            files_renamed=session.renamed_files,
            api_calls_made=api_calls,
        )
        self._store.increment_usage(session.owner_id, delta, self._clock())
        self._store.increment_user_files(session.owner_id, session.processed_files)
        Log.info(f"Recorded usage for {session.owner_id}: {delta}")


def build_processor(settings: Settings, store: BaseSessionStore) -> SessionProcessor:
    """Build a SessionProcessor with all required providers."""
    extractor = TextExtractorFactory.create(settings)
    suggester = SuggesterFactory.create(settings)
    renamer = LocalFileRenamer(files_root=Path(settings.files_root))
    executor = StageExecutor(
        handlers={
            Stage.EXTRACT: ExtractStageHandler(extractor),
            Stage.ANALYZE: AnalyzeStageHandler(
                suggester,
                fallback_enabled=settings.naming_fallback_enabled,
                clock=_now,
            ),
            Stage.RENAME: RenameStageHandler(renamer),
        },
        store=store,
    )
    return SessionProcessor(store=store, executor=executor, clock=_now)
