from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest

from filesense.extraction.exceptions import ExtractionError
from filesense.naming.exceptions import SuggestionNetworkError
from filesense.pipeline.exceptions import SessionFatalError
from filesense.pipeline.models import (
    GUEST_OWNER_ID,
    FileRecord,
    FileType,
    Stage,
    UserAccount,
)
from filesense.pipeline.processor import SessionProcessor
from filesense.pipeline.session import ProcessingSession, SessionStatus
from filesense.pipeline.stages import (
    AnalyzeStageHandler,
    ExtractStageHandler,
    RenameStageHandler,
    StageExecutor,
)
from filesense.store.exceptions import StoreError
from filesense.store.memory_store import InMemorySessionStore
from filesense.worker.session_runner import SessionRunner

FIXED_NOW = datetime(2024, 3, 15, 10, 30, tzinfo=UTC)


class _RecordingStore(InMemorySessionStore):
    """Keeps every persisted session state so tests can check what pollers saw."""

    def __init__(self) -> None:
        super().__init__()
        self.saved: list[ProcessingSession] = []

    def save_session(self, session: ProcessingSession) -> None:
        super().save_session(session)
        stored = self.get_session(session.id)
        assert stored is not None
        self.saved.append(stored)


class _MarkProcessedFailsStore(_RecordingStore):
    """Loses the connection once the pipeline starts flagging files as processed."""

    def save_file(self, file: FileRecord) -> None:
        if file.is_processed:
            raise StoreError("connection lost")
        super().save_file(file)


def _make_file(file_id: str, owner_id: str = "user-1") -> FileRecord:
    return FileRecord(
        id=file_id,
        owner_id=owner_id,
        original_name=f"{file_id}.png",
        locator=f"{file_id}.png",
        file_type=FileType.IMAGE,
        file_size=100,
        mime_type="image/png",
    )


def _make_processor(
    file_ids: list[str],
    owner_id: str = "user-1",
    store_cls: type[_RecordingStore] = _RecordingStore,
) -> tuple[SessionProcessor, ProcessingSession, _RecordingStore, MagicMock, MagicMock, MagicMock]:
    store = store_cls()
    store.create_user(UserAccount(uid="user-1", monthly_limit=20))
    for file_id in file_ids:
        store.create_file(_make_file(file_id, owner_id))
    session = ProcessingSession(id="s1", owner_id=owner_id, file_ids=file_ids)
    store.create_session(session)

    extractor = MagicMock()
    suggester = MagicMock()
    renamer = MagicMock()
    renamer.rename.side_effect = lambda locator, name: f"{name}.png"
    executor = StageExecutor(
        handlers={
            Stage.EXTRACT: ExtractStageHandler(extractor),
            Stage.ANALYZE: AnalyzeStageHandler(suggester, clock=lambda: FIXED_NOW),
            Stage.RENAME: RenameStageHandler(renamer),
        },
        store=store,
    )
    processor = SessionProcessor(store=store, executor=executor, clock=lambda: FIXED_NOW)
    return processor, session, store, extractor, suggester, renamer


class TestAllFilesSucceed:
    def test_session_completes_with_full_counts(self) -> None:
        processor, session, store, extractor, suggester, _renamer = _make_processor(
            ["a", "b", "c"]
        )
        extractor.extract.return_value = "invoice text"
        suggester.suggest.side_effect = ["Invoice_A", "Invoice_B", "Invoice_C"]

        processor.process(session)

        final = store.get_session("s1")
        assert final is not None
        assert final.status == SessionStatus.COMPLETED
        assert final.progress == 100
        assert final.processed_files == 3
        assert final.renamed_files == 3
        assert final.failed_files == 0
        assert final.completed_at is not None

    def test_files_end_processed_and_renamed(self) -> None:
        processor, session, store, extractor, suggester, _renamer = _make_processor(["a"])
        extractor.extract.return_value = "invoice text"
        suggester.suggest.return_value = "Invoice_A"

        processor.process(session)

        stored = store.get_file("a")
        assert stored is not None
        assert stored.is_processed is True
        assert stored.is_renamed is True
        assert stored.name == "Invoice_A.png"
        assert stored.processed_at == FIXED_NOW

    def test_observed_progress_is_monotonic(self) -> None:
        processor, session, store, extractor, suggester, _renamer = _make_processor(
            ["a", "b", "c"]
        )
        extractor.extract.return_value = "text"
        suggester.suggest.return_value = "Name"

        processor.process(session)

        observed = [s.progress for s in store.saved]
        assert observed == sorted(observed)
        assert observed[-1] == 100
        assert all(
            s.status == SessionStatus.COMPLETED for s in store.saved if s.progress == 100
        )
        assert all(s.processed_files + s.failed_files <= s.total_files for s in store.saved)


class TestOneExtractionFails:
    def test_only_successful_file_is_analyzed(self) -> None:
        processor, session, store, extractor, suggester, _renamer = _make_processor(["a", "b"])
        extractor.extract.side_effect = [ExtractionError("blurry"), "receipt text"]
        suggester.suggest.return_value = "Receipt_B"

        processor.process(session)

        suggester.suggest.assert_called_once()
        final = store.get_session("s1")
        assert final is not None
        assert final.status == SessionStatus.COMPLETED
        assert final.processed_files == 1
        assert final.failed_file_ids == ["a"]
        assert final.renamed_files <= 1

    def test_failed_file_keeps_its_error(self) -> None:
        processor, session, store, extractor, suggester, _renamer = _make_processor(["a", "b"])
        extractor.extract.side_effect = [ExtractionError("blurry"), "receipt text"]
        suggester.suggest.return_value = "Receipt_B"

        processor.process(session)

        failed = store.get_file("a")
        assert failed is not None
        assert failed.failed_stage == Stage.EXTRACT
        assert failed.error_message == "blurry"
        assert failed.is_processed is False


class TestStageGating:
    def test_file_without_text_is_never_named(self) -> None:
        processor, session, store, extractor, suggester, renamer = _make_processor(["a"])
        extractor.extract.return_value = ""

        processor.process(session)

        suggester.suggest.assert_not_called()
        renamer.rename.assert_not_called()
        stored = store.get_file("a")
        assert stored is not None
        assert stored.suggested_name is None
        assert stored.is_renamed is False
        final = store.get_session("s1")
        assert final is not None
        assert final.processed_files == 1


class TestUsageAccounting:
    def test_registered_owner_usage_is_recorded(self) -> None:
        processor, session, store, extractor, suggester, _renamer = _make_processor(
            ["a", "b", "c"]
        )
        extractor.extract.side_effect = ["invoice", "", "report"]
        suggester.suggest.side_effect = [SuggestionNetworkError("offline"), "Monthly_Report"]

        processor.process(session)

        usage = store.get_usage("user-1", 2024, 3)
        assert usage is not None
        assert usage.files_processed == 3
        assert usage.text_extracted == 2
        assert usage.files_renamed == 2
        assert usage.api_calls_made == 1
        assert usage.daily_stats["15"].files_processed == 3
        user = store.get_user("user-1")
        assert user is not None
        assert user.total_files_processed == 3

    def test_guest_session_records_no_usage(self) -> None:
        processor, session, store, extractor, suggester, _renamer = _make_processor(
            ["a"], owner_id=GUEST_OWNER_ID
        )
        extractor.extract.return_value = "text"
        suggester.suggest.return_value = "Name"

        processor.process(session)

        assert store.get_usage(GUEST_OWNER_ID, 2024, 3) is None


class TestCancellation:
    def test_cancel_between_files(self) -> None:
        processor, session, store, extractor, suggester, _renamer = _make_processor(["a", "b"])

        def extract_then_cancel(locator: str, file_type: FileType) -> str:
            store.request_cancel("s1")
            return "text"

        extractor.extract.side_effect = extract_then_cancel

        processor.process(session)

        final = store.get_session("s1")
        assert final is not None
        assert final.status == SessionStatus.CANCELLED
        assert final.error_message == "Processing cancelled"
        assert extractor.extract.call_count == 1
        suggester.suggest.assert_not_called()
        assert store.get_usage("user-1", 2024, 3) is None

    def test_cancel_before_start(self) -> None:
        processor, session, store, extractor, _suggester, _renamer = _make_processor(["a"])
        store.request_cancel("s1")

        processor.process(session)

        final = store.get_session("s1")
        assert final is not None
        assert final.status == SessionStatus.CANCELLED
        extractor.extract.assert_not_called()


    def test_cancel_after_last_eligible_file_skips_remaining_stages(self) -> None:
        processor, session, store, extractor, suggester, renamer = _make_processor(["a"])

        def extract_then_cancel(locator: str, file_type: FileType) -> str:
            store.request_cancel("s1")
            return ""

        extractor.extract.side_effect = extract_then_cancel

        processor.process(session)

        final = store.get_session("s1")
        assert final is not None
        assert final.status == SessionStatus.CANCELLED
        assert final.progress < 100
        suggester.suggest.assert_not_called()
        renamer.rename.assert_not_called()
        stored = store.get_file("a")
        assert stored is not None
        assert stored.is_processed is False
        assert store.get_usage("user-1", 2024, 3) is None

    def test_cancel_during_last_stage_is_not_completed(self) -> None:
        processor, session, store, extractor, suggester, renamer = _make_processor(["a"])
        extractor.extract.return_value = "invoice"
        suggester.suggest.return_value = "Invoice_A"

        def rename_then_cancel(locator: str, name: str) -> str:
            store.request_cancel("s1")
            return f"{name}.png"

        renamer.rename.side_effect = rename_then_cancel

        processor.process(session)

        final = store.get_session("s1")
        assert final is not None
        assert final.status == SessionStatus.CANCELLED
        assert final.progress < 100
        assert store.get_usage("user-1", 2024, 3) is None


class TestFatalErrors:
    def test_missing_file_is_fatal(self) -> None:
        processor, _session, store, _e, _s, _r = _make_processor(["a"])
        session = ProcessingSession(id="s2", owner_id="user-1", file_ids=["a", "ghost"])
        store.create_session(session)

        with pytest.raises(SessionFatalError, match="ghost"):
            processor.process(session)


class TestFailureAfterLastStage:
    def test_failed_session_never_reports_full_progress(self) -> None:
        processor, session, store, extractor, suggester, _renamer = _make_processor(
            ["a", "b"], store_cls=_MarkProcessedFailsStore
        )
        extractor.extract.return_value = "invoice"
        suggester.suggest.side_effect = ["Invoice_A", "Invoice_B"]

        SessionRunner(processor, store).run(session)

        final = store.get_session("s1")
        assert final is not None
        assert final.status == SessionStatus.FAILED
        assert final.error_message == "connection lost"
        assert final.progress < 100
        assert all(
            s.progress < 100 for s in store.saved if s.status != SessionStatus.COMPLETED
        )
        assert store.get_usage("user-1", 2024, 3) is None

    def test_progress_stays_below_full_until_complete(self) -> None:
        processor, session, store, extractor, suggester, _renamer = _make_processor(["a"])
        extractor.extract.return_value = "invoice"
        suggester.suggest.return_value = "Invoice_A"

        processor.process(session)

        before_complete = [s for s in store.saved if s.status == SessionStatus.PROCESSING]
        assert before_complete
        assert max(s.progress for s in before_complete) < 100


class TestFallbackDate:
    def test_fallback_name_uses_processor_clock(self) -> None:
        processor, session, store, extractor, suggester, _renamer = _make_processor(["a"])
        extractor.extract.return_value = "Payment receipt"
        suggester.suggest.side_effect = SuggestionNetworkError("offline")

        processor.process(session)

        stored = store.get_file("a")
        assert stored is not None
        assert stored.name == "Receipt_20240315.png"
