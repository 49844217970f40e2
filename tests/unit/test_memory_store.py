import threading
from datetime import UTC, datetime

import pytest

from filesense.pipeline.models import FileRecord, FileType, UsageDelta, UserAccount
from filesense.pipeline.session import ProcessingSession, SessionStatus
from filesense.store.exceptions import FileRecordNotFoundError, SessionNotFoundError
from filesense.store.memory_store import InMemorySessionStore


def _make_file(file_id: str, owner_id: str = "user-1") -> FileRecord:
    return FileRecord(
        id=file_id,
        owner_id=owner_id,
        original_name=f"{file_id}.pdf",
        locator=f"{file_id}.pdf",
        file_type=FileType.PDF,
        file_size=10,
        mime_type="application/pdf",
    )


def _make_session(session_id: str, created_at: datetime | None = None) -> ProcessingSession:
    return ProcessingSession(
        id=session_id, owner_id="user-1", file_ids=["a"], created_at=created_at
    )


class TestFiles:
    def test_reads_are_copies(self) -> None:
        store = InMemorySessionStore()
        store.create_file(_make_file("a"))

        read = store.get_file("a")
        assert read is not None
        read.extracted_text = "changed"

        again = store.get_file("a")
        assert again is not None
        assert again.extracted_text is None

    def test_get_files_keeps_order(self) -> None:
        store = InMemorySessionStore()
        for file_id in ("a", "b", "c"):
            store.create_file(_make_file(file_id))

        assert [f.id for f in store.get_files(["c", "a"])] == ["c", "a"]

    def test_get_files_reports_missing(self) -> None:
        store = InMemorySessionStore()
        store.create_file(_make_file("a"))
        with pytest.raises(FileRecordNotFoundError, match="ghost"):
            store.get_files(["a", "ghost"])

    def test_save_unknown_file_raises(self) -> None:
        with pytest.raises(FileRecordNotFoundError):
            InMemorySessionStore().save_file(_make_file("a"))

    def test_list_by_owner_newest_first(self) -> None:
        store = InMemorySessionStore()
        for day, file_id in enumerate(("old", "mid", "new"), start=1):
            file = _make_file(file_id)
            file.created_at = datetime(2024, 1, day, tzinfo=UTC)
            store.create_file(file)
        store.create_file(_make_file("other", owner_id="user-2"))

        assert [f.id for f in store.list_files_by_owner("user-1", limit=2)] == ["new", "mid"]


class TestSessions:
    def test_claims_oldest_pending_once(self) -> None:
        store = InMemorySessionStore()
        store.create_session(_make_session("late", datetime(2024, 1, 2, tzinfo=UTC)))
        store.create_session(_make_session("early", datetime(2024, 1, 1, tzinfo=UTC)))

        first = store.claim_next_session()
        second = store.claim_next_session()

        assert first is not None and first.id == "early"
        assert second is not None and second.id == "late"
        assert store.claim_next_session() is None

    def test_concurrent_claims_are_exclusive(self) -> None:
        store = InMemorySessionStore()
        for i in range(20):
            store.create_session(_make_session(f"s{i}"))
        claimed: list[str] = []
        lock = threading.Lock()

        def claim_all() -> None:
            while (session := store.claim_next_session()) is not None:
                with lock:
                    claimed.append(session.id)

        threads = [threading.Thread(target=claim_all) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(claimed) == sorted(f"s{i}" for i in range(20))

    def test_cancel_flag_survives_save(self) -> None:
        store = InMemorySessionStore()
        session = _make_session("s1")
        store.create_session(session)

        assert store.request_cancel("s1") is True
        session.start()
        store.save_session(session)

        assert store.is_cancel_requested("s1") is True

    def test_cannot_cancel_finished_session(self) -> None:
        store = InMemorySessionStore()
        session = _make_session("s1")
        store.create_session(session)
        session.start()
        session.complete()
        store.save_session(session)

        assert store.request_cancel("s1") is False
        assert store.request_cancel("missing") is False

    def test_save_unknown_session_raises(self) -> None:
        with pytest.raises(SessionNotFoundError):
            InMemorySessionStore().save_session(_make_session("s1"))

    def test_saved_state_is_returned(self) -> None:
        store = InMemorySessionStore()
        session = _make_session("s1")
        store.create_session(session)
        session.start()
        store.save_session(session)

        stored = store.get_session("s1")
        assert stored is not None
        assert stored.status == SessionStatus.PROCESSING


class TestGuestReservation:
    def test_reserves_up_to_ceiling(self) -> None:
        store = InMemorySessionStore()
        assert store.reserve_guest_files("g", 3, ceiling=5) is True
        assert store.reserve_guest_files("g", 3, ceiling=5) is False
        assert store.reserve_guest_files("g", 2, ceiling=5) is True
        assert store.get_guest_count("g") == 5

    def test_concurrent_reservations_respect_ceiling(self) -> None:
        store = InMemorySessionStore()
        results: list[bool] = []
        lock = threading.Lock()
        barrier = threading.Barrier(10)

        def reserve() -> None:
            barrier.wait()
            ok = store.reserve_guest_files("g", 1, ceiling=5)
            with lock:
                results.append(ok)

        threads = [threading.Thread(target=reserve) for _ in range(10)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results.count(True) == 5
        assert store.get_guest_count("g") == 5

    def test_release_returns_slots(self) -> None:
        store = InMemorySessionStore()
        store.reserve_guest_files("g", 4, ceiling=5)

        store.release_guest_files("g", 4)

        assert store.get_guest_count("g") == 0
        assert store.reserve_guest_files("g", 5, ceiling=5) is True

    def test_release_never_goes_negative(self) -> None:
        store = InMemorySessionStore()
        store.release_guest_files("g", 2)
        assert store.get_guest_count("g") == 0


class TestUsersAndUsage:
    def test_increment_user_files(self) -> None:
        store = InMemorySessionStore()
        store.create_user(UserAccount(uid="u1", monthly_limit=20))
        store.increment_user_files("u1", 3)
        store.increment_user_files("u1", 2)

        user = store.get_user("u1")
        assert user is not None
        assert user.total_files_processed == 5

    def test_usage_split_by_month(self) -> None:
        store = InMemorySessionStore()
        store.increment_usage("u1", UsageDelta(files_processed=2), datetime(2024, 1, 31, tzinfo=UTC))
        store.increment_usage("u1", UsageDelta(files_processed=3), datetime(2024, 2, 1, tzinfo=UTC))

        january = store.get_usage("u1", 2024, 1)
        february = store.get_usage("u1", 2024, 2)
        assert january is not None and january.files_processed == 2
        assert february is not None and february.files_processed == 3
        assert store.get_usage("u1", 2024, 3) is None
