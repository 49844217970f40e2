from unittest.mock import patch

import pytest

from filesense.pipeline.models import FileRecord, FileType
from filesense.store.exceptions import StoreError
from filesense.store.postgres_store import PostgresSessionStore


def _make_file() -> FileRecord:
    return FileRecord(
        id="f1",
        owner_id="user-1",
        original_name="photo.jpg",
        locator="f1.jpg",
        file_type=FileType.IMAGE,
        file_size=2048,
        mime_type="image/jpeg",
    )


class TestCreateFile:
    def test_missing_returned_row_raises_store_error(self) -> None:
        with patch("filesense.store.postgres_store.get_connection") as mock_get_connection:
            conn = mock_get_connection.return_value.__enter__.return_value
            cur = conn.cursor.return_value.__enter__.return_value
            cur.fetchone.return_value = None

            with pytest.raises(StoreError, match="returned no row"):
                PostgresSessionStore().create_file(_make_file())

        conn.commit.assert_called_once()


class TestReleaseGuestFiles:
    def test_decrements_without_going_negative(self) -> None:
        with patch("filesense.store.postgres_store.get_connection") as mock_get_connection:
            conn = mock_get_connection.return_value.__enter__.return_value

            PostgresSessionStore().release_guest_files("conn-1", 3)

        sql, params = conn.execute.call_args.args
        assert "GREATEST(files_admitted - %s, 0)" in sql
        assert params == (3, "conn-1")
        conn.commit.assert_called_once()
