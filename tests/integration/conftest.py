import os
import uuid
from collections.abc import Generator
from pathlib import Path
from typing import Any

import psycopg
import pytest

from filesense.config.settings import Settings
from filesense.database.connection import apply_schema, close_pool, get_connection, init_pool
from filesense.pipeline.models import FileRecord, FileType, UserAccount
from filesense.store.postgres_store import PostgresSessionStore

_TABLES = (
    "usage_daily",
    "usage_counters",
    "guest_quotas",
    "processing_sessions",
    "files",
    "users",
)


def _test_settings() -> Settings:
    os.environ.setdefault("DB_DATABASE", "filesense_test")
    return Settings()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return _test_settings()


@pytest.fixture(scope="session")
def integration_pool(test_settings: Settings) -> Generator[None, None, None]:
    try:
        init_pool(test_settings)
        apply_schema()
    except Exception as e:
        close_pool()
        pytest.skip(
            f"PostgreSQL test DB not available: {e}. "
            "Set DB_* env to point at a disposable database"
        )
    try:
        yield
    finally:
        close_pool()


@pytest.fixture
def db_conn(integration_pool: None) -> Generator[psycopg.Connection[Any], None, None]:
    with get_connection() as conn:
        yield conn


@pytest.fixture
def store(integration_pool: None) -> Generator[PostgresSessionStore, None, None]:
    yield PostgresSessionStore()
    with get_connection() as conn:
        for table in _TABLES:
            conn.execute(f"DELETE FROM {table}")
        conn.commit()


@pytest.fixture
def seed_user(store: PostgresSessionStore) -> UserAccount:
    user = UserAccount(uid=f"user-{uuid.uuid4()}", monthly_limit=20)
    store.create_user(user)
    return user


@pytest.fixture
def files_root(tmp_path: Path) -> Path:
    return tmp_path


@pytest.fixture
def sample_pdf_on_disk(
    store: PostgresSessionStore,
    seed_user: UserAccount,
    files_root: Path,
    sample_pdf_bytes: bytes,
) -> FileRecord:
    file_id = str(uuid.uuid4())
    locator = f"{seed_user.uid}/{file_id}.pdf"
    path = files_root / locator
    path.parent.mkdir(parents=True)
    path.write_bytes(sample_pdf_bytes)
    return store.create_file(
        FileRecord(
            id=file_id,
            owner_id=seed_user.uid,
            original_name="scan_0001.pdf",
            locator=locator,
            file_type=FileType.PDF,
            file_size=len(sample_pdf_bytes),
            mime_type="application/pdf",
        )
    )
