import uuid

from filesense.config.settings import Settings
from filesense.logging.logger import Log
from filesense.pipeline.exceptions import BatchValidationError, UnknownUserError
from filesense.pipeline.models import (
    GUEST_OWNER_ID,
    FileRecord,
    UploadedFile,
    file_type_for_mime,
)
from filesense.store.base import BaseSessionStore


class FileRegistrar:
    """Turns stored uploads into pending FileRecords owned by a user or the guest pool."""

    def __init__(self, store: BaseSessionStore, settings: Settings) -> None:
        self._store = store
        self._settings = settings

    def register(
        self,
        uploads: list[UploadedFile],
        *,
        user_id: str | None = None,
    ) -> list[FileRecord]:
        """Validate the whole batch, then create one record per upload.

        Raises:
            BatchValidationError: empty or oversized batch, file too large,
                or MIME type not allowed. Nothing is created in that case.
            UnknownUserError: user_id has no account.
        """
        self._validate(uploads)
        if user_id is not None and self._store.get_user(user_id) is None:
            raise UnknownUserError(f"User {user_id} not found")

        owner_id = user_id if user_id is not None else GUEST_OWNER_ID
        records = [
            self._store.create_file(
                FileRecord(
                    id=str(uuid.uuid4()),
                    owner_id=owner_id,
                    original_name=upload.original_name,
                    locator=upload.locator,
                    file_type=file_type_for_mime(upload.mime_type),
                    file_size=upload.file_size,
                    mime_type=upload.mime_type,
                )
            )
            for upload in uploads
        ]
        Log.info(f"Registered {len(records)} files", owner=owner_id)
        return records

    def _validate(self, uploads: list[UploadedFile]) -> None:
        if not uploads:
            raise BatchValidationError("No files uploaded")
        if len(uploads) > self._settings.max_files_per_batch:
            raise BatchValidationError(
                f"Too many files: {len(uploads)} > {self._settings.max_files_per_batch}"
            )
        for upload in uploads:
            if not upload.original_name:
                raise BatchValidationError("Uploaded file has no name")
            if upload.file_size > self._settings.max_file_size_bytes:
                raise BatchValidationError(
                    f"{upload.original_name} is too large: {upload.file_size} bytes"
                )
            if upload.mime_type not in self._settings.allowed_mime_types:
                raise BatchValidationError(
                    f"Invalid file type {upload.mime_type}. "
                    "Only images and PDFs are allowed."
                )
