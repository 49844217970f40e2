from filesense.logging.logger import Log
from filesense.pipeline.processor import SessionProcessor
from filesense.pipeline.session import ProcessingSession
from filesense.store.base import BaseSessionStore


class SessionRunner:
    """Run one session and turn any escaping exception into a failed session.

    Sessions are never retried: a failed session stays failed and records no usage.
    """

    def __init__(self, processor: SessionProcessor, store: BaseSessionStore) -> None:
        self._processor = processor
        self._store = store

    def run(self, session: ProcessingSession) -> None:
        """Execute a single session with error handling."""
        Log.info(f"Running session {session.id} ({session.total_files} files)")
        try:
            self._processor.process(session)
        except Exception as exc:
            self._handle_failure(session, exc)

    def _handle_failure(self, session: ProcessingSession, exc: Exception) -> None:
        Log.error(f"Session {session.id} failed: {exc}", error_type=type(exc).__name__)
        if session.is_terminal:
            # Failure after the session was finalized, e.g. during usage accounting.
            Log.error(
                f"Session {session.id} already {session.status.value}, leaving it as is"
            )
            return
        session.fail(str(exc))
        self._store.save_session(session)
