import time

from filesense.config.settings import Settings
from filesense.logging.logger import Log
from filesense.pipeline.session import ProcessingSession
from filesense.store.base import BaseSessionStore
from filesense.worker.session_runner import SessionRunner


class Worker:
    """Poll loop: sleep -> claim -> dispatch."""

    def __init__(
        self,
        store: BaseSessionStore,
        session_runner: SessionRunner,
        settings: Settings,
    ) -> None:
        self._store = store
        self._session_runner = session_runner
        self._settings = settings

    def run(self, max_sessions: int | None = None) -> None:
        """Main poll loop. Runs forever until interrupted.

        If max_sessions is set, stop after running that many sessions (for testing).
        """
        Log.info("Worker started, polling for sessions")
        sessions_done = 0
        try:
            while max_sessions is None or sessions_done < max_sessions:
                session = self._try_claim_session()
                if session:
                    self._session_runner.run(session)
                    sessions_done += 1
                else:
                    Log.debug("No sessions pending, sleeping")
                    time.sleep(self._settings.session_poll_interval_seconds)
        except KeyboardInterrupt:
            Log.info("Worker shutting down gracefully")

    def _try_claim_session(self) -> ProcessingSession | None:
        """Attempt to claim the next pending session. Gracefully handle store errors."""
        try:
            return self._store.claim_next_session()
        except Exception as exc:
            Log.warning(f"Store error, will retry: {exc}")
            return None
