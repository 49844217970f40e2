from filesense.config.settings import Settings
from filesense.database.connection import apply_schema, close_pool, init_pool
from filesense.logging.logger import Log
from filesense.pipeline.processor import build_processor
from filesense.store.factory import SessionStoreFactory
from filesense.worker.session_runner import SessionRunner
from filesense.worker.worker import Worker


def main() -> None:
    """Entry point: initialize pool -> build dependencies -> start worker loop."""
    settings = Settings()
    Log.configure(settings.log_level)
    uses_postgres = settings.store_backend.lower() == "postgres"
    if uses_postgres:
        init_pool(settings)
        apply_schema()

    try:
        store = SessionStoreFactory.create(settings)
        processor = build_processor(settings, store)
        session_runner = SessionRunner(processor, store)
        worker = Worker(store, session_runner, settings)
        worker.run()
    finally:
        if uses_postgres:
            close_pool()


if __name__ == "__main__":
    main()
