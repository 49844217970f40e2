from filesense.config.settings import Settings
from filesense.store.base import BaseSessionStore
from filesense.store.memory_store import InMemorySessionStore
from filesense.store.postgres_store import PostgresSessionStore


class SessionStoreFactory:
    """Creates the configured session store backend."""

    BACKENDS: dict[str, type[BaseSessionStore]] = {
        "postgres": PostgresSessionStore,
        "memory": InMemorySessionStore,
    }

    @classmethod
    def create(cls, settings: Settings) -> BaseSessionStore:
        backend = settings.store_backend.lower()
        store_cls = cls.BACKENDS.get(backend)
        if store_cls is None:
            raise ValueError(
                f"Unknown store backend '{backend}'. Choose from: {list(cls.BACKENDS)}"
            )
        return store_cls()
