"""SQLite engine and session handling for the ticket store."""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ticketpilot.tickets.models import Base

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy import Engine

MEMORY = ":memory:"

# Milliseconds a writer waits on a lock held by another thread or process
BUSY_TIMEOUT_MS = 5000


def database_url(db_path: str | Path) -> str:
    if str(db_path) == MEMORY:
        return "sqlite:///:memory:"
    return f"sqlite:///{Path(db_path).expanduser()}"


class TicketDatabase:
    """Lazily created SQLite engine shared by the CLI, the API and the autopilot thread.

    File databases run in WAL mode so readers are not blocked while autopilot
    writes. An in-memory database is pinned to a single connection; otherwise
    each pooled connection would see its own empty database.
    """

    def __init__(self, db_path: str | Path = "tickets.db") -> None:
        self.db_path = str(db_path)
        self._engine: Engine | None = None
        self._sessions: sessionmaker[Session] | None = None

    @property
    def in_memory(self) -> bool:
        return self.db_path == MEMORY

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = self._create_engine()
        return self._engine

    def _create_engine(self) -> Engine:
        extra = {}
        if self.in_memory:
            extra["poolclass"] = StaticPool
        else:
            Path(self.db_path).expanduser().parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine(
            database_url(self.db_path),
            connect_args={"check_same_thread": False},
            **extra,
        )

        @event.listens_for(engine, "connect")
        def configure_connection(dbapi_connection: object, _connection_record: object) -> None:
            cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]
            if not self.in_memory:
                cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute(f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}")
            cursor.close()

        return engine

    def create_tables(self) -> None:
        Base.metadata.create_all(self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Open a session, rolling back uncommitted work if the block raises.

        Loaded tickets stay readable after the block, since commits don't
        expire them.
        """
        if self._sessions is None:
            self._sessions = sessionmaker(bind=self.engine, expire_on_commit=False)
        session = self._sessions()
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._sessions = None
