from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()


class Database:
    """Owns the engine (and its connection pool) for the lifetime of the app.

    Built once at startup and shared read-only by every request; each request
    gets its own session from ``session()``.
    """

    def __init__(self, url: str):
        self.url = url
        # SQL logging goes through the "sqlalchemy.engine" logger, see configure_logging
        kwargs = {"echo": False}
        if url.startswith("sqlite"):
            # Only apply sqlite-specific connect_args when using sqlite
            kwargs["connect_args"] = {"check_same_thread": False}
            if url in ("sqlite://", "sqlite:///:memory:"):
                # in-memory databases vanish when their only connection closes
                kwargs["poolclass"] = StaticPool
        else:
            # Enable pool_pre_ping to avoid stale connections (useful for cloud DBs like Neon)
            kwargs["pool_pre_ping"] = True
        self.engine = create_engine(url, **kwargs)
        self._sessionmaker = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    def create_all(self) -> None:
        # models must be imported so their tables are registered on Base.metadata
        from tasktracker.models import task, user  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def session(self) -> Session:
        return self._sessionmaker()

    def dispose(self) -> None:
        self.engine.dispose()


def get_db(request: Request) -> Iterator[Session]:
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()
