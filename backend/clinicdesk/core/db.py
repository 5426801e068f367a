from typing import Iterator, Optional, Tuple
import logging
import os

from fastapi import Request
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker, declarative_base

log = logging.getLogger("clinicdesk.db")

Base = declarative_base()


def create_db_engine(url: str) -> Engine:
    # ✅ Detect database type
    if url.startswith("sqlite") and ":memory:" not in url:
        # Local dev fallback (auto-create folder)
        db_path = url.replace("sqlite:///", "")
        folder = os.path.dirname(db_path)
        if folder:
            os.makedirs(folder, exist_ok=True)
        log.info("[DB CONFIG] Using SQLite → %s", db_path)
    else:
        log.info("[DB CONFIG] Using %s", url.split("://", 1)[0])

    return create_engine(
        url,
        pool_pre_ping=True,
        connect_args={"check_same_thread": False, "timeout": 30}
        if url.startswith("sqlite") else {},
    )


class Database:
    """Connection lifecycle owned by the hosting application.

    Nothing in the sale core reaches for a module-level engine; the app
    connects on startup, hands ``session_factory`` to the ledger and store,
    and closes on shutdown.
    """

    def __init__(self, url: str):
        self.url = url
        self.engine: Optional[Engine] = None
        self._sessions: Optional[sessionmaker] = None

    def connect(self) -> "Database":
        if self.engine is None:
            self.engine = create_db_engine(self.url)
            self._sessions = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        return self

    def close(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
        self.engine = None
        self._sessions = None

    @property
    def session_factory(self) -> sessionmaker:
        if self._sessions is None:
            raise RuntimeError("Database is not connected")
        return self._sessions

    def session(self) -> Session:
        return self.session_factory()

    def create_all(self) -> None:
        # models register themselves on Base when imported
        from .. import models  # noqa: F401
        from ..services.sequences import ensure_sequences

        Base.metadata.create_all(bind=self.engine)
        with self.session() as db:
            ensure_sequences(db)
            db.commit()

    def healthcheck(self) -> Tuple[bool, Optional[str]]:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True, None
        except Exception as e:
            return False, str(e)


def get_database(request: Request) -> Database:
    return request.app.state.db


def get_db(request: Request) -> Iterator[Session]:
    db = request.app.state.db.session()
    try:
        yield db
    finally:
        db.close()
