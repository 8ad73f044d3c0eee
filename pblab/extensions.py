from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    event,
    func,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import (
    Session,
    declarative_base,
    relationship,
    scoped_session,
    sessionmaker,
)

Base = declarative_base()


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection
    module = type(dbapi_connection).__module__
    if module.startswith("sqlite3") or module.startswith("pysqlite"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


class Database:
    Model = Base
    Column = Column
    Integer = Integer
    String = String
    Text = Text
    Boolean = Boolean
    DateTime = DateTime
    Enum = Enum
    JSON = JSON
    ForeignKey = ForeignKey
    UniqueConstraint = UniqueConstraint
    CheckConstraint = CheckConstraint
    Index = Index
    relationship = staticmethod(relationship)
    func = func
    select = staticmethod(select)

    def __init__(self, database_url: str, **engine_kwargs: Any):
        self.engine = create_engine(database_url, future=True, **engine_kwargs)
        self.SessionLocal = sessionmaker(bind=self.engine, autoflush=False, autocommit=False, future=True)
        self.session = scoped_session(self.SessionLocal)

    def remove_session(self) -> None:
        self.session.remove()

    def create_all(self) -> None:
        Base.metadata.create_all(self.engine)

    def drop_all(self) -> None:
        Base.metadata.drop_all(self.engine)

    def __getattr__(self, item: str) -> Any:
        return getattr(Base, item)


@contextmanager
def transaction(session: Session, operation: str, log) -> Iterator[Session]:
    """Run a block of writes as one unit: commit on success, roll back and log on failure.

    The rollback outcome is always logged so operators can reconcile if the
    rollback itself fails.
    """
    try:
        yield session
        session.commit()
    except Exception:
        try:
            session.rollback()
        except Exception:
            log.exception("Rollback failed for %s; manual reconciliation may be required", operation)
        else:
            log.warning("Rolled back %s", operation)
        raise


from pblab.config import settings

db = Database(settings.DATABASE_URL)
