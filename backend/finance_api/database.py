import logging
import sqlite3
from contextlib import contextmanager

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import SQLModel, create_engine, Session

from .config import settings
from .errors import StoreFailure

logger = logging.getLogger(__name__)

engine_args = {}
if settings.DATABASE_URL.startswith("sqlite"):
    engine_args["connect_args"] = {"check_same_thread": False}
else:
    engine_args.update({
        "pool_size": 5,
        "max_overflow": 10,
        "pool_timeout": 30,
        "pool_recycle": 1800,
        "pool_pre_ping": True,
    })

engine = create_engine(settings.DATABASE_URL, echo=settings.DEBUG, **engine_args)


@event.listens_for(Engine, "connect")
def _configure_sqlite_connection(dbapi_connection, connection_record):
    if isinstance(dbapi_connection, sqlite3.Connection):
        # let SQLAlchemy emit BEGIN itself (see _begin_sqlite_immediate)
        dbapi_connection.isolation_level = None
        # SQLite ignores ON DELETE CASCADE unless asked per connection
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


@event.listens_for(Engine, "begin")
def _begin_sqlite_immediate(conn):
    # SQLite has no row locks and pysqlite defers BEGIN until the first write,
    # so a balance read would happen outside the write lock. Take the
    # database write lock when the unit starts instead.
    if conn.dialect.name == "sqlite":
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_db_and_tables(bind: Engine = None):
    """Create every table registered on SQLModel.metadata."""
    from . import models  # noqa: F401  (registers the tables)

    SQLModel.metadata.create_all(bind or engine)


def get_session():
    """FastAPI dependency: one session per request, closed on every exit path."""
    with Session(engine) as session:
        yield session


@contextmanager
def transactional_unit(session: Session):
    """
    Run a block of store operations as one atomic unit.

    Commits when the block finishes. Any exception rolls back every write
    made in the block; store errors are logged and re-raised as StoreFailure
    so no driver detail reaches the caller.
    """
    try:
        yield session
        session.commit()
    except IntegrityError as exc:
        # constraint conflicts are expected outcomes; callers map them
        session.rollback()
        logger.info("Constraint conflict, unit of work rolled back: %s", exc.orig)
        raise StoreFailure() from exc
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Store failure, unit of work rolled back")
        raise StoreFailure() from exc
    except BaseException:
        session.rollback()
        raise
