import logging
from typing import Callable, Optional, TypeVar

from sqlalchemy import create_engine, event
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session, sessionmaker, declarative_base
from sqlalchemy.orm.exc import StaleDataError

from .config import settings
from .errors import ConflictError, LedgerError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Create engine
connect_args = {}
if "sqlite" in settings.DATABASE_URL:
    connect_args["check_same_thread"] = False

engine = create_engine(
    settings.DATABASE_URL,
    connect_args=connect_args,
    pool_pre_ping=True,
    echo=settings.DEBUG
)

# Enable WAL Mode for SQLite Concurrency
if "sqlite" in settings.DATABASE_URL:
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()

# Dependency for FastAPI
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# SQLSTATEs for serialization failure and deadlock
RETRIABLE_SQLSTATES = {"40001", "40P01"}


def _is_retriable(exc: Exception) -> bool:
    if isinstance(exc, (StaleDataError, ConflictError)):
        return True
    if isinstance(exc, DBAPIError) and not isinstance(exc, IntegrityError):
        orig = exc.orig
        code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
        return code in RETRIABLE_SQLSTATES
    return False


def run_atomic(db: Session, operation: Callable[[], T], retries: Optional[int] = None, label: str = "operation") -> T:
    """
    Run `operation` as one transaction and commit it.

    Conflicts (stale row versions, serialization failures, racing inserts)
    roll the whole transaction back and retry; once retries are exhausted a
    ConflictError is raised. Any other error rolls back and propagates.
    """
    attempts = (settings.CONFLICT_RETRIES if retries is None else retries) + 1
    last_error: Optional[Exception] = None

    for attempt in range(1, attempts + 1):
        try:
            result = operation()
            db.commit()
            return result
        except Exception as e:
            db.rollback()
            if not _is_retriable(e):
                raise
            last_error = e
            logger.warning(f"Conflict in {label} (attempt {attempt}/{attempts}): {e}")

    if isinstance(last_error, LedgerError):
        raise ConflictError(last_error.detail, entity_id=last_error.entity_id, attempts=attempts)
    raise ConflictError(f"{label} conflicted with a concurrent update", attempts=attempts)
