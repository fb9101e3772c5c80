"""Database connection, session management and transaction scope"""
from contextlib import contextmanager
from datetime import datetime, timezone
from sqlalchemy import create_engine, text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from typing import Generator, Iterator, Optional
import logging

logger = logging.getLogger(__name__)

Base = declarative_base()

engine = None
SessionLocal = None

# SQLSTATE codes reported by PostgreSQL drivers
LOCK_TIMEOUT_CODES = {"55P03"}
CONFLICT_CODES = {"40001", "40P01"}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def init_database(database_url: str, isolation_level: Optional[str] = None, lock_timeout_ms: int = 5000):
    """Initialize database connection"""
    global engine, SessionLocal

    logger.info("Initializing database connection")

    if database_url.startswith("sqlite"):
        # SQLite serializes writers itself; the busy timeout bounds lock waits
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False, "timeout": lock_timeout_ms / 1000},
            echo=False
        )
    else:
        options = {}
        if isolation_level:
            options["isolation_level"] = isolation_level
        engine = create_engine(
            database_url,
            pool_pre_ping=True,
            pool_size=5,
            max_overflow=10,
            echo=False,
            **options
        )

    SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
    logger.info(f"Database connection initialized ({engine.dialect.name})")

    return engine


def create_tables():
    """Create all tables"""
    # Models register themselves on Base when imported
    from storefront.models import order, product  # noqa: F401

    logger.info("Creating database tables")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created")


def drop_tables():
    """Drop all tables"""
    Base.metadata.drop_all(bind=engine)
    logger.info("Database tables dropped")


def get_db() -> Generator[Session, None, None]:
    """Dependency for getting database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session, lock_timeout_ms: Optional[int] = None) -> Iterator[Session]:
    """
    Run a block of work as a single database transaction

    Commits when the block finishes and rolls back on every other exit path,
    including cancellation, so no transaction is ever left open.

    Args:
        db: Session to run the work on
        lock_timeout_ms: Upper bound on row lock waits (PostgreSQL only)
    """
    try:
        if lock_timeout_ms and db.get_bind().dialect.name == "postgresql":
            db.execute(text(f"SET LOCAL lock_timeout = '{int(lock_timeout_ms)}ms'"))
        yield db
        db.commit()
    except BaseException:
        db.rollback()
        logger.warning("Transaction rolled back")
        raise


def classify_db_error(exc: Exception) -> Optional[str]:
    """
    Classify a storage failure

    Returns:
        "lock_timeout", "conflict" or None for anything not retryable
    """
    if not isinstance(exc, DBAPIError):
        return None

    orig = exc.orig
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code in LOCK_TIMEOUT_CODES:
        return "lock_timeout"
    if code in CONFLICT_CODES:
        return "conflict"

    message = str(orig).lower()
    if "database is locked" in message or "lock timeout" in message:
        return "lock_timeout"
    if "deadlock detected" in message or "could not serialize access" in message:
        return "conflict"
    return None
