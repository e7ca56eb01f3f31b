"""
Database Session Management

Provides database connection pooling and session management.
"""
from contextlib import contextmanager
from functools import wraps
from typing import Generator

from sqlalchemy import create_engine, event, exc, pool, text
from sqlalchemy.orm import Session, sessionmaker

from config.settings import settings
from src.parcels.utils.logger import get_logger
from src.parcels.utils.retry import RetryPolicy, run_with_retry

logger = get_logger(__name__)


# Create database engine with connection pooling
engine = create_engine(
    settings.database_url,
    pool_size=settings.database_pool_size,
    max_overflow=settings.database_max_overflow,
    pool_timeout=settings.database_pool_timeout,
    pool_recycle=settings.database_pool_recycle,
    pool_pre_ping=True,  # Verify connections before using
    echo=settings.database_echo,  # Log SQL queries if enabled
)


@event.listens_for(engine, "connect")
def receive_connect(dbapi_conn, connection_record):
    logger.debug("database_connection_established")


@event.listens_for(pool.Pool, "invalidate")
def receive_invalidate(dbapi_conn, connection_record, exception):
    """
    Event listener for connection invalidation.

    Logs when a connection is marked as invalid and removed from pool.
    """
    logger.warning(
        "database_connection_invalidated",
        exception=str(exception) if exception else None
    )


# Create session factory
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False
)


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """
    Get database session with automatic cleanup.

    Usage:
        with get_db_session() as session:
            repo = ParcelRepository(session)
            repo.find_parcel_by_id(parcel_id)

    Yields:
        Database session

    Raises:
        Exception: Re-raises any exception after rollback
    """
    session = SessionLocal()
    try:
        logger.debug("database_session_created")
        yield session
        session.commit()
        logger.debug("database_session_committed")
    except exc.SQLAlchemyError as e:
        session.rollback()
        logger.error(
            "database_session_rollback",
            error=str(e),
            error_type=type(e).__name__
        )
        raise
    except Exception as e:
        session.rollback()
        logger.error(
            "database_session_error",
            error=str(e),
            error_type=type(e).__name__
        )
        raise
    finally:
        session.close()
        logger.debug("database_session_closed")


def get_db() -> Session:
    """
    Get database session without context manager.

    WARNING: Caller is responsible for closing the session.
    Prefer using get_db_session() context manager instead.
    """
    logger.debug("database_session_created_manual")
    return SessionLocal()


def health_check(sleep=None) -> bool:
    """
    Check database connection health. Transient connection errors are
    retried once before the database is reported unavailable.

    Args:
        sleep: Override for ``time.sleep`` between attempts (tests)

    Returns:
        True if database is accessible, False otherwise
    """
    @with_retry(max_retries=2, retry_delay=0.5, sleep=sleep)
    def ping_database():
        with get_db_session() as session:
            session.execute(text("SELECT 1"))

    try:
        ping_database()
        logger.info("database_health_check_success")
        return True
    except Exception as e:
        logger.error(
            "database_health_check_failed",
            error=str(e),
            error_type=type(e).__name__
        )
        return False


def is_database_available() -> bool:
    """Storage is used only when enabled in settings and reachable."""
    if not settings.database_enabled or not settings.database_url:
        return False
    return health_check()


def close_connections():
    """
    Close all database connections and dispose of the engine.

    Should be called on application shutdown.
    """
    logger.info("closing_database_connections")
    engine.dispose()
    logger.info("database_connections_closed")


def create_all_tables():
    """
    Create all database tables defined in models.

    WARNING: Use Alembic migrations instead in production.
    This is only for testing and initial setup.
    """
    from src.parcels.db.base import Base, import_all_models

    logger.info("creating_database_tables")
    import_all_models()
    Base.metadata.create_all(bind=engine)
    logger.info("database_tables_created")


def is_transient_db_error(error: BaseException) -> bool:
    return isinstance(error, (exc.OperationalError, exc.DisconnectionError))


def with_retry(max_retries: int = 3, retry_delay: float = 1, sleep=None):
    """
    Decorator to retry database operations on transient failures.

    Args:
        max_retries: Maximum number of attempts
        retry_delay: Delay before the first retry in seconds, doubled after each
        sleep: Override for ``time.sleep`` (tests)

    Usage:
        @with_retry(max_retries=3)
        def my_database_operation(session):
            ...
    """
    policy = RetryPolicy(max_attempts=max_retries, initial_delay=retry_delay)

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return run_with_retry(
                    lambda: func(*args, **kwargs),
                    policy,
                    classifier=is_transient_db_error,
                    operation=func.__name__,
                    sleep=sleep,
                )
            except (exc.OperationalError, exc.DisconnectionError) as e:
                logger.error(
                    "database_operation_failed_after_retries",
                    max_retries=max_retries,
                    error=str(e)
                )
                raise

        return wrapper
    return decorator
