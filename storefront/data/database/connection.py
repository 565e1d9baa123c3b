"""Database connection and session management."""
import logging
import time
from sqlalchemy import create_engine, text
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import StaticPool
from storefront.config import settings

logger = logging.getLogger(__name__)


def _engine_options(database_url: str) -> dict:
    """Pool options per backend; SQLite cannot take a sized queue pool."""
    if database_url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False}}
        # In-memory databases must share one connection across worker threads
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            options["poolclass"] = StaticPool
        return options
    return {"pool_pre_ping": True, "pool_size": 10, "max_overflow": 20}


# Create database engine
engine = create_engine(
    settings.database_url,
    echo=False,  # Set to True for SQL query logging
    **_engine_options(settings.database_url)
)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()

# Retry configuration
MAX_RETRIES = 3
RETRY_DELAY_SECONDS = 1


def get_db_session():
    """
    Get a database session with retry logic.
    Retries up to 3 times on connection failure.
    """
    last_error = None

    for attempt in range(MAX_RETRIES):
        try:
            db = SessionLocal()
            # Test the connection with a simple query
            db.execute(text("SELECT 1"))
            return db
        except OperationalError as e:
            last_error = e
            if attempt < MAX_RETRIES - 1:
                logger.warning(
                    "Connection attempt %d failed, retrying in %ss", attempt + 1, RETRY_DELAY_SECONDS
                )
                time.sleep(RETRY_DELAY_SECONDS)
            else:
                logger.error("All %d connection attempts failed", MAX_RETRIES)

    raise last_error


def get_db():
    """Dependency for getting database session with retry logic."""
    db = get_db_session()
    try:
        yield db
    finally:
        db.close()
