import logging

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, scoped_session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import get_settings

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

DATABASE_URL = get_settings().DATABASE_URL

def _engine_kwargs(url: str) -> dict:
    if not url.startswith("sqlite"):
        return {}
    kwargs: dict = {"connect_args": {"check_same_thread": False}}
    # In-memory SQLite must share one connection or every session sees an empty DB
    if url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    return kwargs

# Create SQLAlchemy engine
engine = create_engine(DATABASE_URL, **_engine_kwargs(DATABASE_URL))

# Create a scoped session factory
SessionLocal = scoped_session(sessionmaker(autocommit=False, autoflush=False, bind=engine))

# Base class for SQLAlchemy models
Base = declarative_base()


def init_db() -> None:
    """Initialize the database by creating all tables."""
    # Import models to ensure they are registered on Base.metadata
    from ..models import sql_models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready at %s", engine.url.render_as_string(hide_password=True))


# Create tables when this module is imported
if get_settings().ENVIRONMENT != "test":
    init_db()
