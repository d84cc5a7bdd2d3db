import os
import sys
from pathlib import Path

# Ensure repository root is on sys.path so 'import mulvi' works
ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Shared in-memory database; tables are created per test below
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"

# Force pytest-anyio to use asyncio backend (avoid requiring 'trio')
import pytest  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def fresh_db():
    from mulvi.app.db.base import Base, SessionLocal, engine
    from mulvi.app.models import sql_models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    try:
        yield
    finally:
        SessionLocal.remove()
        Base.metadata.drop_all(bind=engine)
