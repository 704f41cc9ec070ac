import os

# The app's own engine is only touched by the startup hook; keep it off disk
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from tournament_tables.database import get_session  # noqa: E402
from tournament_tables.main import app  # noqa: E402

TEST_DATABASE_URL = "sqlite:///:memory:"

# ============================================================================
# Test Database Setup with StaticPool
# ============================================================================
# 1. sqlite:///:memory: with StaticPool so ALL sessions share the same DB
# 2. check_same_thread=False required for TestClient/threaded access
# 3. All models MUST be imported before create_all() (see session_fixture)
# 4. App dependency overridden to use test_engine (see client_fixture)
# 5. Tables are dropped after each test so unique names can be reused
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


def override_get_session():
    """Override session to use test engine"""
    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="session", scope="function")
def session_fixture():
    """Provide a test database session on a freshly created schema"""
    # Import all models to ensure they're registered BEFORE create_all
    from tournament_tables.models.allocation import Allocation  # noqa: F401
    from tournament_tables.models.allocation_audit import AllocationAuditEntry  # noqa: F401
    from tournament_tables.models.game_table import GameTable  # noqa: F401
    from tournament_tables.models.player import Player  # noqa: F401
    from tournament_tables.models.round import Round  # noqa: F401
    from tournament_tables.models.terrain_type import TerrainType  # noqa: F401
    from tournament_tables.models.tournament import Tournament  # noqa: F401

    SQLModel.metadata.create_all(test_engine)

    with Session(test_engine) as session:
        yield session

    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture(name="client")
def client_fixture(session: Session):
    """Provide a test client with overridden database session

    Override MUST be set BEFORE TestClient() and stay in place for the
    entire duration, so the app never uses its own engine.
    """
    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
