import pytest
from fastapi.testclient import TestClient

from roster.config import DatabaseCoordinates, Settings, DEFAULT_TABLES_PATH
from roster.database import initialize_db, create_session_factory
from roster.main import create_app


@pytest.fixture
def coords(tmp_path):
    """Coordinates for a fresh, bootstrapped sqlite file per test"""
    return DatabaseCoordinates(
        db_path=str(tmp_path),
        db_file="roster_test.sqlite",
        db_tables_path=DEFAULT_TABLES_PATH,
    )


@pytest.fixture
def engine(coords):
    engine = initialize_db(coords)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    """A session on the test database, closed after the test"""
    session = create_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def app(coords):
    return create_app(Settings(database=coords, log_level="DEBUG"))


@pytest.fixture
def client(app):
    # Entering the client runs the lifespan, which bootstraps the store
    with TestClient(app) as test_client:
        yield test_client
