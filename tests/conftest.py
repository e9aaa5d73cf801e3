import pytest
from fastapi.testclient import TestClient

from tasktracker.database import Database
from tasktracker.main import create_app
from tasktracker.utils.auth import JWTTokenVerifier

TEST_SECRET = "test-secret-key"


@pytest.fixture
def verifier():
    return JWTTokenVerifier(TEST_SECRET)


@pytest.fixture
def database(tmp_path):
    return Database(f"sqlite:///{tmp_path / 'tasks.db'}")


@pytest.fixture
def app(database, verifier):
    return create_app(database=database, verifier=verifier)


@pytest.fixture
def client(app):
    # entering the context runs startup, which creates the tables
    with TestClient(app) as c:
        yield c


@pytest.fixture
def auth_headers(verifier):
    def _headers(user_id: str, email: str = None) -> dict:
        return {"Authorization": f"Bearer {verifier.create_token(user_id, email=email)}"}

    return _headers


@pytest.fixture
def db(database, client):
    session = database.session()
    try:
        yield session
    finally:
        session.close()
