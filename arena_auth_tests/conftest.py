import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from arena_auth.config import Posture, Settings
from arena_auth.main import create_app

TEST_SECRET = "test-secret-for-arena-auth"


def make_settings(**overrides) -> Settings:
    values = {
        "ENVIRONMENT": Posture.TEST,
        "JWT_SECRET": TEST_SECRET,
        "BCRYPT_ROUNDS": 4,
        "LOG_LEVEL": "WARNING",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def memory_engine():
    return create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture
def engine():
    engine = memory_engine()
    yield engine
    engine.dispose()


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def app(settings, engine):
    return create_app(settings, engine=engine)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def test_user():
    return {
        "username": "testuser123",
        "email": "testuser123@example.com",
        "password": "TestPass123",
    }


@pytest.fixture
def registered_user(client, test_user):
    resp = client.post("/register", json=test_user)
    assert resp.status_code == 201
    return resp.json()["data"]
