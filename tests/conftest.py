import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import Settings
from app.core.database import Base, get_db
from app.main import create_app
from app.services.store import KeyedStore

from tests.fakes import FakeAIClient, TEST_EMAIL, TEST_PASSWORD, latest_token


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def store(db):
    return KeyedStore(db)


@pytest.fixture
def fake_ai():
    return FakeAIClient()


@pytest.fixture
def settings():
    return Settings(gemini_api_key="test-key", google_client_id="imaginarium-web")


@pytest.fixture
def client(engine, settings, fake_ai):
    app = create_app(settings, engine=engine)
    app.state.imaginarium.ai_client = fake_ai
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        session = SessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(client, db):
    """Register, verify and sign in a user; returns bearer headers"""
    resp = client.post("/api/auth/register", json={"email": TEST_EMAIL, "password": TEST_PASSWORD})
    assert resp.status_code == 200, f"Register failed: {resp.text}"
    resp = client.post("/api/auth/verify-email", json={"token": latest_token(db, "verify_email")})
    assert resp.status_code == 200, f"Verify failed: {resp.text}"
    resp = client.post("/api/auth/login", json={"email": TEST_EMAIL, "password": TEST_PASSWORD})
    assert resp.status_code == 200, f"Login failed: {resp.text}"
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}
