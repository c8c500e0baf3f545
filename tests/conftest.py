"""
Shared fixtures: in-memory SQLite database, API client with dependency
overrides, and a scripted AI provider.
"""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from finance_api.main import app
from finance_api.db.base import Base
from finance_api.core.auth_dependency import get_db
from finance_api.core.ai_dependency import get_ai_provider, get_token_ledger
from finance_api.services import auth_service
from finance_api.services.token_usage_service import TokenUsageLedger

from tests.fakes import FakeProvider


# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


def override_get_db():
    """Override get_db dependency for testing."""
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function", autouse=True)
def setup_db():
    """Create and drop tables for each test."""
    Base.metadata.create_all(bind=test_engine)
    yield
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def db_session():
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def ledger():
    """10 cents per 1k prompt tokens, 20 per 1k response tokens."""
    return TokenUsageLedger(prompt_rate=10, response_rate=20)


@pytest.fixture
def user(db_session):
    user, _ = auth_service.register_user(
        db_session,
        name="Maria Silva",
        email="maria@example.com",
        password="segredo123",
        monthly_limit=1000.0,
    )
    return user


@pytest.fixture
def client(fake_provider, ledger):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_ai_provider] = lambda: fake_provider
    app.dependency_overrides[get_token_ledger] = lambda: ledger
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def signup(client):
    """POST /auth/register with sensible defaults; keyword arguments override them."""
    def _signup(email="ana@example.com", password="segredo123", **extra):
        payload = {"name": "Ana Souza", "email": email, "password": password}
        payload.update(extra)
        return client.post("/api/v1/auth/register", json=payload)
    return _signup


@pytest.fixture
def auth_headers(signup):
    response = signup(monthly_limit=1000.0)
    assert response.status_code == 201
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
