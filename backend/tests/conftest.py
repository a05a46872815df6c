"""Shared fixtures: an in-memory database, an API client and logged-in users."""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from finance_api.database import create_db_and_tables, get_session
from finance_api.main import app


@pytest.fixture(name="engine")
def engine_fixture():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_db_and_tables(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(name="session")
def session_fixture(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture(name="client")
def client_fixture(session):
    def get_session_override():
        return session

    app.dependency_overrides[get_session] = get_session_override
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture
def login(client):
    """Register a user and return (user_id, auth headers)."""
    def _login(email="alice@example.com", password="password123"):
        response = client.post("/api/auth/register", json={"email": email, "password": password})
        assert response.status_code == 201
        user_id = response.json()["userId"]

        response = client.post("/api/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200
        return user_id, {"Authorization": f"Bearer {response.json()['token']}"}

    return _login


@pytest.fixture
def alice(login):
    return login("alice@example.com")[1]


@pytest.fixture
def bob(login):
    return login("bob@example.com")[1]


@pytest.fixture
def make_wallet(client):
    def _make_wallet(headers, name="Main"):
        response = client.post("/api/wallets", json={"name": name}, headers=headers)
        assert response.status_code == 201
        return response.json()["id"]

    return _make_wallet


@pytest.fixture
def add_transaction(client):
    """POST a transaction and return the response."""
    def _add(headers, wallet_id, type, amount, category="general", date="2024-05-10", description=None):
        payload = {
            "walletId": wallet_id,
            "type": type,
            "amount": amount,
            "category": category,
            "date": date,
        }
        if description is not None:
            payload["description"] = description
        return client.post("/api/transactions", json=payload, headers=headers)

    return _add


@pytest.fixture
def balance_of(client):
    def _balance(headers, wallet_id):
        wallets = client.get("/api/wallets", headers=headers).json()
        return next(w["balance"] for w in wallets if w["id"] == wallet_id)

    return _balance
