from __future__ import annotations

import os
import uuid
from typing import Any

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-settleup")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["SCHEDULER_ENABLED"] = "false"

import pytest
from fastapi import status
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine

from settleup.api.deps import get_db, get_publisher
from settleup.core.config import settings
from settleup.main import app

pytestmark = pytest.mark.anyio

DEFAULT_PASSWORD = "secret-pass-123"


class RecordingPublisher:
    def __init__(self) -> None:
        self.events: list[dict[str, Any]] = []

    def publish(self, user_id, event, data) -> int:
        self.events.append({"user_id": str(user_id), "event": event, "data": data})
        return 1

    def for_user(self, user_id) -> list[dict[str, Any]]:
        return [item for item in self.events if item["user_id"] == str(user_id)]


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture()
def db_engine(tmp_path):
    db_path = tmp_path / f"test_{uuid.uuid4().hex}.db"
    engine = create_engine(f"sqlite:///{db_path}", connect_args={"check_same_thread": False})
    SQLModel.metadata.create_all(bind=engine)

    def override_get_db():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    yield engine

    app.dependency_overrides.pop(get_db, None)
    engine.dispose()


@pytest.fixture()
def publisher() -> RecordingPublisher:
    recorder = RecordingPublisher()
    app.dependency_overrides[get_publisher] = lambda: recorder
    yield recorder
    app.dependency_overrides.pop(get_publisher, None)


@pytest.fixture()
def client(db_engine, publisher) -> TestClient:
    return TestClient(app)


@pytest.fixture()
def db_session(db_engine) -> Session:
    with Session(db_engine) as session:
        yield session


def api(path: str) -> str:
    return f"{settings.api_prefix}{path}"


def unique_email(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:8]}@example.com"


def register_and_login(
    client: TestClient,
    prefix: str = "user",
    *,
    name: str = "Test User",
    company_name: str = "Test Company",
    password: str = DEFAULT_PASSWORD,
    **extra: Any,
) -> tuple[str, dict[str, Any]]:
    email = unique_email(prefix)
    payload = {
        "email": email,
        "password": password,
        "name": name,
        "company_name": company_name,
        **extra,
    }
    register_response = client.post(api("/auth/register"), json=payload)
    assert register_response.status_code == status.HTTP_201_CREATED, register_response.json()

    login_response = client.post(api("/auth/login"), json={"email": email, "password": password})
    assert login_response.status_code == status.HTTP_200_OK, login_response.json()
    body = login_response.json()
    return body["token"], body["user"]


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def add_client(
    client: TestClient,
    token: str,
    email: str,
    *,
    name: str = "Acme Buyer",
    company_name: str = "Acme Ltd",
    **extra: Any,
) -> dict[str, Any]:
    response = client.post(
        api("/clients"),
        json={"name": name, "email": email, "company_name": company_name, **extra},
        headers=auth_headers(token),
    )
    assert response.status_code == status.HTTP_201_CREATED, response.json()
    return response.json()["client"]
