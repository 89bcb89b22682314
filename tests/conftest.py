import os

# Must be set before the app modules read them at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["RATE_LIMIT_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient

from app.core.database import Base, SessionLocal, engine
from app.core.storage import LocalBlobStore, get_blob_store
from app.main import app

PASSWORD = "secret123"


def card_payload(**overrides):
    payload = {
        "Name": "Jane Doe",
        "Pronouns": "she/her",
        "JobPosition": "Engineer",
        "MobileNumber": "+14165550123",
        "Email": "jane@example.com",
        "Description": "Builds things",
        "SocialMedia": [
            {"platform": "linkedin", "url": "https://linkedin.com/in/janedoe"},
            {"platform": "github", "url": "github.com/janedoe"},
        ],
    }
    payload.update(overrides)
    return payload


@pytest.fixture(autouse=True)
def tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def blobs(tmp_path):
    return LocalBlobStore(str(tmp_path / "uploads"))


@pytest.fixture
def client(blobs):
    app.dependency_overrides[get_blob_store] = lambda: blobs
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def register(client):
    """Register a user and return (user_id, auth headers)."""

    def _register(email="owner@example.com", full_name="Card Owner"):
        response = client.post(
            "/api/v1/users/register",
            json={"FullName": full_name, "Email": email, "Password": PASSWORD},
        )
        assert response.status_code == 201, response.text
        user_id = response.json()["data"]["UserID"]
        return user_id, login(client, email)

    return _register


@pytest.fixture
def admin_headers(client):
    response = client.post(
        "/api/v1/admins/bootstrap",
        json={"FullName": "Root Admin", "Email": "admin@example.com", "Password": PASSWORD},
    )
    assert response.status_code == 201, response.text
    return login(client, "admin@example.com")


def login(client, email, password=PASSWORD):
    response = client.post(
        "/api/v1/users/login", json={"Email": email, "Password": password}
    )
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['data']['access_token']}"}
