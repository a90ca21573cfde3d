from datetime import date, timedelta

import mongomock
import pytest
from fastapi.testclient import TestClient

import database
from lookups import seed_lookups
from main import app
from rate_limit import donation_limiter, resource_limiter

ADMIN_EMAIL = "admin@edushare.lk"


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def reset_limiters():
    resource_limiter.reset()
    donation_limiter.reset()
    yield
    resource_limiter.reset()
    donation_limiter.reset()


@pytest.fixture
def clock(monkeypatch):
    fake = FakeClock()
    monkeypatch.setattr(resource_limiter, "clock", fake)
    monkeypatch.setattr(donation_limiter, "clock", fake)
    return fake


@pytest.fixture
def db(monkeypatch):
    mock_db = mongomock.MongoClient()["edushare_test"]
    monkeypatch.setattr(database, "db", mock_db)
    seed_lookups(mock_db)
    return mock_db


@pytest.fixture
def client(db, monkeypatch):
    monkeypatch.setenv("ADMIN_EMAILS", ADMIN_EMAIL)
    return TestClient(app)


def _signup(client, name, email):
    response = client.post("/auth/signup", json={"name": name, "email": email, "password": "s3cret-pass"})
    assert response.status_code == 200, response.text
    return response.json()


@pytest.fixture
def contributor(client):
    account = _signup(client, "Nimal Perera", "nimal@gmail.com")
    account["headers"] = {"Authorization": f"Bearer {account['token']}"}
    return account


@pytest.fixture
def other_contributor(client):
    account = _signup(client, "Kamala Silva", "kamala@gmail.com")
    account["headers"] = {"Authorization": f"Bearer {account['token']}"}
    return account


@pytest.fixture
def admin(client):
    account = _signup(client, "Site Admin", ADMIN_EMAIL)
    account["headers"] = {"Authorization": f"Bearer {account['token']}"}
    return account


@pytest.fixture
def material_body():
    def make(**overrides):
        body = {
            "resourceType": "material",
            "title": "Physics past paper 2023",
            "description": "Full A/L physics paper with the marking scheme",
            "url": "https://drive.google.com/file/d/abc123/view",
            "level": "AL",
            "stream": ["Science"],
            "subject": "Physics",
            "language": "English",
            "category": "Past Paper",
        }
        body.update(overrides)
        return body
    return make


@pytest.fixture
def session_body():
    def make(**overrides):
        body = {
            "resourceType": "session",
            "title": "Combined Maths revision",
            "description": "Weekly live revision class for A/L combined maths",
            "url": "https://zoom.us/j/123456789",
            "level": "AL",
            "stream": ["Science"],
            "subject": "Combined Mathematics",
            "language": "Sinhala",
            "sessionType": "Live",
            "sessionDate": (date.today() + timedelta(days=7)).isoformat(),
            "startTime": "18:30",
            "endTime": "20:00",
        }
        body.update(overrides)
        return body
    return make


@pytest.fixture
def donation_body():
    def make(**overrides):
        body = {
            "name": "Saman Kumara",
            "address": "12 Temple Road, Kandy",
            "district": "Kandy",
            "grade": "Grade 10",
            "school": "Kandy Central College",
            "phoneNumber": "071 234 5678",
            "category": "Books",
            "description": "Need O/L science and maths textbooks",
        }
        body.update(overrides)
        return body
    return make
