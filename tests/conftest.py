import asyncio

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from badgefolio.auth.auth_utils import UserContext, hash_password, token_for_user
from badgefolio.config import SUPER_ADMIN_EMAIL
from badgefolio.database import get_db
from badgefolio.main import app
from badgefolio.users.user_models import User

DEFAULT_PASSWORD = "Password123"


def run(coro):
    """Drive a Motor-style coroutine from synchronous test code."""
    return asyncio.run(coro)


def make_context(role="student", email=None):
    """Build an actor without touching the database."""
    return UserContext({
        "_id": ObjectId(),
        "email": email or f"{role}-{ObjectId()}@school.test",
        "name": role.title(),
        "role": role,
    })


@pytest.fixture
def db():
    """Fresh in-memory database per test."""
    return AsyncMongoMockClient()["badgefolio_test"]


@pytest.fixture
def client(db):
    async def override_get_db():
        return db

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    """Insert a user and return the stored document."""
    counter = {"n": 0}

    def _make(role="student", email=None, name=None, password=DEFAULT_PASSWORD):
        counter["n"] += 1
        doc = User(
            name=name or f"{role.title()} {counter['n']}",
            email=email or f"{role}{counter['n']}@school.test",
            role=role,
            password_hash=hash_password(password),
        ).dict()
        doc["_id"] = run(db.users.insert_one(doc)).inserted_id
        return doc

    return _make


@pytest.fixture
def auth():
    """Authorization headers for a stored user."""
    def _headers(user):
        return {"Authorization": f"Bearer {token_for_user(user)}"}
    return _headers


@pytest.fixture
def super_admin(make_user):
    return make_user(role="admin", email=SUPER_ADMIN_EMAIL, name="Super Admin")


@pytest.fixture
def admin(make_user):
    return make_user(role="admin")


@pytest.fixture
def teacher(make_user):
    return make_user(role="teacher")


@pytest.fixture
def student(make_user):
    return make_user(role="student")
