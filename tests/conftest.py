# tests/conftest.py

from __future__ import annotations

import pytest

from app import TaskApi
from auth_service import AuthService
from chat_service import ChatService
from db import ensure_indexes
from task_service import TaskService

from .fakes import FakeDatabase, FakeGemini


@pytest.fixture()
def db() -> FakeDatabase:
    """Fresh in-memory database with the production indexes applied."""
    database = FakeDatabase()
    ensure_indexes(database)
    return database


@pytest.fixture()
def auth(db: FakeDatabase) -> AuthService:
    return AuthService(db)


@pytest.fixture()
def tasks(db: FakeDatabase) -> TaskService:
    return TaskService(db)


@pytest.fixture()
def gemini() -> FakeGemini:
    return FakeGemini(reply="You have 1 pending task.")


@pytest.fixture()
def chat(tasks: TaskService, gemini: FakeGemini) -> ChatService:
    return ChatService(tasks, gemini)


@pytest.fixture()
def api(auth: AuthService, tasks: TaskService, chat: ChatService) -> TaskApi:
    return TaskApi(auth, tasks, chat)


@pytest.fixture()
def make_user(auth: AuthService):
    """Register a user and return its stored document."""
    counter = {"n": 0}

    def _make(name: str) -> dict:
        counter["n"] += 1
        email = f"{name.lower()}@example.com"
        auth.signup({
            "name": name,
            "email": email,
            "phone": f"555-000{counter['n']}",
            "password": "secret",
        })
        return auth.users.find_one({"email": email})

    return _make


@pytest.fixture()
def team_payload() -> dict:
    return {
        "taskId": "abc123",
        "title": "Launch site",
        "description": "Ship the marketing site",
        "startDate": "2024-05-01",
        "endDate": "2024-05-20",
        "time": "18:00",
        "members": [{"name": "Alice"}, {"name": "Bob"}],
    }
