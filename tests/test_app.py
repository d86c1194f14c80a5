# tests/test_app.py

from __future__ import annotations

import io
import json

import pytest
from pymongo.errors import ServerSelectionTimeoutError

from app import JSONEncoder, TaskApi, read_body
from errors import ValidationError

from .fakes import FakeGemini


def call(api: TaskApi, method: str, path: str, token: str | None = None, body=None):
    """Drive the API like an HTTP client would, JSON on both sides."""
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    raw = b"" if body is None else (body if isinstance(body, bytes) else json.dumps(body).encode())
    status, payload = api.handle(method, path, headers, raw)
    return status, json.loads(json.dumps(payload, cls=JSONEncoder))


def register(api: TaskApi, name: str, phone: str) -> str:
    email = f"{name.lower()}@example.com"
    status, payload = call(api, "POST", "/auth/signup", body={
        "name": name, "email": email, "phone": phone, "password": "secret",
    })
    assert status == 200 and payload["status"] is True
    status, payload = call(api, "POST", "/auth/login", body={"email": email, "password": "secret"})
    assert status == 200
    return payload["token"]


@pytest.fixture()
def tokens(api: TaskApi) -> dict:
    return {
        "carol": register(api, "Carol", "5550001"),
        "alice": register(api, "Alice", "5550002"),
        "bob": register(api, "Bob", "5550003"),
    }


def test_login_payload(api: TaskApi) -> None:
    register(api, "Carol", "5550001")
    status, payload = call(api, "POST", "/auth/login", body={"email": "carol@example.com", "password": "secret"})
    assert status == 200
    assert payload["status"] is True
    assert payload["msg"] == "Login successful.."
    assert payload["user"]["email"] == "carol@example.com"
    assert "password" not in payload["user"]


def test_bad_login_is_400_with_status_false(api: TaskApi) -> None:
    status, payload = call(api, "POST", "/auth/login", body={"email": "x@example.com", "password": "nope"})
    assert status == 400
    assert payload == {"status": False, "msg": "Invalid email or password"}


def test_task_routes_require_token(api: TaskApi) -> None:
    for method, path in [("GET", "/tasks"), ("POST", "/tasks"), ("GET", "/tasks/find?taskId=A"),
                         ("PUT", "/tasks/A"), ("DELETE", "/tasks/A"), ("POST", "/chat")]:
        status, payload = call(api, method, path)
        assert status == 401, path
        assert payload["status"] is False


def test_unknown_route_and_wrong_method(api: TaskApi, tokens: dict) -> None:
    assert call(api, "GET", "/nope", tokens["carol"])[0] == 404
    assert call(api, "PATCH", "/tasks", tokens["carol"])[0] == 405
    assert call(api, "GET", "/auth/login")[0] == 405


def test_malformed_json_is_400(api: TaskApi, tokens: dict) -> None:
    status, payload = call(api, "POST", "/tasks", tokens["carol"], body=b"{not json")
    assert status == 400
    assert payload["status"] is False


def test_api_prefix_is_accepted(api: TaskApi, tokens: dict) -> None:
    status, payload = call(api, "GET", "/api/tasks", tokens["carol"])
    assert status == 200
    assert payload["personalTasks"] == [] and payload["teamTasks"] == []


def test_personal_task_lifecycle(api: TaskApi, tokens: dict) -> None:
    status, payload = call(api, "POST", "/tasks", tokens["carol"], body={
        "title": "Dentist", "endDate": "2024-05-02", "endTime": "10:00",
    })
    assert status == 200
    assert payload["msg"] == "Task created successfully.."
    task_id = payload["task"]["id"]

    status, payload = call(api, "GET", f"/tasks/{task_id}", tokens["carol"])
    assert status == 200 and payload["task"]["title"] == "Dentist"

    status, payload = call(api, "PUT", f"/tasks/{task_id}", tokens["carol"], body={
        "title": "Dentist", "endDate": "2024-05-02", "endTime": "10:00", "isCompleted": True,
    })
    assert status == 200
    assert payload["msg"] == "Task updated successfully"
    assert payload["task"]["isCompleted"] is True

    status, payload = call(api, "GET", f"/tasks/{task_id}", tokens["alice"])
    assert status == 404

    status, payload = call(api, "DELETE", f"/tasks/{task_id}", tokens["carol"])
    assert status == 200 and payload["status"] is True


def test_team_task_end_to_end(api: TaskApi, tokens: dict, team_payload: dict) -> None:
    team_payload["members"] = [
        {"name": "Alice", "totalProgress": 70, "currentProgress": 5},
        {"name": "Bob"},
    ]
    status, payload = call(api, "POST", "/tasks", tokens["carol"], body=team_payload)
    assert status == 200
    team = payload["teamTask"]
    assert team["taskId"] == "ABC123"
    assert team["progress"] == 0
    assert all(m["totalProgress"] == 0 and m["currentProgress"] == 0 for m in team["members"])

    # anyone can look the task up by code, in any case
    status, payload = call(api, "GET", "/tasks/find?taskId=abc123", tokens["alice"])
    assert status == 200
    task = payload["task"]
    assert task["id"] == team["id"]

    # Alice commits 40% for herself
    task["members"][0]["currentProgress"] = 40
    status, payload = call(api, "PUT", f"/tasks/{task['taskId']}", tokens["alice"], body=task)
    assert status == 200, payload
    assert payload["msg"] == "Team task updated successfully"
    task = payload["task"]
    assert task["members"][0]["totalProgress"] == 40
    assert task["members"][0]["currentProgress"] == 0
    assert task["progress"] == 20

    # Bob tries to bump Alice
    task["members"][0]["totalProgress"] = 100
    status, payload = call(api, "PUT", f"/tasks/{task['id']}", tokens["bob"], body=task)
    assert status == 403
    assert payload == {"status": False, "msg": "You can only update your own progress"}

    # Only the creator sees it in their list and may delete it
    status, payload = call(api, "GET", "/tasks", tokens["carol"])
    assert [t["taskId"] for t in payload["teamTasks"]] == ["ABC123"]
    assert call(api, "DELETE", "/tasks/ABC123", tokens["alice"])[0] == 403
    assert call(api, "DELETE", "/tasks/ABC123", tokens["carol"])[0] == 200
    assert call(api, "GET", "/tasks/find?taskId=ABC123", tokens["alice"])[0] == 404


def test_team_update_missing_fields_is_400(api: TaskApi, tokens: dict, team_payload: dict) -> None:
    call(api, "POST", "/tasks", tokens["carol"], body=team_payload)
    status, payload = call(api, "PUT", "/tasks/ABC123", tokens["carol"], body={"title": "New"})
    assert status == 400
    assert "required" in payload["msg"]


def test_duplicate_team_code_is_400(api: TaskApi, tokens: dict, team_payload: dict) -> None:
    assert call(api, "POST", "/tasks", tokens["carol"], body=team_payload)[0] == 200
    status, payload = call(api, "POST", "/tasks", tokens["alice"], body=team_payload)
    assert status == 400
    assert payload["msg"] == "Task ID already exists"


def test_find_without_code_is_400(api: TaskApi, tokens: dict) -> None:
    assert call(api, "GET", "/tasks/find", tokens["carol"])[0] == 400


def test_chat(api: TaskApi, tokens: dict, gemini: FakeGemini) -> None:
    status, payload = call(api, "POST", "/chat", tokens["alice"], body={"message": "What are my tasks?"})
    assert status == 200
    assert payload == {"reply": gemini.reply}
    assert "Task Manager Assistant for Alice" in gemini.prompts[0]


def test_logout(api: TaskApi, tokens: dict) -> None:
    assert call(api, "POST", "/auth/logout", tokens["bob"])[0] == 200
    assert call(api, "GET", "/tasks", tokens["bob"])[0] == 401


def test_me(api: TaskApi, tokens: dict) -> None:
    status, payload = call(api, "GET", "/auth/me", tokens["bob"])
    assert status == 200
    assert payload["user"]["name"] == "Bob"


def test_database_outage_is_503(api: TaskApi, tokens: dict, monkeypatch: pytest.MonkeyPatch) -> None:
    def boom(*args, **kwargs):
        raise ServerSelectionTimeoutError("no servers")

    monkeypatch.setattr(api.tasks, "list_tasks", boom)
    status, payload = call(api, "GET", "/tasks", tokens["carol"])
    assert status == 503
    assert payload["status"] is False


def test_unexpected_error_is_generic_500(api: TaskApi, tokens: dict, monkeypatch: pytest.MonkeyPatch) -> None:
    def boom(*args, **kwargs):
        raise KeyError("secret internals")

    monkeypatch.setattr(api.tasks, "list_tasks", boom)
    status, payload = call(api, "GET", "/tasks", tokens["carol"])
    assert status == 500
    assert payload == {"status": False, "msg": "Internal Server Error"}


@pytest.mark.parametrize("length", ["abc", "12abc", "-1", "1.5"])
def test_bad_content_length_is_a_validation_error(length: str) -> None:
    with pytest.raises(ValidationError, match="Content-Length") as exc:
        read_body({"Content-Length": length}, io.BytesIO(b'{"a": 1}'))
    assert exc.value.status_code == 400


def test_read_body_uses_content_length() -> None:
    rfile = io.BytesIO(b'{"a": 1}trailing')
    assert read_body({"Content-Length": "8"}, rfile) == b'{"a": 1}'
    assert read_body({}, io.BytesIO(b"ignored")) == b""
    assert read_body({"Content-Length": ""}, io.BytesIO(b"ignored")) == b""


@pytest.mark.parametrize("progress", ["Infinity", "1e999"])
def test_non_finite_progress_is_400(api: TaskApi, tokens: dict, team_payload: dict, progress: str) -> None:
    call(api, "POST", "/tasks", tokens["carol"], body=team_payload)
    status, payload = call(api, "GET", "/tasks/find?taskId=ABC123", tokens["alice"])
    task = payload["task"]
    task["members"][0]["currentProgress"] = progress
    status, payload = call(api, "PUT", "/tasks/ABC123", tokens["alice"], body=task)
    assert status == 400
    assert payload["status"] is False
