"""
Task Manager API server
Personal tasks, team tasks with per-member progress, and a Gemini chat
assistant, served as JSON over http.server and backed by MongoDB
"""

import http.server
import json
import socketserver
import traceback
from datetime import datetime
from typing import Any, Dict, Tuple
from urllib.parse import parse_qs, urlsplit

from bson import ObjectId
from pymongo.errors import PyMongoError

from auth_service import AuthService, parse_bearer_token, public_user
from chat_service import ChatService
from config import PORT, DB_NAME, GEMINI_API_KEY, GEMINI_MODEL, KEY_ID, KEY_NAME, KEY_CODE
from db import get_client, get_database, ensure_indexes
from errors import TaskAppError, NotFoundError, ValidationError
from gemini_client import call_gemini
from parsers import parse_json_body
from task_service import TaskService, KIND_PERSONAL

API_PREFIX = "/api"


class JSONEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, ObjectId):
            return str(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        return super().default(obj)


class MethodNotAllowed(TaskAppError):
    status_code = 405


Response = Tuple[int, Dict[str, Any]]


class TaskApi:
    """Routes a request to the services; knows nothing about sockets."""

    def __init__(self, auth: AuthService, tasks: TaskService, chat: ChatService):
        self.auth = auth
        self.tasks = tasks
        self.chat = chat

    def handle(self, method: str, raw_path: str, headers, body: bytes = b"") -> Response:
        try:
            return self._route(method.upper(), raw_path, headers, body)
        except TaskAppError as e:
            return e.status_code, {'status': False, 'msg': e.message}
        except PyMongoError as e:
            print(f"❌ Database error on {method} {raw_path}: {e}")
            return 503, {'status': False, 'msg': 'Database unavailable, please try again'}
        except Exception as e:
            print(f"❌ Unhandled error on {method} {raw_path}: {e}")
            traceback.print_exc()
            return 500, {'status': False, 'msg': 'Internal Server Error'}

    def _route(self, method: str, raw_path: str, headers, body: bytes) -> Response:
        parts = urlsplit(raw_path)
        path = parts.path
        if path == API_PREFIX or path.startswith(API_PREFIX + "/"):
            path = path[len(API_PREFIX):]
        segments = [s for s in path.split("/") if s]
        query = parse_qs(parts.query)

        if segments[:1] == ["auth"] and len(segments) == 2:
            action = segments[1]
            if action == "me":
                if method != "GET":
                    raise MethodNotAllowed("Method not allowed")
                return 200, {'user': public_user(self._current_user(headers)), 'status': True}
            if method != "POST":
                raise MethodNotAllowed("Method not allowed")
            if action == "signup":
                self.auth.signup(parse_json_body(body))
                return 200, {'status': True, 'msg': 'Congratulations!! Account has been created for you..'}
            if action == "login":
                result = self.auth.login(parse_json_body(body))
                return 200, {**result, 'status': True, 'msg': 'Login successful..'}
            if action == "logout":
                self._current_user(headers)
                self.auth.logout(parse_bearer_token(headers.get('Authorization')))
                return 200, {'status': True, 'msg': 'Logged out'}

        elif segments == ["tasks"]:
            user = self._current_user(headers)
            if method == "GET":
                personal, team = self.tasks.list_tasks(user[KEY_ID])
                return 200, {
                    'personalTasks': personal,
                    'teamTasks': team,
                    'status': True,
                    'msg': 'Tasks found successfully..',
                }
            if method == "POST":
                kind, task = self.tasks.create_task(user[KEY_ID], parse_json_body(body))
                if kind == KIND_PERSONAL:
                    return 200, {'task': task, 'status': True, 'msg': 'Task created successfully..'}
                return 200, {
                    'teamTask': task,
                    'status': True,
                    'msg': 'Team task created successfully with progress starting at 0.',
                }
            raise MethodNotAllowed("Method not allowed")

        elif segments == ["tasks", "find"]:
            if method != "GET":
                raise MethodNotAllowed("Method not allowed")
            self._current_user(headers)
            code = (query.get('taskId') or [None])[0]
            task = self.tasks.find_team_task(code)
            return 200, {'task': task, 'status': True, 'msg': 'Team task found successfully'}

        elif segments[:1] == ["tasks"] and len(segments) == 2:
            user = self._current_user(headers)
            task_id = segments[1]
            if method == "GET":
                task = self.tasks.get_task(user[KEY_ID], task_id)
                return 200, {'task': task, 'status': True, 'msg': 'Task found successfully..'}
            if method == "PUT":
                task = self.tasks.update_task(user[KEY_ID], user[KEY_NAME], task_id, parse_json_body(body))
                msg = 'Team task updated successfully' if KEY_CODE in task else 'Task updated successfully'
                return 200, {'task': task, 'status': True, 'msg': msg}
            if method == "DELETE":
                msg = self.tasks.delete_task(user[KEY_ID], task_id)
                return 200, {'status': True, 'msg': msg}
            raise MethodNotAllowed("Method not allowed")

        elif segments == ["chat"]:
            if method != "POST":
                raise MethodNotAllowed("Method not allowed")
            user = self._current_user(headers)
            reply = self.chat.handle_chat(user, parse_json_body(body))
            return 200, {'reply': reply}

        raise NotFoundError("Not found")

    def _current_user(self, headers) -> Dict[str, Any]:
        return self.auth.authenticate(parse_bearer_token(headers.get('Authorization')))


def read_body(headers, rfile) -> bytes:
    raw_length = headers.get('Content-Length') or '0'
    try:
        content_length = int(raw_length)
    except ValueError:
        raise ValidationError("Content-Length must be a non-negative integer")
    if content_length < 0:
        raise ValidationError("Content-Length must be a non-negative integer")
    return rfile.read(content_length) if content_length > 0 else b''


def make_handler(api: TaskApi):
    class TaskApiHandler(http.server.BaseHTTPRequestHandler):
        def _send_json(self, status: int, payload: Dict[str, Any]):
            data = json.dumps(payload, cls=JSONEncoder).encode()
            self.send_response(status)
            self.send_header('Content-type', 'application/json')
            self.send_header('Content-Length', str(len(data)))
            self.send_header('Access-Control-Allow-Origin', '*')
            self.end_headers()
            self.wfile.write(data)

        def _dispatch(self):
            try:
                body = read_body(self.headers, self.rfile)
            except TaskAppError as e:
                self.close_connection = True
                self._send_json(e.status_code, {'status': False, 'msg': e.message})
                return
            status, payload = api.handle(self.command, self.path, self.headers, body)
            self._send_json(status, payload)

        do_GET = _dispatch
        do_POST = _dispatch
        do_PUT = _dispatch
        do_DELETE = _dispatch

        def do_OPTIONS(self):
            self.send_response(204)
            self.send_header('Access-Control-Allow-Origin', '*')
            self.send_header('Access-Control-Allow-Methods', 'GET, POST, PUT, DELETE, OPTIONS')
            self.send_header('Access-Control-Allow-Headers', 'Authorization, Content-Type')
            self.end_headers()

        def log_message(self, format, *args):
            pass

    return TaskApiHandler


class ThreadingServer(socketserver.ThreadingMixIn, socketserver.TCPServer):
    allow_reuse_address = True
    daemon_threads = True


def build_api(db) -> TaskApi:
    tasks = TaskService(db)
    return TaskApi(AuthService(db), tasks, ChatService(tasks, call_gemini))


def main():
    print("🔍 Connecting to MongoDB...")
    try:
        client = get_client()
        db = get_database(client)
        ensure_indexes(db)
    except (RuntimeError, PyMongoError) as e:
        print(f"❌ MongoDB connection failed: {e}")
        raise
    print("✅ Connected to MongoDB")

    with ThreadingServer(("0.0.0.0", PORT), make_handler(build_api(db))) as httpd:
        print("=" * 60)
        print("✨ TASK MANAGER API RUNNING")
        print("=" * 60)
        print(f"🌐 URL: http://localhost:{PORT}")
        print(f"📊 Database: {DB_NAME}")
        print(f"🤖 Chat assistant: {'ENABLED (' + GEMINI_MODEL + ')' if GEMINI_API_KEY else 'DISABLED (no API key)'}")
        print("=" * 60)
        print("\nPress Ctrl+C to stop\n")

        try:
            httpd.serve_forever()
        except KeyboardInterrupt:
            print("\n\n👋 Shutting down...")
        finally:
            client.close()


if __name__ == '__main__':
    main()
