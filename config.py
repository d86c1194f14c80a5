from dotenv import load_dotenv
load_dotenv()

import os

# Server
PORT = int(os.getenv("PORT", "5080"))

# MongoDB
MONGODB_URI = os.getenv("MONGODB_URI", "").strip()
DB_NAME = os.getenv("MONGODB_DB", "task_manager").strip()
USERS_COLLECTION = os.getenv("MONGODB_USERS_COLLECTION", "users").strip()
SESSIONS_COLLECTION = os.getenv("MONGODB_SESSIONS_COLLECTION", "sessions").strip()
TASKS_COLLECTION = os.getenv("MONGODB_TASKS_COLLECTION", "tasks").strip()
TEAM_TASKS_COLLECTION = os.getenv("MONGODB_TEAM_TASKS_COLLECTION", "team_tasks").strip()
MONGODB_TIMEOUT_MS = int(os.getenv("MONGODB_TIMEOUT_MS", "5000"))

# Gemini
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "").strip()
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash").strip()
GEMINI_URL = f"https://generativelanguage.googleapis.com/v1beta/models/{GEMINI_MODEL}:generateContent"
GEMINI_TIMEOUT_S = int(os.getenv("GEMINI_TIMEOUT_S", "30"))

# Auth
PASSWORD_MIN_LENGTH = int(os.getenv("PASSWORD_MIN_LENGTH", "4"))

# Mongo keys (shared across collections)
KEY_ID = "_id"
KEY_CREATED = "createdAt"
KEY_UPDATED = "updatedAt"

# users / sessions
KEY_NAME = "name"
KEY_EMAIL = "email"
KEY_PHONE = "phone"
KEY_PASSWORD = "password"
KEY_TOKEN = "token"
KEY_USER_ID = "userId"

# tasks
KEY_OWNER = "user"
KEY_TITLE = "title"
KEY_END_DATE = "endDate"
KEY_END_TIME = "endTime"
KEY_COMPLETED = "isCompleted"

# team_tasks
KEY_CODE = "taskId"
KEY_DESCRIPTION = "description"
KEY_START_DATE = "startDate"
KEY_TIME = "time"
KEY_MEMBERS = "members"
KEY_PROGRESS = "progress"
KEY_CREATOR = "createdBy"

# members (embedded)
KEY_MEMBER_NAME = "name"
KEY_TOTAL_PROGRESS = "totalProgress"
KEY_CURRENT_PROGRESS = "currentProgress"
