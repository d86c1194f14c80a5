from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

from config import (
    MONGODB_URI, DB_NAME, MONGODB_TIMEOUT_MS,
    USERS_COLLECTION, SESSIONS_COLLECTION,
    TASKS_COLLECTION, TEAM_TASKS_COLLECTION,
    KEY_EMAIL, KEY_PHONE, KEY_TOKEN, KEY_USER_ID,
    KEY_OWNER, KEY_CODE, KEY_CREATOR,
)


def get_client(uri: str = MONGODB_URI) -> MongoClient:
    if not uri:
        raise RuntimeError("Missing MONGODB_URI in .env")
    client = MongoClient(uri, serverSelectionTimeoutMS=MONGODB_TIMEOUT_MS)
    client.admin.command("ping")
    return client


def get_database(client: MongoClient, name: str = DB_NAME) -> Database:
    return client[name]


def ensure_indexes(db) -> None:
    """Create the unique and lookup indexes the services rely on."""
    db[USERS_COLLECTION].create_index(KEY_EMAIL, unique=True)
    db[USERS_COLLECTION].create_index(KEY_PHONE, unique=True)
    db[SESSIONS_COLLECTION].create_index(KEY_TOKEN, unique=True)
    db[SESSIONS_COLLECTION].create_index(KEY_USER_ID)
    db[TASKS_COLLECTION].create_index(KEY_OWNER)
    db[TEAM_TASKS_COLLECTION].create_index([(KEY_CODE, ASCENDING)], unique=True)
    db[TEAM_TASKS_COLLECTION].create_index(KEY_CREATOR)
    db[TEAM_TASKS_COLLECTION].create_index("members.name")
