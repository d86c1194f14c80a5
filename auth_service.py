"""
Authentication Service
Handles user registration, login, bearer sessions, and password hashing
"""

import hashlib
import secrets
import time
from typing import Any, Dict, Optional

from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from config import (
    USERS_COLLECTION, SESSIONS_COLLECTION, PASSWORD_MIN_LENGTH,
    KEY_ID, KEY_NAME, KEY_EMAIL, KEY_PHONE, KEY_PASSWORD,
    KEY_TOKEN, KEY_USER_ID, KEY_CREATED,
)
from errors import AuthenticationError, ConflictError, ValidationError
from parsers import empty_fields, is_object_id, is_valid_email


def now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


def hash_password(password):
    """Hash password with salt for secure storage"""
    salt = secrets.token_hex(16)
    pwd_hash = hashlib.sha256((password + salt).encode()).hexdigest()
    return f"{salt}${pwd_hash}"


def verify_password(password, hashed):
    """Verify password against stored hash"""
    try:
        salt, pwd_hash = hashed.split('$')
    except (AttributeError, ValueError):
        return False
    candidate = hashlib.sha256((password + salt).encode()).hexdigest()
    return secrets.compare_digest(candidate, pwd_hash)


def public_user(user: Dict[str, Any]) -> Dict[str, Any]:
    """User document safe to send to clients (no password hash)"""
    doc = {k: v for k, v in user.items() if k != KEY_PASSWORD}
    doc[KEY_ID] = str(doc[KEY_ID])
    doc['id'] = doc[KEY_ID]
    return doc


def parse_bearer_token(header: Optional[str]) -> Optional[str]:
    if not header:
        return None
    scheme, _, token = header.strip().partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


class AuthService:
    def __init__(self, db):
        self.users = db[USERS_COLLECTION]
        self.sessions = db[SESSIONS_COLLECTION]

    def signup(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Register a new user.
        Requires name, email, phone and password as strings; email and phone
        must not belong to an existing account.
        """
        fields = [KEY_NAME, KEY_EMAIL, KEY_PHONE, KEY_PASSWORD]
        if empty_fields(data, fields):
            raise ValidationError("Please fill all the fields")

        if not all(isinstance(data[f], str) for f in fields):
            raise ValidationError("Please send string values only")

        name = data[KEY_NAME].strip()
        email = data[KEY_EMAIL].strip().lower()
        phone = data[KEY_PHONE].strip()
        password = data[KEY_PASSWORD]

        if len(password) < PASSWORD_MIN_LENGTH:
            raise ValidationError(
                f"Password length must be at least {PASSWORD_MIN_LENGTH} characters"
            )

        if not is_valid_email(email):
            raise ValidationError("Invalid Email")

        if self.users.find_one({KEY_EMAIL: email}):
            raise ConflictError("This email is already registered")

        if self.users.find_one({KEY_PHONE: phone}):
            raise ConflictError("This phone number is already registered")

        try:
            result = self.users.insert_one({
                KEY_NAME: name,
                KEY_EMAIL: email,
                KEY_PHONE: phone,
                KEY_PASSWORD: hash_password(password),
                KEY_CREATED: now_iso(),
            })
        except DuplicateKeyError:
            raise ConflictError("This email or phone number is already registered")

        print(f"✅ User registered: {email}")
        return {'id': str(result.inserted_id)}

    def login(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Check credentials and open a session. Returns the token and public user."""
        if empty_fields(data, [KEY_EMAIL, KEY_PASSWORD]):
            raise ValidationError("Please fill all the fields")

        email = str(data[KEY_EMAIL]).strip().lower()
        user = self.users.find_one({KEY_EMAIL: email})

        if not user or not verify_password(str(data[KEY_PASSWORD]), user[KEY_PASSWORD]):
            raise ValidationError("Invalid email or password")

        token = secrets.token_urlsafe(32)
        self.sessions.insert_one({
            KEY_TOKEN: token,
            KEY_USER_ID: str(user[KEY_ID]),
            KEY_CREATED: now_iso(),
        })

        print(f"✅ User logged in: {email}")
        return {'token': token, 'user': public_user(user)}

    def logout(self, token: str) -> bool:
        result = self.sessions.delete_one({KEY_TOKEN: token})
        return result.deleted_count > 0

    def get_user_by_id(self, user_id) -> Optional[Dict[str, Any]]:
        if not is_object_id(user_id):
            return None
        return self.users.find_one({KEY_ID: ObjectId(user_id)})

    def authenticate(self, token: Optional[str]) -> Dict[str, Any]:
        """Resolve a bearer token to its user document."""
        if not token:
            raise AuthenticationError("Authorization token is required")

        session = self.sessions.find_one({KEY_TOKEN: token})
        if not session:
            raise AuthenticationError("Invalid or expired token")

        user = self.get_user_by_id(session[KEY_USER_ID])
        if not user:
            raise AuthenticationError("Invalid or expired token")
        return user
