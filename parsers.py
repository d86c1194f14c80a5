import json
import math
import re
from datetime import datetime, timezone
from typing import Any, Dict, List

from bson import ObjectId

from config import KEY_MEMBER_NAME, KEY_TOTAL_PROGRESS, KEY_CURRENT_PROGRESS
from errors import ValidationError
from progress import clamp, round_half_up, MIN_PROGRESS, MAX_PROGRESS

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def parse_json_body(raw: bytes) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        raise ValidationError("Request body must be valid JSON")
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_RE.match(email or ""))


def is_object_id(value: Any) -> bool:
    return isinstance(value, (str, ObjectId)) and ObjectId.is_valid(value)


def missing_fields(data: Dict[str, Any], fields: List[str]) -> List[str]:
    """Fields that are absent or null (falsy values like 0 or "" count as present)."""
    return [f for f in fields if data.get(f) is None]


def empty_fields(data: Dict[str, Any], fields: List[str]) -> List[str]:
    """Fields that are absent or falsy."""
    return [f for f in fields if not data.get(f)]


def parse_date(value: Any, field: str) -> datetime:
    """
    Accept a datetime or an ISO-8601 string ("2024-05-01", "2024-05-01T09:00:00Z")
    and return a naive UTC datetime, the form pymongo hands back from BSON dates.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            raise ValidationError(f"{field} must be an ISO date")
    else:
        raise ValidationError(f"{field} must be an ISO date")

    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    # BSON dates carry millisecond precision
    return dt.replace(microsecond=(dt.microsecond // 1000) * 1000)


def parse_progress(value: Any, field: str) -> int:
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not math.isfinite(number):
        raise ValidationError(f"{field} must be a number")
    return int(clamp(round_half_up(number), MIN_PROGRESS, MAX_PROGRESS))


def parse_string(value: Any, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} must be a non-empty string")
    return value.strip()


def normalize_member_name(name: str) -> str:
    return " ".join(name.split()).lower()


def parse_members(raw: Any, reset_progress: bool = False) -> List[Dict[str, Any]]:
    """
    Validate a members list. Entries may be {"name": ...} objects or bare names.
    Names are trimmed and must be unique ignoring case and whitespace.
    With reset_progress every member starts at 0/0 whatever the caller sent.
    """
    if not isinstance(raw, list):
        raise ValidationError("Members must be an array")

    members: List[Dict[str, Any]] = []
    seen = set()
    for entry in raw:
        if isinstance(entry, str):
            entry = {KEY_MEMBER_NAME: entry}
        if not isinstance(entry, dict):
            raise ValidationError("Each member must be an object with a name")

        name = parse_string(entry.get(KEY_MEMBER_NAME), "Member name")
        key = normalize_member_name(name)
        if key in seen:
            raise ValidationError(f"Duplicate member name: {name}")
        seen.add(key)

        if reset_progress:
            total, current = 0, 0
        else:
            total = parse_progress(entry.get(KEY_TOTAL_PROGRESS), KEY_TOTAL_PROGRESS)
            current = parse_progress(entry.get(KEY_CURRENT_PROGRESS), KEY_CURRENT_PROGRESS)

        members.append({
            KEY_MEMBER_NAME: name,
            KEY_TOTAL_PROGRESS: total,
            KEY_CURRENT_PROGRESS: current,
        })
    return members
