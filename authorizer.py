"""
Team Task Update Authorizer
Decides whether a proposed team task document may be written by the acting
user, and which fields of it are actually applied.

Creators are trusted for every field. Anyone else must resend the task
unchanged except for the progress of their own member entry. Members are
compared by position, so a reordered member list counts as a roster change.
"""

from typing import Any, Dict

from config import (
    KEY_CODE, KEY_TITLE, KEY_DESCRIPTION, KEY_START_DATE, KEY_END_DATE,
    KEY_TIME, KEY_MEMBERS, KEY_PROGRESS, KEY_COMPLETED, KEY_CREATOR,
    KEY_MEMBER_NAME, KEY_TOTAL_PROGRESS, KEY_CURRENT_PROGRESS,
)
from errors import ValidationError, PermissionDeniedError
from parsers import (
    missing_fields, parse_date, parse_members, parse_progress,
    parse_string, normalize_member_name,
)

REQUIRED_FIELDS = [
    KEY_TITLE, KEY_DESCRIPTION, KEY_START_DATE, KEY_END_DATE,
    KEY_TIME, KEY_MEMBERS, KEY_PROGRESS,
]
DETAIL_FIELDS = [
    KEY_TITLE, KEY_DESCRIPTION, KEY_START_DATE, KEY_END_DATE,
    KEY_TIME, KEY_CODE, KEY_COMPLETED,
]
DATE_FIELDS = (KEY_START_DATE, KEY_END_DATE)


def parse_team_task_proposal(proposed: Dict[str, Any]) -> Dict[str, Any]:
    """Validate a full team task document sent for update; returns clean values."""
    missing = missing_fields(proposed, REQUIRED_FIELDS)
    if missing:
        raise ValidationError(
            "All fields (title, description, startDate, endDate, time, members, progress) "
            "are required for team task update"
        )
    if not isinstance(proposed[KEY_MEMBERS], list):
        raise ValidationError("Members must be an array")

    clean = {
        KEY_TITLE: parse_string(proposed[KEY_TITLE], KEY_TITLE),
        KEY_DESCRIPTION: parse_string(proposed[KEY_DESCRIPTION], KEY_DESCRIPTION),
        KEY_START_DATE: parse_date(proposed[KEY_START_DATE], KEY_START_DATE),
        KEY_END_DATE: parse_date(proposed[KEY_END_DATE], KEY_END_DATE),
        KEY_TIME: parse_string(proposed[KEY_TIME], KEY_TIME),
        KEY_MEMBERS: parse_members(proposed[KEY_MEMBERS]),
        KEY_PROGRESS: parse_progress(proposed[KEY_PROGRESS], KEY_PROGRESS),
    }
    if clean[KEY_END_DATE] < clean[KEY_START_DATE]:
        raise ValidationError("endDate cannot be before startDate")

    if proposed.get(KEY_CODE) is not None:
        clean[KEY_CODE] = parse_string(proposed[KEY_CODE], KEY_CODE).upper()
    if proposed.get(KEY_COMPLETED) is not None:
        if not isinstance(proposed[KEY_COMPLETED], bool):
            raise ValidationError("isCompleted must be true or false")
        clean[KEY_COMPLETED] = proposed[KEY_COMPLETED]
    return clean


def is_creator(task: Dict[str, Any], user_id: Any) -> bool:
    return str(user_id) == str(task.get(KEY_CREATOR))


def _stored_value(task: Dict[str, Any], field: str) -> Any:
    value = task.get(field)
    if field in DATE_FIELDS and value is not None:
        return parse_date(value, field)
    if field == KEY_COMPLETED:
        return bool(value)
    return value


def _check_member_changes(stored_members, proposed_members, user_name: str) -> None:
    if len(proposed_members) != len(stored_members):
        raise PermissionDeniedError("Only the task creator can add or remove members")

    me = normalize_member_name(user_name or "")
    for old, new in zip(stored_members, proposed_members):
        if new[KEY_MEMBER_NAME] != old.get(KEY_MEMBER_NAME):
            raise PermissionDeniedError("Only the task creator can rename or reorder members")
        if normalize_member_name(new[KEY_MEMBER_NAME]) == me:
            continue
        if (new[KEY_TOTAL_PROGRESS] != int(old.get(KEY_TOTAL_PROGRESS) or 0)
                or new[KEY_CURRENT_PROGRESS] != int(old.get(KEY_CURRENT_PROGRESS) or 0)):
            raise PermissionDeniedError("You can only update your own progress")


def authorize_team_task_update(
    task: Dict[str, Any], user_id: Any, user_name: str, proposed: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Returns the fields to write. The caller still folds daily progress and
    recomputes task progress before persisting; the proposal's own progress
    value is never trusted.
    """
    clean = parse_team_task_proposal(proposed)
    clean.pop(KEY_PROGRESS)

    if is_creator(task, user_id):
        return clean

    for field in DETAIL_FIELDS:
        if field in clean and clean[field] != _stored_value(task, field):
            raise PermissionDeniedError("Only the task creator can change task details")

    _check_member_changes(task.get(KEY_MEMBERS) or [], clean[KEY_MEMBERS], user_name)
    return {KEY_MEMBERS: clean[KEY_MEMBERS]}
