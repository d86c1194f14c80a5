"""
Task Service
Handles personal and team task CRUD, team task update authorization and
progress aggregation
"""

import time
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from authorizer import authorize_team_task_update, is_creator
from config import (
    TASKS_COLLECTION, TEAM_TASKS_COLLECTION,
    KEY_ID, KEY_CREATED, KEY_UPDATED,
    KEY_OWNER, KEY_TITLE, KEY_END_DATE, KEY_END_TIME, KEY_COMPLETED,
    KEY_CODE, KEY_DESCRIPTION, KEY_START_DATE, KEY_TIME, KEY_MEMBERS,
    KEY_PROGRESS, KEY_CREATOR,
)
from errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from parsers import (
    empty_fields, missing_fields, is_object_id,
    parse_date, parse_members, parse_string,
)
from progress import fold_daily_progress, recompute_task_progress

KEY_KIND = "kind"
KEY_VERSION = "version"

KIND_PERSONAL = "personal"
KIND_TEAM = "team"

PERSONAL_FIELDS = [KEY_TITLE, KEY_END_DATE, KEY_END_TIME]
TEAM_FIELDS = [KEY_CODE, KEY_TITLE, KEY_DESCRIPTION, KEY_START_DATE, KEY_END_DATE, KEY_TIME, KEY_MEMBERS]

# Bodies without an explicit kind are told apart by how many keys they carry,
# the contract older clients were written against.
LEGACY_PERSONAL_MAX_KEYS = 3


def now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


def as_object_id(value) -> ObjectId:
    return value if isinstance(value, ObjectId) else ObjectId(str(value))


def serialize_task(task: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Convert ObjectIds to strings for the API"""
    if task is None:
        return None
    task = dict(task)
    task[KEY_ID] = str(task[KEY_ID])
    task['id'] = task[KEY_ID]
    for key in (KEY_OWNER, KEY_CREATOR):
        if key in task:
            task[key] = str(task[key])
    return task


def resolve_task_kind(data: Dict[str, Any]) -> str:
    kind = data.get(KEY_KIND)
    if kind is None:
        return KIND_PERSONAL if len(data) <= LEGACY_PERSONAL_MAX_KEYS else KIND_TEAM
    if kind not in (KIND_PERSONAL, KIND_TEAM):
        raise ValidationError("kind must be 'personal' or 'team'")
    return kind


class TaskService:
    def __init__(self, db):
        self.tasks = db[TASKS_COLLECTION]
        self.team_tasks = db[TEAM_TASKS_COLLECTION]

    # ---------- lookups ----------

    def _team_task_query(self, ref: str) -> Dict[str, Any]:
        """Team tasks are addressed by their code or by their Mongo id."""
        clauses = [{KEY_CODE: str(ref).strip().upper()}]
        if is_object_id(ref):
            clauses.append({KEY_ID: ObjectId(ref)})
        return {'$or': clauses}

    def _find_personal_task(self, user_id, task_id) -> Optional[Dict[str, Any]]:
        if not is_object_id(task_id):
            return None
        return self.tasks.find_one({KEY_ID: ObjectId(task_id), KEY_OWNER: as_object_id(user_id)})

    def _find_team_task(self, ref) -> Optional[Dict[str, Any]]:
        return self.team_tasks.find_one(self._team_task_query(ref))

    def list_tasks(self, user_id) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
        """Personal tasks owned by the user and team tasks they created"""
        owner = as_object_id(user_id)
        personal = self.tasks.find({KEY_OWNER: owner}).sort(KEY_CREATED, ASCENDING)
        team = self.team_tasks.find({KEY_CREATOR: owner}).sort(KEY_CREATED, ASCENDING)
        return [serialize_task(t) for t in personal], [serialize_task(t) for t in team]

    def tasks_for_member(self, user_id, user_name: str) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
        """Personal tasks plus every team task the user created or is listed in"""
        owner = as_object_id(user_id)
        personal = self.tasks.find({KEY_OWNER: owner}).sort(KEY_CREATED, ASCENDING)
        team = self.team_tasks.find({
            '$or': [
                {KEY_CREATOR: owner},
                {f'{KEY_MEMBERS}.name': user_name},
            ]
        }).sort(KEY_CREATED, ASCENDING)
        return [serialize_task(t) for t in personal], [serialize_task(t) for t in team]

    def get_task(self, user_id, task_id) -> Dict[str, Any]:
        """A personal task of the user, or a team task the user created"""
        task = self._find_personal_task(user_id, task_id)
        if not task:
            query = self._team_task_query(task_id)
            query[KEY_CREATOR] = as_object_id(user_id)
            task = self.team_tasks.find_one(query)
        if not task:
            raise NotFoundError("No task found..")
        return serialize_task(task)

    def find_team_task(self, code: Optional[str]) -> Dict[str, Any]:
        """Any caller may look a team task up by its code"""
        if not code or not str(code).strip():
            raise ValidationError("Task ID is required")
        task = self.team_tasks.find_one({KEY_CODE: str(code).strip().upper()})
        if not task:
            raise NotFoundError("Team task not found")
        return serialize_task(task)

    # ---------- create ----------

    def create_task(self, user_id, data: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
        kind = resolve_task_kind(data)
        body = {k: v for k, v in data.items() if k != KEY_KIND}
        if kind == KIND_PERSONAL:
            return kind, self.create_personal_task(user_id, body)
        return kind, self.create_team_task(user_id, body)

    def create_personal_task(self, user_id, data: Dict[str, Any]) -> Dict[str, Any]:
        if empty_fields(data, PERSONAL_FIELDS):
            raise ValidationError("Title, end date, and end time are required")

        stamp = now_iso()
        task = {
            KEY_OWNER: as_object_id(user_id),
            KEY_TITLE: parse_string(data[KEY_TITLE], KEY_TITLE),
            KEY_END_DATE: parse_date(data[KEY_END_DATE], KEY_END_DATE),
            KEY_END_TIME: parse_string(data[KEY_END_TIME], KEY_END_TIME),
            KEY_COMPLETED: False,
            KEY_CREATED: stamp,
            KEY_UPDATED: stamp,
        }
        result = self.tasks.insert_one(task)
        task[KEY_ID] = result.inserted_id
        print(f"✅ Personal task created: {task[KEY_TITLE]}")
        return serialize_task(task)

    def create_team_task(self, user_id, data: Dict[str, Any]) -> Dict[str, Any]:
        if empty_fields(data, TEAM_FIELDS):
            raise ValidationError(
                "Task ID, title, description, startDate, endDate, time, and members "
                "are required for team task"
            )
        if not isinstance(data[KEY_MEMBERS], list):
            raise ValidationError("Members must be an array")

        code = parse_string(data[KEY_CODE], KEY_CODE).upper()
        start_date = parse_date(data[KEY_START_DATE], KEY_START_DATE)
        end_date = parse_date(data[KEY_END_DATE], KEY_END_DATE)
        if end_date < start_date:
            raise ValidationError("endDate cannot be before startDate")

        if self.team_tasks.find_one({KEY_CODE: code}):
            raise ConflictError("Task ID already exists")

        stamp = now_iso()
        task = {
            KEY_CODE: code,
            KEY_CREATOR: as_object_id(user_id),
            KEY_TITLE: parse_string(data[KEY_TITLE], KEY_TITLE),
            KEY_DESCRIPTION: parse_string(data[KEY_DESCRIPTION], KEY_DESCRIPTION),
            KEY_START_DATE: start_date,
            KEY_END_DATE: end_date,
            KEY_TIME: parse_string(data[KEY_TIME], KEY_TIME),
            KEY_MEMBERS: parse_members(data[KEY_MEMBERS], reset_progress=True),
            KEY_PROGRESS: 0,
            KEY_COMPLETED: False,
            KEY_VERSION: 0,
            KEY_CREATED: stamp,
            KEY_UPDATED: stamp,
        }
        try:
            result = self.team_tasks.insert_one(task)
        except DuplicateKeyError:
            raise ConflictError("Task ID already exists")

        task[KEY_ID] = result.inserted_id
        print(f"✅ Team task created: {code} ({len(task[KEY_MEMBERS])} members)")
        return serialize_task(task)

    # ---------- update ----------

    def update_task(self, user_id, user_name: str, task_id, data: Dict[str, Any]) -> Dict[str, Any]:
        if not task_id:
            raise ValidationError("Task ID is required")
        if not data:
            raise ValidationError("Request body cannot be empty")

        personal = self._find_personal_task(user_id, task_id)
        if personal:
            return self.update_personal_task(personal, data)

        team = self._find_team_task(task_id)
        if team:
            return self.update_team_task(team, user_id, user_name, data)

        raise NotFoundError("Task not found")

    def update_personal_task(self, task: Dict[str, Any], data: Dict[str, Any]) -> Dict[str, Any]:
        if missing_fields(data, PERSONAL_FIELDS):
            raise ValidationError("Title, end date, and end time are required for simple task update")

        updates = {
            KEY_TITLE: parse_string(data[KEY_TITLE], KEY_TITLE),
            KEY_END_DATE: parse_date(data[KEY_END_DATE], KEY_END_DATE),
            KEY_END_TIME: parse_string(data[KEY_END_TIME], KEY_END_TIME),
            KEY_UPDATED: now_iso(),
        }
        if data.get(KEY_COMPLETED) is not None:
            if not isinstance(data[KEY_COMPLETED], bool):
                raise ValidationError("isCompleted must be true or false")
            updates[KEY_COMPLETED] = data[KEY_COMPLETED]

        result = self.tasks.find_one_and_update(
            {KEY_ID: task[KEY_ID], KEY_OWNER: task[KEY_OWNER]},
            {'$set': updates},
            return_document=ReturnDocument.AFTER,
        )
        if not result:
            raise NotFoundError("Task not found")
        return serialize_task(result)

    def update_team_task(self, task: Dict[str, Any], user_id, user_name: str,
                         data: Dict[str, Any]) -> Dict[str, Any]:
        updates = authorize_team_task_update(task, user_id, user_name, data)

        new_code = updates.get(KEY_CODE)
        if new_code and new_code != task.get(KEY_CODE):
            if self.team_tasks.find_one({KEY_CODE: new_code}):
                raise ConflictError("Task ID already exists")

        members = updates[KEY_MEMBERS]
        for member in members:
            fold_daily_progress(member)
        updates[KEY_PROGRESS] = recompute_task_progress(members)

        version = task.get(KEY_VERSION)
        updates[KEY_VERSION] = (version or 0) + 1
        updates[KEY_UPDATED] = now_iso()

        try:
            result = self.team_tasks.find_one_and_update(
                {KEY_ID: task[KEY_ID], KEY_VERSION: version},
                {'$set': updates},
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError:
            raise ConflictError("Task ID already exists")

        if not result:
            raise ConflictError("Task was modified by someone else, reload and try again", 409)

        print(f"✅ Team task updated: {result.get(KEY_CODE)} progress={result.get(KEY_PROGRESS)}%")
        return serialize_task(result)

    # ---------- delete ----------

    def delete_task(self, user_id, task_id) -> str:
        owner = as_object_id(user_id)

        if is_object_id(task_id):
            deleted = self.tasks.find_one_and_delete({KEY_ID: ObjectId(task_id), KEY_OWNER: owner})
            if deleted:
                return "Personal task deleted successfully."

        team = self._find_team_task(task_id)
        if not team:
            raise NotFoundError("Task not found")
        if not is_creator(team, owner):
            raise PermissionDeniedError("Only the task creator can delete this task")

        self.team_tasks.delete_one({KEY_ID: team[KEY_ID]})
        print(f"🗑️ Team task deleted: {team.get(KEY_CODE)}")
        return "Team task deleted successfully."
