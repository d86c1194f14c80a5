"""
Chat Service
Builds a plain-text digest of a user's personal and team tasks and asks
Gemini to answer the user's question from it
"""

from typing import Any, Callable, Dict, List

from config import KEY_ID, KEY_NAME, KEY_TITLE, KEY_DESCRIPTION, KEY_END_DATE, KEY_COMPLETED
from errors import ValidationError
from parsers import parse_date
from prompts import PROMPT_TASK_ASSISTANT, NO_PERSONAL_TASKS, NO_TEAM_TASKS, UNTITLED_TEAM_TASK
from task_service import TaskService


def human_date(value: Any) -> str:
    """Dates read like "Wed May 01 2024"; anything missing or unparseable is "No date"."""
    if not value:
        return "No date"
    try:
        return parse_date(value, KEY_END_DATE).strftime("%a %b %d %Y")
    except ValidationError:
        return "No date"


def task_status(task: Dict[str, Any]) -> str:
    return "Completed" if task.get(KEY_COMPLETED) else "Pending"


def format_personal_tasks(tasks: List[Dict[str, Any]]) -> str:
    if not tasks:
        return NO_PERSONAL_TASKS
    lines = []
    for i, t in enumerate(tasks, start=1):
        label = t.get(KEY_TITLE) or t.get(KEY_DESCRIPTION)
        lines.append(
            f"{i}. [Personal] {label} (Due: {human_date(t.get(KEY_END_DATE))}, Status: {task_status(t)})"
        )
    return "\n".join(lines)


def format_team_tasks(tasks: List[Dict[str, Any]]) -> str:
    if not tasks:
        return NO_TEAM_TASKS
    lines = []
    for i, t in enumerate(tasks, start=1):
        title = t.get(KEY_TITLE) or UNTITLED_TEAM_TASK
        lines.append(
            f"{i}. [Team] {title} (Due: {human_date(t.get(KEY_END_DATE))}, Status: {task_status(t)})"
        )
    return "\n".join(lines)


def build_chat_prompt(user_name: str, personal: List[Dict[str, Any]],
                      team: List[Dict[str, Any]], message: str) -> str:
    return PROMPT_TASK_ASSISTANT.format(
        user_name=user_name,
        personal_context=format_personal_tasks(personal),
        team_context=format_team_tasks(team),
        message=message,
    )


class ChatService:
    def __init__(self, task_service: TaskService, generate: Callable[[str], str]):
        self.task_service = task_service
        self.generate = generate

    def handle_chat(self, user: Dict[str, Any], data: Dict[str, Any]) -> str:
        message = data.get("message")
        if not isinstance(message, str) or not message.strip():
            raise ValidationError("Message is required")

        personal, team = self.task_service.tasks_for_member(user[KEY_ID], user[KEY_NAME])
        prompt = build_chat_prompt(user[KEY_NAME], personal, team, message.strip())

        print(f"🤖 Chat request from {user[KEY_NAME]}: {len(personal)} personal, {len(team)} team tasks")
        reply = self.generate(prompt)
        print(f"✅ Chat reply: {len(reply)} chars")
        return reply
