from __future__ import annotations

TASKS_ROOT = "tasks"
USER_TASKS_ROOT = "userTasks"
USERS_ROOT = "users"


def owner_tasks(owner_id: str) -> str:
    return f"{TASKS_ROOT}/{owner_id}"


def task(owner_id: str, task_id: str) -> str:
    return f"{TASKS_ROOT}/{owner_id}/{task_id}"


def subtask(owner_id: str, task_id: str, subtask_id: str) -> str:
    return f"{task(owner_id, task_id)}/subtasks/{subtask_id}"


def task_collaborator(owner_id: str, task_id: str, collaborator_id: str) -> str:
    return f"{task(owner_id, task_id)}/collaborators/{collaborator_id}"


def collaborations(uid: str) -> str:
    return f"{USER_TASKS_ROOT}/{uid}"


def collaboration(collaborator_id: str, owner_id: str, task_id: str) -> str:
    return f"{USER_TASKS_ROOT}/{collaborator_id}/{owner_id}/{task_id}"


def user(uid: str) -> str:
    return f"{USERS_ROOT}/{uid}"
