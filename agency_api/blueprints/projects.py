from __future__ import annotations

from flask import Blueprint, request

from agency_api.common.auth import requires_roles, current_user
from agency_api.common.errors import AuthorizationError, NotFoundError, ValidationError
from agency_api.common.http import ok
from agency_api.extensions import db
from agency_api.models.crm import Message, Project, Task
from agency_api.models.user import ROLE_CLIENT, ROLES
from agency_api.realtime import current_hub
from agency_api.services.notifications import (
    EVENT_MESSAGE, EVENT_PROJECT_STATUS, EVENT_TASK_COMPLETED, current_notifier,
)

bp = Blueprint("projects", __name__, url_prefix="/api/v1")

PROJECT_STATUSES = ("planning", "in_progress", "review", "completed", "on_hold")
HISTORY_LIMIT = 200


def _project_for_current_user(project_id: int) -> Project:
    project = db.session.get(Project, project_id)
    if project is None:
        raise NotFoundError("Project not found")
    user = current_user()
    if user.role == ROLE_CLIENT and (not user.client_id or user.client_id != project.client_id):
        raise AuthorizationError("Access denied: not your project")
    return project


@bp.get("/projects/<int:project_id>/messages")
@requires_roles(*ROLES)
def list_messages(project_id: int):
    _project_for_current_user(project_id)
    try:
        after_id = int(request.args.get("after_id") or 0)
    except ValueError:
        raise ValidationError("after_id must be an integer")
    q = Message.query.filter(Message.project_id == project_id)
    if after_id:
        q = q.filter(Message.id > after_id)
    rows = q.order_by(Message.id.asc()).limit(HISTORY_LIMIT).all()
    return ok([m.to_dict() for m in rows])


@bp.post("/projects/<int:project_id>/messages")
@requires_roles(*ROLES)
def post_message(project_id: int):
    project = _project_for_current_user(project_id)
    content = ((request.get_json(silent=True) or {}).get("content") or "").strip()
    if not content:
        raise ValidationError("content is required")

    msg = Message(project_id=project.id, user_id=current_user().id, content=content)
    db.session.add(msg)
    db.session.commit()

    payload = msg.to_dict()
    current_hub().broadcast_message(project.id, payload)
    current_notifier().notify(EVENT_MESSAGE, project.id, current_user().id, content)
    return ok(payload, status=201)


@bp.patch("/projects/<int:project_id>/status")
@requires_roles("operational_head")
def change_status(project_id: int):
    project = _project_for_current_user(project_id)
    status = ((request.get_json(silent=True) or {}).get("status") or "").strip().lower()
    if status not in PROJECT_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(PROJECT_STATUSES)}")
    if status != project.status:
        project.status = status
        db.session.commit()
        current_notifier().notify(EVENT_PROJECT_STATUS, project.id, current_user().id, status)
    return ok({"id": project.id, "status": project.status})


@bp.post("/tasks/<int:task_id>/complete")
@requires_roles("developer", "operational_head")
def complete_task(task_id: int):
    task = db.session.get(Task, task_id)
    if task is None:
        raise NotFoundError("Task not found")
    user = current_user()
    if user.role == "developer" and task.assigned_to != user.id:
        raise AuthorizationError("Only the assignee can complete this task")
    if task.status != "done":
        task.status = "done"
        db.session.commit()
        current_notifier().notify(EVENT_TASK_COMPLETED, task.project_id, user.id, task.title)
    return ok({"id": task.id, "status": task.status})
