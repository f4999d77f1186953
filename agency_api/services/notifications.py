# agency_api/services/notifications.py
from __future__ import annotations

import logging
from typing import List, Optional

from agency_api.common.errors import ValidationError

log = logging.getLogger(__name__)

PREVIEW_CHARS = 50

EVENT_MESSAGE = "message"
EVENT_FILE = "file"
EVENT_TASK_COMPLETED = "task_completed"
EVENT_PROJECT_STATUS = "project_status"


def _preview(text: str) -> str:
    text = text or ""
    return text[:PREVIEW_CHARS] + ("..." if len(text) > PREVIEW_CHARS else "")


TEMPLATES = {
    EVENT_MESSAGE: lambda actor, project, detail:
        f'{actor} sent a message in {project}: "{_preview(detail)}"',
    EVENT_FILE: lambda actor, project, detail:
        f'{actor} uploaded a file "{detail}" to {project}',
    EVENT_TASK_COMPLETED: lambda actor, project, detail:
        f'{actor} completed task "{detail}" in {project}',
    EVENT_PROJECT_STATUS: lambda actor, project, detail:
        f"{actor} changed {project} status to {detail}",
}


class NotificationFanout:
    """
    Turns a project event into one persisted notification per interested user,
    then pushes each one to that user's open sockets.

    Rows are committed before any push; a failed push is logged and never
    undoes or blocks the write.
    """

    def __init__(self, store, hub):
        self.store = store
        self.hub = hub

    def recipients_for_project(self, project, actor_id: int) -> List[int]:
        recipients = set()
        if project.client_id:
            client_user = self.store.client_user_id(project.client_id)
            if client_user is not None:
                recipients.add(client_user)
        if project.created_by is not None:
            recipients.add(project.created_by)
        recipients.update(self.store.task_assignee_ids(project.id))
        recipients.discard(actor_id)
        return sorted(recipients)

    def notify(self, event_kind: str, project_id: int, actor_id: int, detail: Optional[str] = None) -> list:
        render = TEMPLATES.get(event_kind)
        if render is None:
            raise ValidationError(f"Unknown notification kind: {event_kind}")

        project = self.store.get_project(project_id)
        actor = self.store.get_user(actor_id)
        if project is None or actor is None:
            log.info("notify(%s) skipped: project %s or actor %s missing", event_kind, project_id, actor_id)
            return []

        recipients = self.recipients_for_project(project, actor_id)
        if not recipients:
            return []

        text = render(actor.full_name, project.name, detail or "")
        rows = self.store.insert_notifications(recipients, event_kind, text, project.id)

        for row in rows:
            try:
                self.hub.broadcast_notification(row.user_id, row.to_dict())
            except Exception:
                log.exception("Notification %s stored but push to user %s failed", row.id, row.user_id)

        log.info("Created %d %s notifications for project %s", len(rows), event_kind, project_id)
        return rows


def current_notifier() -> NotificationFanout:
    from flask import current_app
    return current_app.extensions["notifier"]
