# agency_api/services/project_store.py
"""Read-only project/task/user lookups for the hub and fan-out, plus notification inserts."""
from __future__ import annotations

from typing import Iterable, List, Optional

from agency_api.extensions import db
from agency_api.models.crm import Project, Task
from agency_api.models.notification import Notification
from agency_api.models.user import User


class SqlProjectStore:
    def get_user(self, user_id: int) -> Optional[User]:
        return db.session.get(User, user_id)

    def get_project(self, project_id: int) -> Optional[Project]:
        return db.session.get(Project, project_id)

    def all_project_ids(self) -> List[int]:
        return [pid for (pid,) in db.session.query(Project.id).order_by(Project.id.asc()).all()]

    def project_ids_assigned_to(self, user_id: int) -> List[int]:
        rows = (
            db.session.query(Task.project_id)
            .filter(Task.assigned_to == user_id)
            .distinct()
            .all()
        )
        return [pid for (pid,) in rows]

    def task_assignee_ids(self, project_id: int) -> List[int]:
        rows = (
            db.session.query(Task.assigned_to)
            .filter(Task.project_id == project_id, Task.assigned_to.isnot(None))
            .distinct()
            .all()
        )
        return [uid for (uid,) in rows]

    def client_user_id(self, client_id: int) -> Optional[int]:
        row = (
            db.session.query(User.id)
            .filter(User.client_id == client_id)
            .order_by(User.id.asc())
            .first()
        )
        return row[0] if row else None

    def insert_notifications(self, user_ids: Iterable[int], kind: str, message: str,
                             project_id: Optional[int]) -> List[Notification]:
        rows = [Notification(user_id=uid, type=kind, message=message, project_id=project_id)
                for uid in user_ids]
        try:
            db.session.add_all(rows)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return rows
