# agency_api/realtime/roles.py
"""Role-based subscription policy, kept free of any socket code."""
from __future__ import annotations

from enum import Enum
from typing import List

from agency_api.common.errors import AuthenticationError, AuthorizationError, NotFoundError


class Role(str, Enum):
    ADMIN = "admin"
    OPERATIONAL_HEAD = "operational_head"
    DEVELOPER = "developer"
    CLIENT = "client"

    @classmethod
    def parse(cls, value) -> "Role":
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            raise AuthenticationError(f"Unknown role: {value!r}")

    @property
    def sees_all_projects(self) -> bool:
        return self in (Role.ADMIN, Role.OPERATIONAL_HEAD)


def projects_visible_to(role: Role, user_id: int, store) -> List[int]:
    """
    Projects a connection is auto-subscribed to at connect time.

    admin / operational_head -> every project
    developer                -> projects reached through tasks assigned to the user
    client                   -> none (clients subscribe explicitly, one project at a time)
    """
    if role.sees_all_projects:
        return list(store.all_project_ids())
    if role is Role.DEVELOPER:
        return sorted(set(store.project_ids_assigned_to(user_id)))
    return []


def ensure_can_subscribe(role: Role, user_id: int, project_id: int, store) -> None:
    """Client ownership check, read fresh at subscribe time. Other roles pass."""
    if role is not Role.CLIENT:
        return
    user = store.get_user(user_id)
    if user is None or not user.client_id:
        raise AuthorizationError("No client associated with this user")
    project = store.get_project(project_id)
    if project is None:
        raise NotFoundError("Project not found")
    if project.client_id != user.client_id:
        raise AuthorizationError("Access denied: You can only subscribe to your own projects")
