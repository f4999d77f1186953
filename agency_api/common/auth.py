# agency_api/common/auth.py
from __future__ import annotations

from functools import wraps

from flask import g
from flask_jwt_extended import create_access_token, get_jwt_identity, jwt_required

from agency_api.common.http import fail
from agency_api.extensions import db
from agency_api.models.user import ROLE_ADMIN, User


def issue_token(user: User) -> str:
    """Access token carrying the user id as identity and the role as a claim."""
    return create_access_token(identity=str(user.id), additional_claims={"role": user.role})


def current_user() -> User | None:
    return getattr(g, "current_user", None)


def requires_roles(*codes: str):
    """
    Require that the current user has one of the given roles.
    - Role is re-read from the DB so a demoted user loses access before the token expires.
    - 'admin' always passes.
    - The resolved user is available as `current_user()` inside the view.
    """
    def outer(fn):
        @wraps(fn)
        @jwt_required()
        def inner(*args, **kwargs):
            try:
                uid = int(get_jwt_identity())
            except (TypeError, ValueError):
                return fail("Unauthorized", status=401)

            user = db.session.get(User, uid)
            if not user or user.status != "active":
                return fail("Unauthorized", status=401)
            g.current_user = user

            if user.role == ROLE_ADMIN or user.role in codes:
                return fn(*args, **kwargs)
            return fail("Forbidden", status=403)
        return inner
    return outer
