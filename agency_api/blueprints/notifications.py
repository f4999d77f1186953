from flask import Blueprint, request

from agency_api.common.auth import requires_roles, current_user
from agency_api.common.errors import NotFoundError
from agency_api.common.http import ok, int_arg
from agency_api.extensions import db
from agency_api.models.notification import Notification
from agency_api.models.user import ROLES

bp = Blueprint("notifications", __name__, url_prefix="/api/v1/notifications")


@bp.get("")
@requires_roles(*ROLES)
def list_notifications():
    limit = min(max(int_arg("limit", 50) or 50, 1), 200)
    q = Notification.query.filter(Notification.user_id == current_user().id)
    if request.args.get("unread") in ("1", "true", "yes"):
        q = q.filter(Notification.is_read.is_(False))
    rows = q.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()
    unread = Notification.query.filter_by(user_id=current_user().id, is_read=False).count()
    return ok([n.to_dict() for n in rows], unread=unread)


@bp.post("/<int:notification_id>/read")
@requires_roles(*ROLES)
def mark_read(notification_id: int):
    n = db.session.get(Notification, notification_id)
    # other users' rows look the same as missing ones
    if n is None or n.user_id != current_user().id:
        raise NotFoundError("Notification not found")
    if not n.is_read:
        n.is_read = True
        db.session.commit()
    return ok(n.to_dict())


@bp.post("/read-all")
@requires_roles(*ROLES)
def mark_all_read():
    updated = (
        Notification.query
        .filter_by(user_id=current_user().id, is_read=False)
        .update({Notification.is_read: True}, synchronize_session=False)
    )
    db.session.commit()
    return ok({"updated": updated})
