from flask import Blueprint, current_app
from sqlalchemy import text

from agency_api.common.http import ok, fail
from agency_api.extensions import db
from agency_api.realtime import current_hub

bp = Blueprint("health", __name__, url_prefix="/api/v1/health")


@bp.get("")
def health():
    try:
        db.session.execute(text("SELECT 1"))
    except Exception as e:
        current_app.logger.warning("health: database unreachable: %s", e)
        return fail("database unreachable", status=503)
    reg = current_hub().registry
    return ok({
        "status": "ok",
        "ws_users": len(reg.user_ids()),
        "ws_projects": len(reg.project_ids()),
    })
