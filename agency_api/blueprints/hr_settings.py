from __future__ import annotations
import re
from decimal import Decimal, InvalidOperation

from flask import Blueprint, request, current_app

from agency_api.common.auth import requires_roles, current_user
from agency_api.common.http import ok, fail
from agency_api.extensions import db
from agency_api.models.hr_settings import HrSettings, WEEKDAY_NAMES

bp = Blueprint("hr_settings", __name__, url_prefix="/api/v1/hr-settings")

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

INT_FIELDS = ("grace_period_minutes", "working_days_per_week", "late_deduction_rule")
DEC_FIELDS = ("overtime_rate_multiplier", "half_day_hours", "full_day_hours", "minimum_hours_for_present")
TIME_FIELDS = ("office_start_time", "office_end_time", "half_day_cutoff_time")


def _validate(j: dict):
    """Returns (changes, errors)."""
    changes, errors = {}, {}
    for f in INT_FIELDS:
        if f in j:
            try:
                v = int(j[f])
            except (TypeError, ValueError):
                errors[f] = "must be an integer"; continue
            if v < 0 or (f == "late_deduction_rule" and v < 1):
                errors[f] = "out of range"; continue
            changes[f] = v
    for f in DEC_FIELDS:
        if f in j:
            try:
                v = Decimal(str(j[f]))
            except (InvalidOperation, TypeError, ValueError):
                errors[f] = "must be a number"; continue
            if v <= 0:
                errors[f] = "must be positive"; continue
            changes[f] = v
    for f in TIME_FIELDS:
        if f in j:
            if not isinstance(j[f], str) or not _HHMM.match(j[f]):
                errors[f] = "must be HH:MM"; continue
            changes[f] = j[f]
    if "overtime_enabled" in j:
        if not isinstance(j["overtime_enabled"], bool):
            errors["overtime_enabled"] = "must be a boolean"
        else:
            changes["overtime_enabled"] = j["overtime_enabled"]
    if "weekly_off_days" in j:
        days = j["weekly_off_days"]
        if not isinstance(days, list) or any(d not in WEEKDAY_NAMES for d in days):
            errors["weekly_off_days"] = f"must be a list of {', '.join(WEEKDAY_NAMES)}"
        else:
            changes["weekly_off_days"] = list(dict.fromkeys(days))
    return changes, errors


@bp.get("")
@requires_roles("operational_head")
def get_settings():
    return ok(HrSettings.get_or_create().to_dict())


@bp.patch("")
@requires_roles("admin")
def update_settings():
    j = request.get_json(silent=True) or {}
    changes, errors = _validate(j)
    if errors:
        return fail("Invalid settings", status=422, code="VALIDATION_ERROR", errors=errors)

    row = HrSettings.get_or_create()
    for k, v in changes.items():
        setattr(row, k, v)
    db.session.commit()
    current_app.logger.info("hr settings updated by user %s: %s", current_user().id, sorted(changes))
    return ok(row.to_dict())
