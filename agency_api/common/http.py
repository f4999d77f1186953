# agency_api/common/http.py
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from flask import jsonify, request

CENT = Decimal("0.01")


def ok(data=None, status=200, **meta):
    payload = {"success": True, "data": data}
    if meta:
        payload["meta"] = meta
    return jsonify(payload), status


def fail(message="Bad Request", status=400, code=None, detail=None, errors=None):
    err = {"message": message}
    if code: err["code"] = code
    if detail: err["detail"] = detail
    if errors: err["errors"] = errors
    return jsonify({"success": False, "error": err}), status


def money(x) -> Optional[float]:
    """Decimal/Numeric -> float rounded to cents (JSON has no decimal type)."""
    if x is None:
        return None
    return float(Decimal(str(x)).quantize(CENT, rounding=ROUND_HALF_UP))


def iso(v) -> Optional[str]:
    if isinstance(v, (date, datetime)):
        return v.isoformat()
    return None


def int_arg(name: str, default: Optional[int] = None) -> Optional[int]:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None
