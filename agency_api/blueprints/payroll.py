from __future__ import annotations
from datetime import date
from typing import Any, Dict

from flask import Blueprint, request, current_app

from agency_api.common.auth import requires_roles, current_user
from agency_api.common.errors import ValidationError
from agency_api.common.http import ok, money, iso
from agency_api.models.payroll.adjustments import SalaryAdjustment
from agency_api.models.payroll.payroll_record import PayrollRecord
from agency_api.services.payroll_common import SqlPayrollStore, add_adjustment, list_payroll, mark_paid
from agency_api.services.payroll_engine import PayrollEngine

bp = Blueprint("payroll", __name__, url_prefix="/api/v1/payroll")


def _engine() -> PayrollEngine:
    return PayrollEngine(SqlPayrollStore())


def _period_from(src: Dict[str, Any]):
    """month/year from a body or query string; absent fields mean the current period."""
    today = date.today()
    raw_month, raw_year = src.get("month"), src.get("year")
    try:
        month = today.month if raw_month in (None, "") else int(raw_month)
        year = today.year if raw_year in (None, "") else int(raw_year)
    except (TypeError, ValueError):
        raise ValidationError("month and year must be integers")
    if not 1 <= month <= 12:
        raise ValidationError("month must be 1..12")
    if not 1 <= year <= 9999:
        raise ValidationError("year must be 1..9999")
    return month, year


def _row(r: PayrollRecord) -> Dict[str, Any]:
    emp = r.employee
    return {
        "id": r.id,
        "employee_id": r.employee_id,
        "employee_code": emp.code if emp else None,
        "employee_name": emp.full_name if emp else None,
        "month": r.month,
        "year": r.year,
        "basic_salary": money(r.basic_salary),
        "total_allowances": money(r.total_allowances),
        "gross_salary": money(r.gross_salary),
        "overtime_amount": money(r.overtime_amount),
        "bonus_amount": money(r.bonus_amount),
        "late_deduction": money(r.late_deduction),
        "loan_deduction": money(r.loan_deduction),
        "advance_deduction": money(r.advance_deduction),
        "other_deductions": money(r.other_deductions),
        "total_deductions": money(r.total_deductions),
        "net_salary": money(r.net_salary),
        "attendance": {
            "working_days": r.working_days,
            "present": r.total_present_days,
            "absent": r.total_absent_days,
            "late": r.total_late_days,
            "half_day": r.total_half_days,
            "overtime_hours": money(r.total_overtime_hours),
        },
        "status": r.status,
        "generated_by": r.generated_by,
        "paid_at": iso(r.paid_at),
        "created_at": iso(r.created_at),
    }


def _adj_row(a: SalaryAdjustment) -> Dict[str, Any]:
    return {
        "id": a.id,
        "payroll_id": a.payroll_id,
        "type": a.type,
        "amount": money(a.amount),
        "reason": a.reason,
        "created_by": a.created_by,
        "created_at": iso(a.created_at),
    }


@bp.get("")
@requires_roles("operational_head")
def list_records():
    month, year = _period_from(request.args)
    return ok([_row(r) for r in list_payroll(month, year)], month=month, year=year)


@bp.post("/generate")
@requires_roles("admin")
def generate():
    month, year = _period_from(request.get_json(silent=True) or {})
    n = _engine().generate_monthly_payroll(month, year, actor_id=current_user().id)
    current_app.logger.info("payroll generate %s-%02d by user %s: %d new", year, month, current_user().id, n)
    return ok({"generated": n, "month": month, "year": year}, status=201 if n else 200)


@bp.get("/preview/<int:employee_id>")
@requires_roles("operational_head")
def preview(employee_id: int):
    month, year = _period_from(request.args)
    comp = _engine().compute_employee_payroll(employee_id, month, year)
    return ok(comp.to_dict())


@bp.post("/<int:payroll_id>/pay")
@requires_roles("admin")
def pay(payroll_id: int):
    return ok(_row(mark_paid(payroll_id)))


@bp.post("/<int:payroll_id>/adjustments")
@requires_roles("admin")
def adjust(payroll_id: int):
    j = request.get_json(silent=True) or {}
    adj = add_adjustment(
        payroll_id,
        (j.get("type") or "").strip().lower(),
        j.get("amount"),
        j.get("reason") or "",
        actor_id=current_user().id,
    )
    return ok({"adjustment": _adj_row(adj), "payroll": _row(adj.payroll)}, status=201)
