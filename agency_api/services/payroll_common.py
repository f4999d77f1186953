# agency_api/services/payroll_common.py
from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from agency_api.common.errors import NotFoundError, ValidationError
from agency_api.extensions import db
from agency_api.models.attendance import AttendanceRecord
from agency_api.models.employee import Employee
from agency_api.models.hr_settings import HrSettings
from agency_api.models.payroll.adjustments import ADJUSTMENT_TYPES, SalaryAdjustment
from agency_api.models.payroll.payroll_record import PAYROLL_DRAFT, PAYROLL_PAID, PayrollRecord
from agency_api.models.payroll.salary_structure import SalaryStructure

log = logging.getLogger(__name__)

CENT = Decimal("0.01")


def _cents(x: Decimal) -> Decimal:
    return Decimal(str(x)).quantize(CENT, rounding=ROUND_HALF_UP)


class SqlPayrollStore:
    """Payroll engine storage backed by the Flask-SQLAlchemy session."""

    def get_employee(self, employee_id: int) -> Optional[Employee]:
        return db.session.get(Employee, employee_id)

    def latest_salary_structure(self, employee_id: int) -> Optional[SalaryStructure]:
        return (
            SalaryStructure.query
            .filter(SalaryStructure.employee_id == employee_id)
            .order_by(SalaryStructure.effective_from.desc(), SalaryStructure.id.desc())
            .first()
        )

    def hr_settings(self) -> Optional[HrSettings]:
        return HrSettings.current()

    def attendance_between(self, employee_id: int, start: date, end: date) -> List[AttendanceRecord]:
        return (
            AttendanceRecord.query
            .filter(
                AttendanceRecord.employee_id == employee_id,
                AttendanceRecord.work_date >= start,
                AttendanceRecord.work_date <= end,
            )
            .order_by(AttendanceRecord.work_date.asc())
            .all()
        )

    def active_employees(self) -> List[Employee]:
        return Employee.query.filter(Employee.status == "active").order_by(Employee.id.asc()).all()

    def payroll_exists(self, employee_id: int, month: int, year: int) -> bool:
        q = PayrollRecord.query.filter_by(employee_id=employee_id, month=month, year=year)
        return db.session.query(q.exists()).scalar()

    def insert_payroll(self, comp, generated_by: Optional[int] = None) -> PayrollRecord:
        rec = PayrollRecord(
            employee_id=comp.employee_id,
            month=comp.month,
            year=comp.year,
            basic_salary=_cents(comp.basic_salary),
            total_allowances=_cents(comp.total_allowances),
            overtime_amount=_cents(comp.overtime_amount),
            late_deduction=_cents(comp.late_deduction),
            loan_deduction=_cents(comp.loan_deduction),
            advance_deduction=_cents(comp.advance_deduction),
            other_deductions=_cents(comp.half_day_deduction + comp.absent_deduction),
            gross_salary=_cents(comp.gross_salary),
            net_salary=_cents(comp.net_salary),
            total_present_days=comp.present_days,
            total_absent_days=comp.absent_days,
            total_late_days=comp.late_days,
            total_half_days=comp.half_days,
            total_overtime_hours=_cents(comp.overtime_hours),
            working_days=comp.working_days,
            status=PAYROLL_DRAFT,
            generated_by=generated_by,
        )
        try:
            db.session.add(rec)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return rec


# ---------- record lifecycle (draft -> paid, manual adjustments) ----------

def list_payroll(month: int, year: int) -> List[PayrollRecord]:
    return (
        PayrollRecord.query
        .filter(PayrollRecord.month == month, PayrollRecord.year == year)
        .order_by(PayrollRecord.created_at.asc(), PayrollRecord.id.asc())
        .all()
    )


def _get_record(payroll_id: int) -> PayrollRecord:
    rec = db.session.get(PayrollRecord, payroll_id)
    if rec is None:
        raise NotFoundError(f"Payroll record not found: {payroll_id}")
    return rec


def mark_paid(payroll_id: int) -> PayrollRecord:
    rec = _get_record(payroll_id)
    if rec.status == PAYROLL_PAID:
        raise ValidationError("Payroll record is already paid")
    rec.status = PAYROLL_PAID
    rec.paid_at = datetime.utcnow()
    db.session.commit()
    log.info("payroll %s marked paid", rec.id)
    return rec


def add_adjustment(payroll_id: int, adj_type: str, amount, reason: str, actor_id: int) -> SalaryAdjustment:
    """
    Append a manual adjustment and fold it into the record's totals.
    loan/advance/deduction reduce net; bonus increases it.
    """
    rec = _get_record(payroll_id)
    if rec.status != PAYROLL_DRAFT:
        raise ValidationError("Only draft payroll records can be adjusted")
    if adj_type not in ADJUSTMENT_TYPES:
        raise ValidationError(f"type must be one of {', '.join(ADJUSTMENT_TYPES)}")
    try:
        amt = _cents(Decimal(str(amount)))
    except (ArithmeticError, ValueError, TypeError):
        raise ValidationError("amount must be a number")
    if amt <= 0:
        raise ValidationError("amount must be positive")
    if not (reason or "").strip():
        raise ValidationError("reason is required")

    column = {
        "loan": "loan_deduction",
        "advance": "advance_deduction",
        "deduction": "other_deductions",
        "bonus": "bonus_amount",
    }[adj_type]
    setattr(rec, column, Decimal(str(getattr(rec, column) or 0)) + amt)
    net = Decimal(str(rec.net_salary or 0))
    rec.net_salary = net + amt if adj_type == "bonus" else net - amt

    adj = SalaryAdjustment(payroll_id=rec.id, type=adj_type, amount=amt,
                           reason=reason.strip(), created_by=actor_id)
    db.session.add(adj)
    db.session.commit()
    log.info("payroll %s adjusted: %s %s by user %s", rec.id, adj_type, amt, actor_id)
    return adj
