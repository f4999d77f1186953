# agency_api/services/payroll_engine.py
"""
Monthly payroll computation with attendance-derived deductions and overtime.

The engine is a pure function of what its store returns: it never writes
and never checks whether a record already exists for the period. The batch
entry point (`generate_monthly_payroll`) is the caller that enforces
"skip if exists" and persists.

Store contract (see services/payroll_common.SqlPayrollStore):
  get_employee(employee_id)                 -> Employee | None
  latest_salary_structure(employee_id)      -> SalaryStructure | None
  hr_settings()                             -> HrSettings | None
  attendance_between(employee_id, d1, d2)   -> list[AttendanceRecord]  (inclusive)
  active_employees()                        -> list[Employee]
  payroll_exists(employee_id, month, year)  -> bool
  insert_payroll(computation, generated_by) -> PayrollRecord
"""
from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass, asdict
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Optional

from agency_api.common.errors import (
    ComputationSkipped,
    EmployeeNotFound,
    NoSalaryStructure,
    ValidationError,
)
from agency_api.models.attendance import STATUS_ABSENT, STATUS_HALF_DAY, STATUS_LATE, STATUS_PRESENT
from agency_api.models.hr_settings import WEEKDAY_NAMES

log = logging.getLogger(__name__)

ZERO = Decimal("0")
HALF = Decimal("0.5")
SECONDS_PER_HOUR = Decimal(3600)
FALLBACK_WORKING_DAYS = 26

DEFAULT_FULL_DAY_HOURS = Decimal("8")
DEFAULT_OVERTIME_MULTIPLIER = Decimal("1.5")
DEFAULT_LATE_DEDUCTION_RULE = 3
DEFAULT_WEEKLY_OFF_DAYS = ("Friday",)


def _dec(x, default: Decimal = ZERO) -> Decimal:
    if x is None or x == "":
        return default
    return x if isinstance(x, Decimal) else Decimal(str(x))


@dataclass(frozen=True)
class PayrollSettings:
    full_day_hours: Decimal = DEFAULT_FULL_DAY_HOURS
    overtime_enabled: bool = False
    overtime_rate_multiplier: Decimal = DEFAULT_OVERTIME_MULTIPLIER
    late_deduction_rule: int = DEFAULT_LATE_DEDUCTION_RULE
    weekly_off_days: tuple = DEFAULT_WEEKLY_OFF_DAYS

    @classmethod
    def from_row(cls, row) -> "PayrollSettings":
        """Build from an HrSettings row; None (or zero/blank fields) fall back to defaults."""
        if row is None:
            return cls()
        off = row.weekly_off_days
        return cls(
            full_day_hours=_dec(row.full_day_hours) or DEFAULT_FULL_DAY_HOURS,
            overtime_enabled=bool(row.overtime_enabled),
            overtime_rate_multiplier=_dec(row.overtime_rate_multiplier) or DEFAULT_OVERTIME_MULTIPLIER,
            late_deduction_rule=int(row.late_deduction_rule or DEFAULT_LATE_DEDUCTION_RULE),
            # an explicit empty list means "no weekly off"; only a non-list falls back
            weekly_off_days=tuple(off) if isinstance(off, list) else DEFAULT_WEEKLY_OFF_DAYS,
        )


@dataclass
class PayrollComputation:
    employee_id: int
    month: int
    year: int
    period_start: date
    period_end: date
    salary_structure_id: Optional[int]

    working_days: int
    effective_working_days: int
    present_days: int
    late_days: int
    absent_days: int
    half_days: int
    overtime_hours: Decimal

    basic_salary: Decimal
    total_allowances: Decimal
    gross_salary: Decimal
    daily_rate: Decimal
    hourly_rate: Decimal

    late_deduction: Decimal
    half_day_deduction: Decimal
    absent_deduction: Decimal
    loan_deduction: Decimal
    advance_deduction: Decimal
    total_deductions: Decimal
    overtime_amount: Decimal
    net_salary: Decimal

    def to_dict(self) -> Dict[str, Any]:
        out = {}
        for k, v in asdict(self).items():
            if isinstance(v, Decimal):
                v = float(v.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))
            elif isinstance(v, date):
                v = v.isoformat()
            out[k] = v
        return out


# ---------- calendar helpers ----------

def month_range(month: int, year: int) -> tuple[date, date]:
    """First and last calendar day of the month (plain dates, no timezone shift)."""
    if not 1 <= int(month) <= 12:
        raise ValidationError(f"month must be 1..12, got {month}")
    last = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last)


def weekday_numbers(names: Iterable[str]) -> set[int]:
    """Weekday names -> date.weekday() numbers. Unknown names are ignored."""
    lookup = {n.lower(): i for i, n in enumerate(WEEKDAY_NAMES)}
    return {lookup[n.strip().lower()] for n in names if isinstance(n, str) and n.strip().lower() in lookup}


def working_days_in_month(month: int, year: int, weekly_off_days: Iterable[str]) -> int:
    start, end = month_range(month, year)
    off = weekday_numbers(weekly_off_days)
    return sum(1 for day in range(start.day, end.day + 1)
               if date(year, month, day).weekday() not in off)


def late_deduction(late_days: int, rule: int, daily_rate: Decimal) -> Decimal:
    """Every `rule` late arrivals cost one full day; partial blocks cost nothing."""
    if rule <= 0:
        return ZERO
    return Decimal(late_days // rule) * daily_rate


def overtime_hours(records, full_day_hours: Decimal) -> Decimal:
    total = ZERO
    for r in records:
        if not (r.check_in and r.check_out):
            continue
        worked = Decimal(str((r.check_out - r.check_in).total_seconds())) / SECONDS_PER_HOUR
        if worked > full_day_hours:
            total += worked - full_day_hours
    return total


# ---------- engine ----------

class PayrollEngine:
    def __init__(self, store):
        self.store = store

    def compute_employee_payroll(self, employee_id: int, month: int, year: int) -> PayrollComputation:
        emp = self.store.get_employee(employee_id)
        if emp is None:
            raise EmployeeNotFound(f"Employee not found: {employee_id}")

        # NOTE: takes the newest structure even when its effective_from falls after
        # the period being computed, so a later raise applies to earlier months too.
        # Left as-is until the intended rule is confirmed.
        salary = self.store.latest_salary_structure(employee_id)
        if salary is None:
            raise NoSalaryStructure(f"No salary structure found for employee: {employee_id}")

        settings = PayrollSettings.from_row(self.store.hr_settings())
        start, end = month_range(month, year)
        working_days = working_days_in_month(month, year, settings.weekly_off_days)

        records = self.store.attendance_between(employee_id, start, end)
        statuses = [r.status for r in records]
        present_days = sum(1 for s in statuses if s in (STATUS_PRESENT, STATUS_LATE))
        late_days = statuses.count(STATUS_LATE)
        absent_days = statuses.count(STATUS_ABSENT)
        half_days = statuses.count(STATUS_HALF_DAY)

        ot_hours = overtime_hours(records, settings.full_day_hours) if settings.overtime_enabled else ZERO

        basic = _dec(salary.basic_salary)
        allowances = sum((_dec(salary.house_allowance), _dec(salary.food_allowance),
                          _dec(salary.travel_allowance), _dec(salary.medical_allowance)), ZERO)
        gross = basic + allowances

        effective_days = working_days if working_days > 0 else FALLBACK_WORKING_DAYS
        daily_rate = basic / Decimal(effective_days)
        hourly_rate = daily_rate / settings.full_day_hours

        late = late_deduction(late_days, settings.late_deduction_rule, daily_rate)
        half_day = Decimal(half_days) * daily_rate * HALF
        absent = Decimal(absent_days) * daily_rate
        # loan/advance are filled in later through manual adjustments
        loan = advance = ZERO
        total_deductions = late + half_day + absent + loan + advance

        overtime_amount = (ot_hours * hourly_rate * settings.overtime_rate_multiplier
                           if settings.overtime_enabled else ZERO)
        # no floor: a negative net is reported as negative
        net = gross + overtime_amount - total_deductions

        log.debug(
            "payroll computed emp=%s period=%s-%02d working=%s present=%s late=%s absent=%s half=%s net=%s",
            employee_id, year, month, working_days, present_days, late_days, absent_days, half_days, net,
        )

        return PayrollComputation(
            employee_id=employee_id,
            month=month,
            year=year,
            period_start=start,
            period_end=end,
            salary_structure_id=getattr(salary, "id", None),
            working_days=working_days,
            effective_working_days=effective_days,
            present_days=present_days,
            late_days=late_days,
            absent_days=absent_days,
            half_days=half_days,
            overtime_hours=ot_hours,
            basic_salary=basic,
            total_allowances=allowances,
            gross_salary=gross,
            daily_rate=daily_rate,
            hourly_rate=hourly_rate,
            late_deduction=late,
            half_day_deduction=half_day,
            absent_deduction=absent,
            loan_deduction=loan,
            advance_deduction=advance,
            total_deductions=total_deductions,
            overtime_amount=overtime_amount,
            net_salary=net,
        )

    def generate_employee_payroll(self, employee_id: int, month: int, year: int, actor_id: Optional[int]):
        if self.store.payroll_exists(employee_id, month, year):
            raise ComputationSkipped(employee_id, month, year)
        comp = self.compute_employee_payroll(employee_id, month, year)
        return self.store.insert_payroll(comp, generated_by=actor_id)

    def generate_monthly_payroll(self, month: int, year: int, actor_id: Optional[int]) -> int:
        """
        Generate payroll for every active employee, one at a time.
        Returns the number of newly created records. Existing records are skipped;
        a failing employee is logged and skipped without aborting the run.
        """
        month_range(month, year)  # validate before touching anything
        employees: List = self.store.active_employees()
        log.info("Generating payroll for %d employees for %s-%02d", len(employees), year, month)

        generated = 0
        for emp in employees:
            try:
                self.generate_employee_payroll(emp.id, month, year, actor_id)
                generated += 1
            except ComputationSkipped:
                log.info("Payroll already exists for employee %s for %s-%02d", emp.code, year, month)
            except Exception:
                log.exception("Failed to generate payroll for employee %s", emp.code)

        log.info("Generated %d payroll records for %s-%02d", generated, year, month)
        return generated
