from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace

import pytest

from agency_api.common.errors import EmployeeNotFound, NoSalaryStructure, ValidationError
from agency_api.services.payroll_engine import (
    PayrollEngine,
    PayrollSettings,
    late_deduction,
    month_range,
    working_days_in_month,
)
from fakes import FakePayrollStore, settings_row

# October 2026 starts on a Thursday: 31 days, five Fridays
OCT, YEAR = 10, 2026


def test_working_days_excludes_weekly_off():
    assert working_days_in_month(OCT, YEAR, ["Friday"]) == 26
    assert working_days_in_month(OCT, YEAR, ["Friday", "Saturday"]) == 21
    assert working_days_in_month(2, YEAR, ["Friday"]) == 24
    assert working_days_in_month(2, YEAR, []) == 28


def test_working_days_ignores_unknown_names_and_case():
    assert working_days_in_month(OCT, YEAR, ["friday", "Funday"]) == 26


def test_month_range_bounds():
    start, end = month_range(2, 2028)
    assert (start.day, end.day) == (1, 29)
    with pytest.raises(ValidationError):
        month_range(13, 2026)


def test_late_deduction_only_counts_full_blocks():
    rate = Decimal("1000")
    assert late_deduction(2, 3, rate) == Decimal("0")
    assert late_deduction(4, 3, rate) == Decimal("1000")
    assert late_deduction(6, 3, rate) == Decimal("2000")


def test_four_late_days_cost_one_day():
    store = FakePayrollStore()
    store.add_employee(1, basic="26000")
    store.add_days(1, "late", 4)
    store.add_days(1, "present", 18)

    comp = PayrollEngine(store).compute_employee_payroll(1, OCT, YEAR)

    assert comp.working_days == 26
    assert comp.daily_rate == Decimal("1000")
    assert comp.late_days == 4
    assert comp.present_days == 22  # late arrivals still count as present
    assert comp.late_deduction == Decimal("1000")
    assert comp.net_salary == Decimal("25000")
    assert comp.to_dict()["late_deduction"] == 1000.0


def test_half_and_absent_days():
    store = FakePayrollStore()
    store.add_employee(1, basic="26000", house="4000")
    store.add_days(1, "absent", 2)
    store.add_days(1, "half-day", 3)

    comp = PayrollEngine(store).compute_employee_payroll(1, OCT, YEAR)

    assert comp.gross_salary == Decimal("30000")
    assert comp.absent_deduction == Decimal("2000")
    assert comp.half_day_deduction == Decimal("1500")
    assert comp.total_deductions == Decimal("3500")
    # allowances are paid in full regardless of attendance
    assert comp.net_salary == Decimal("26500")


def test_net_salary_can_go_negative():
    store = FakePayrollStore()
    store.add_employee(1, basic="2600")
    store.add_days(1, "absent", 26)
    store.add_days(1, "late", 3)

    comp = PayrollEngine(store).compute_employee_payroll(1, OCT, YEAR)

    assert comp.gross_salary == Decimal("2600")
    assert comp.total_deductions == Decimal("2700")
    assert comp.net_salary == Decimal("-100")


def test_overtime_paid_only_when_enabled():
    day = datetime(2026, 10, 5)
    long_day = dict(check_in=day.replace(hour=9), check_out=day.replace(hour=19))

    store = FakePayrollStore(settings=settings_row(overtime_enabled=True))
    store.add_employee(1, basic="26000")
    store.add_days(1, "present", 1, **long_day)
    store.add_days(1, "present", 1, check_in=day.replace(hour=9))  # no check-out, ignored

    comp = PayrollEngine(store).compute_employee_payroll(1, OCT, YEAR)
    assert comp.overtime_hours == Decimal("2")
    assert comp.hourly_rate == Decimal("125")
    assert comp.overtime_amount == Decimal("375")
    assert comp.net_salary == Decimal("26375")

    store.settings = settings_row(overtime_enabled=False)
    comp = PayrollEngine(store).compute_employee_payroll(1, OCT, YEAR)
    assert comp.overtime_hours == Decimal("0")
    assert comp.overtime_amount == Decimal("0")


def test_settings_fallbacks():
    assert PayrollSettings.from_row(None) == PayrollSettings()

    blank = SimpleNamespace(full_day_hours=0, overtime_enabled=None, overtime_rate_multiplier=None,
                            late_deduction_rule=0, weekly_off_days=None)
    s = PayrollSettings.from_row(blank)
    assert s.full_day_hours == Decimal("8")
    assert s.overtime_rate_multiplier == Decimal("1.5")
    assert s.late_deduction_rule == 3
    assert s.weekly_off_days == ("Friday",)
    assert s.overtime_enabled is False


def test_empty_weekly_off_means_every_day_works():
    store = FakePayrollStore(settings=settings_row(weekly_off_days=[]))
    store.add_employee(1, basic="31000")

    comp = PayrollEngine(store).compute_employee_payroll(1, OCT, YEAR)
    assert comp.working_days == 31
    assert comp.daily_rate == Decimal("1000")


def test_custom_late_rule():
    store = FakePayrollStore(settings=settings_row(late_deduction_rule=2))
    store.add_employee(1, basic="26000")
    store.add_days(1, "late", 5)

    comp = PayrollEngine(store).compute_employee_payroll(1, OCT, YEAR)
    assert comp.late_deduction == Decimal("2000")


def test_missing_employee_and_structure():
    store = FakePayrollStore()
    store.add_employee(2, basic=None)
    engine = PayrollEngine(store)

    with pytest.raises(EmployeeNotFound):
        engine.compute_employee_payroll(1, OCT, YEAR)
    with pytest.raises(NoSalaryStructure):
        engine.compute_employee_payroll(2, OCT, YEAR)
