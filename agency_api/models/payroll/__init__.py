# agency_api/models/payroll/__init__.py
# Import order matters: salary structures first, then payroll records,
# then adjustments (which reference payroll records).
from agency_api.extensions import db  # noqa

from .salary_structure import SalaryStructure
from .payroll_record import PayrollRecord
from .adjustments import SalaryAdjustment

__all__ = [
    "SalaryStructure", "PayrollRecord", "SalaryAdjustment",
]
