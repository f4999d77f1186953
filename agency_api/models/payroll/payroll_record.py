from datetime import datetime
from decimal import Decimal
from agency_api.extensions import db

PAYROLL_DRAFT = "draft"
PAYROLL_PAID = "paid"


class PayrollRecord(db.Model):
    __tablename__ = "payroll_records"

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False, index=True)
    month = db.Column(db.Integer, nullable=False)
    year = db.Column(db.Integer, nullable=False)

    basic_salary = db.Column(db.Numeric(14, 2), nullable=False)
    total_allowances = db.Column(db.Numeric(14, 2), default=Decimal("0"))
    overtime_amount = db.Column(db.Numeric(14, 2), default=Decimal("0"))
    late_deduction = db.Column(db.Numeric(14, 2), default=Decimal("0"))
    loan_deduction = db.Column(db.Numeric(14, 2), default=Decimal("0"))
    advance_deduction = db.Column(db.Numeric(14, 2), default=Decimal("0"))
    other_deductions = db.Column(db.Numeric(14, 2), default=Decimal("0"))  # half-day + absent + manual
    bonus_amount = db.Column(db.Numeric(14, 2), default=Decimal("0"))
    gross_salary = db.Column(db.Numeric(14, 2), nullable=False)
    net_salary = db.Column(db.Numeric(14, 2), nullable=False)  # may be negative

    total_present_days = db.Column(db.Integer, default=0)
    total_absent_days = db.Column(db.Integer, default=0)
    total_late_days = db.Column(db.Integer, default=0)
    total_half_days = db.Column(db.Integer, default=0)
    total_overtime_hours = db.Column(db.Numeric(6, 2), default=Decimal("0"))
    working_days = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False, default=PAYROLL_DRAFT)
    generated_by = db.Column(db.Integer, db.ForeignKey("users.id"))
    paid_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("employee_id", "month", "year", name="uq_payroll_employee_period"),
    )

    employee = db.relationship("Employee", lazy="joined")

    @property
    def total_deductions(self) -> Decimal:
        parts = (self.late_deduction, self.loan_deduction, self.advance_deduction, self.other_deductions)
        return sum((Decimal(str(p or 0)) for p in parts), Decimal("0"))
