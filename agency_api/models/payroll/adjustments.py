from datetime import datetime
from agency_api.extensions import db

ADJUSTMENT_TYPES = ("loan", "advance", "bonus", "deduction")


class SalaryAdjustment(db.Model):
    """Manual change applied to a generated payroll record (loan recovery, advance, bonus...)."""
    __tablename__ = "salary_adjustments"

    id = db.Column(db.Integer, primary_key=True)
    payroll_id = db.Column(db.Integer, db.ForeignKey("payroll_records.id"), nullable=False, index=True)

    type = db.Column(db.Enum(*ADJUSTMENT_TYPES, name="salary_adjustment_type_enum"), nullable=False)
    amount = db.Column(db.Numeric(14, 2), nullable=False)
    reason = db.Column(db.String(255), nullable=False)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    payroll = db.relationship("PayrollRecord", lazy="joined")
