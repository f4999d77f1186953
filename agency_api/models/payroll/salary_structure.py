from datetime import datetime
from decimal import Decimal
from agency_api.extensions import db


class SalaryStructure(db.Model):
    """Versioned compensation; several rows per employee, told apart by effective_from."""
    __tablename__ = "salary_structures"

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="RESTRICT"), nullable=False, index=True)

    basic_salary      = db.Column(db.Numeric(14, 2), nullable=False)
    house_allowance   = db.Column(db.Numeric(14, 2), default=Decimal("0"))
    food_allowance    = db.Column(db.Numeric(14, 2), default=Decimal("0"))
    travel_allowance  = db.Column(db.Numeric(14, 2), default=Decimal("0"))
    medical_allowance = db.Column(db.Numeric(14, 2), default=Decimal("0"))

    effective_from = db.Column(db.DateTime, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    employee = db.relationship("Employee", lazy="joined")
