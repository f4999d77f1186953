from datetime import datetime
from decimal import Decimal
from agency_api.extensions import db

WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


class HrSettings(db.Model):
    """Process-wide HR configuration. Single row, created with defaults on first read."""
    __tablename__ = "hr_settings"

    id = db.Column(db.Integer, primary_key=True)
    grace_period_minutes = db.Column(db.Integer, nullable=False, default=10)
    office_start_time = db.Column(db.String(5), nullable=False, default="09:00")
    office_end_time   = db.Column(db.String(5), nullable=False, default="18:00")
    working_days_per_week = db.Column(db.Integer, nullable=False, default=5)

    late_deduction_rule = db.Column(db.Integer, nullable=False, default=3)  # N late days = 1 day's pay
    overtime_enabled = db.Column(db.Boolean, nullable=False, default=False)
    overtime_rate_multiplier = db.Column(db.Numeric(4, 2), nullable=False, default=Decimal("1.50"))

    half_day_hours = db.Column(db.Numeric(4, 2), nullable=False, default=Decimal("4.00"))
    half_day_cutoff_time = db.Column(db.String(5), nullable=False, default="14:00")
    full_day_hours = db.Column(db.Numeric(4, 2), nullable=False, default=Decimal("8.00"))
    minimum_hours_for_present = db.Column(db.Numeric(4, 2), nullable=False, default=Decimal("6.00"))
    weekly_off_days = db.Column(db.JSON, nullable=False, default=lambda: ["Friday"])

    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    @classmethod
    def current(cls):
        """Existing row or None. Payroll reads through this and never creates."""
        return cls.query.order_by(cls.id.asc()).first()

    @classmethod
    def get_or_create(cls):
        row = cls.current()
        if row is None:
            row = cls()
            db.session.add(row)
            db.session.commit()
        return row

    def to_dict(self):
        return {
            "id": self.id,
            "grace_period_minutes": self.grace_period_minutes,
            "office_start_time": self.office_start_time,
            "office_end_time": self.office_end_time,
            "working_days_per_week": self.working_days_per_week,
            "late_deduction_rule": self.late_deduction_rule,
            "overtime_enabled": bool(self.overtime_enabled),
            "overtime_rate_multiplier": float(self.overtime_rate_multiplier),
            "half_day_hours": float(self.half_day_hours),
            "half_day_cutoff_time": self.half_day_cutoff_time,
            "full_day_hours": float(self.full_day_hours),
            "minimum_hours_for_present": float(self.minimum_hours_for_present),
            "weekly_off_days": list(self.weekly_off_days or []),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
