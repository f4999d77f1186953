from datetime import datetime
from agency_api.extensions import db

STATUS_PRESENT = "present"
STATUS_LATE = "late"
STATUS_ABSENT = "absent"
STATUS_HALF_DAY = "half-day"


class AttendanceRecord(db.Model):
    """One row per employee per calendar day. Rows are corrected, never deleted."""
    __tablename__ = "attendance"

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="RESTRICT"), nullable=False, index=True)
    work_date   = db.Column(db.Date, nullable=False)
    status      = db.Column(db.String(16), nullable=False, default="pending")  # present/late/absent/half-day
    check_in    = db.Column(db.DateTime, nullable=True)
    check_out   = db.Column(db.DateTime, nullable=True)
    late_minutes = db.Column(db.Integer, nullable=False, default=0)
    notes       = db.Column(db.Text, nullable=True)
    created_at  = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("employee_id", "work_date", name="uq_attendance_employee_date"),
    )
