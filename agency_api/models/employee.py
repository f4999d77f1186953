from datetime import datetime
from agency_api.extensions import db

class Employee(db.Model):
    __tablename__ = "employees"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, unique=True)

    code  = db.Column(db.String(32), nullable=False, unique=True)  # issued once, never reassigned
    department  = db.Column(db.String(120), nullable=True)
    designation = db.Column(db.String(120), nullable=True)
    phone       = db.Column(db.String(20), nullable=True)

    joining_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(16), default="active", nullable=False)   # active/inactive

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.Index("ix_emp_status", "status"),
    )

    user = db.relationship("User", lazy="joined")

    @property
    def full_name(self):
        return self.user.full_name if self.user else self.code
