from datetime import datetime
from agency_api.extensions import db
from werkzeug.security import generate_password_hash, check_password_hash

ROLE_ADMIN = "admin"
ROLE_OPERATIONAL_HEAD = "operational_head"
ROLE_DEVELOPER = "developer"
ROLE_CLIENT = "client"
ROLES = (ROLE_ADMIN, ROLE_OPERATIONAL_HEAD, ROLE_DEVELOPER, ROLE_CLIENT)


class User(db.Model):
    __tablename__ = "users"

    id           = db.Column(db.Integer, primary_key=True)
    email        = db.Column(db.String(255), unique=True, index=True, nullable=False)
    password_hash= db.Column(db.String(255), nullable=False)
    full_name    = db.Column(db.String(255), nullable=False)
    role         = db.Column(db.String(32), nullable=False, default=ROLE_DEVELOPER)
    # set only for role == "client": the client company this login belongs to
    client_id    = db.Column(db.Integer, db.ForeignKey("clients.id", ondelete="SET NULL"), nullable=True, index=True)
    status       = db.Column(db.String(20), default="active")
    created_at   = db.Column(db.DateTime, default=datetime.utcnow)

    client = db.relationship("Client", lazy="joined")

    # --- helpers ---
    def set_password(self, raw: str):
        self.password_hash = generate_password_hash(raw)

    def check_password(self, raw: str) -> bool:
        return check_password_hash(self.password_hash, raw)
