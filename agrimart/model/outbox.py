# agrimart/model/outbox.py
from sqlalchemy.sql import func
from ..extensions import db


class OutboxTask(db.Model):
    """A side effect committed together with the state change that caused it."""
    __tablename__ = "outbox_task"

    id = db.Column(db.Integer, primary_key=True)
    kind = db.Column(db.String(32), nullable=False, index=True)
    payload = db.Column(db.JSON, nullable=False)
    status = db.Column(db.String(10), nullable=False, default="pending", index=True)  # pending | done | dead
    attempts = db.Column(db.Integer, nullable=False, default=0)
    last_error = db.Column(db.String(500))
    next_attempt_at = db.Column(db.DateTime, server_default=func.now())
    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())
