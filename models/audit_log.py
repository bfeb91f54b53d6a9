import json
from datetime import datetime
from models.db import db

class AuditLog(db.Model):
    """Append-only trail of enrollment and admin actions."""

    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)
    actor = db.Column(db.String(40), nullable=True)  # "admin", "stripe", "cli"; null for public requests
    action = db.Column(db.String(80), nullable=False, index=True)  # e.g. ENROLLMENT_CONFIRMED
    entity = db.Column(db.String(80), nullable=True)  # enrollment, section, checkout_session
    entity_id = db.Column(db.String(80), nullable=True, index=True)

    ip = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    metadata_json = db.Column(db.Text, nullable=True)

    timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "created_at": self.timestamp.isoformat() if self.timestamp else None,
            "actor": self.actor,
            "action": self.action,
            "entity": self.entity,
            "entity_id": self.entity_id,
            "ip": self.ip,
            "user_agent": self.user_agent,
            "metadata": json.loads(self.metadata_json) if self.metadata_json else None,
        }
