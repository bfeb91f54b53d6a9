from datetime import datetime, timedelta
from models.db import db

class IpRateLimit(db.Model):
    """Fixed-window request counter, one row per scope and client address."""

    __tablename__ = "ip_rate_limits"

    id = db.Column(db.Integer, primary_key=True)
    # "<scope>:<ip>", e.g. "checkout:203.0.113.7"
    key = db.Column(db.String(128), unique=True, nullable=False, index=True)

    window_start = db.Column(db.DateTime, nullable=False)
    count = db.Column(db.Integer, default=0, nullable=False)

    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def window_end(self, window_seconds: int) -> datetime:
        return self.window_start + timedelta(seconds=window_seconds)

    def hit(self, now: datetime, window_seconds: int) -> int:
        """Count one request, opening a new window when the current one is over."""
        if now >= self.window_end(window_seconds):
            self.window_start = now
            self.count = 0
        self.count = (self.count or 0) + 1
        return self.count
