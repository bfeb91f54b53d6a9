from datetime import datetime
from models.db import db

# Fallbacks used when no row overrides a key
DEFAULT_SETTINGS = {
    "course.name": "Summer Braille Course",
    "enrollment.enabled": "true",
}


class CourseSetting(db.Model):
    __tablename__ = "course_settings"

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(120), unique=True, nullable=False, index=True)
    value = db.Column(db.Text, nullable=False)

    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


def load_settings() -> dict:
    """All course settings merged over DEFAULT_SETTINGS."""
    merged = dict(DEFAULT_SETTINGS)
    for row in CourseSetting.query.all():
        merged[row.key] = row.value
    return merged


def save_settings(values: dict) -> dict:
    """Upsert ``values`` in one commit and return the merged settings."""
    rows = {row.key: row for row in CourseSetting.query.filter(CourseSetting.key.in_(list(values))).all()}
    for key, value in values.items():
        if key in rows:
            rows[key].value = value
        else:
            db.session.add(CourseSetting(key=key, value=value))
    db.session.commit()
    return load_settings()


def reset_settings() -> int:
    """Drop every override so DEFAULT_SETTINGS apply again."""
    deleted = CourseSetting.query.delete()
    db.session.commit()
    return deleted
