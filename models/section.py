import uuid
from datetime import datetime
from models.db import db


class SectionStatus:
    OPEN = "OPEN"
    FULL = "FULL"


def _new_id() -> str:
    return uuid.uuid4().hex


class Section(db.Model):
    __tablename__ = "sections"

    id = db.Column(db.String(32), primary_key=True, default=_new_id)
    label = db.Column(db.String(120), unique=True, nullable=False)

    max_capacity = db.Column(db.Integer, nullable=False, default=0)
    enrolled_count = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(10), nullable=False, default=SectionStatus.OPEN)
    # status values: OPEN, FULL

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    enrollments = db.relationship("Enrollment", back_populates="section", lazy="dynamic")

    __table_args__ = (
        # Last line of defence for the capacity invariant
        db.CheckConstraint("max_capacity >= 0", name="ck_section_capacity_nonneg"),
        db.CheckConstraint("enrolled_count >= 0", name="ck_section_enrolled_nonneg"),
        db.CheckConstraint("enrolled_count <= max_capacity", name="ck_section_not_overcommitted"),
    )

    @property
    def has_capacity(self) -> bool:
        return self.enrolled_count < self.max_capacity

    def to_dict(self):
        return {
            "id": self.id,
            "label": self.label,
            "maxCapacity": self.max_capacity,
            "enrolledCount": self.enrolled_count,
            "status": self.status,
        }
