import uuid
from datetime import datetime
from models.db import db


class Plan:
    FULL = "FULL"
    DEPOSIT = "DEPOSIT"

    ALL = (FULL, DEPOSIT)


class PaymentStatus:
    COMPLETED = "COMPLETED"
    WAITLISTED = "WAITLISTED"


class Enrollment(db.Model):
    __tablename__ = "enrollments"

    id = db.Column(db.String(32), primary_key=True, default=lambda: uuid.uuid4().hex)
    section_id = db.Column(db.String(32), db.ForeignKey("sections.id"), nullable=False, index=True)

    # unknown until the payment processor confirms who paid
    email = db.Column(db.String(255), nullable=True)
    plan = db.Column(db.String(10), nullable=False, default=Plan.FULL)
    payment_status = db.Column(db.String(20), nullable=False)

    # idempotency key of the payment event (Stripe checkout session id)
    external_session_id = db.Column(db.String(255), nullable=False, unique=True, index=True)
    external_customer_id = db.Column(db.String(255), nullable=True)

    waitlist_position = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    promoted_at = db.Column(db.DateTime, nullable=True)

    section = db.relationship("Section", back_populates="enrollments")

    __table_args__ = (
        # One WAITLISTED row per (section, position)
        db.Index(
            "uq_enrollment_waitlist_position",
            "section_id",
            "waitlist_position",
            unique=True,
            postgresql_where=db.text("payment_status = 'WAITLISTED'"),
            sqlite_where=db.text("payment_status = 'WAITLISTED'"),
        ),
    )

    @property
    def is_waitlisted(self) -> bool:
        return self.payment_status == PaymentStatus.WAITLISTED

    def to_dict(self, include_section: bool = False):
        out = {
            "id": self.id,
            "sectionId": self.section_id,
            "email": self.email,
            "plan": self.plan,
            "paymentStatus": self.payment_status,
            "externalSessionId": self.external_session_id,
            "externalCustomerId": self.external_customer_id,
            "waitlistPosition": self.waitlist_position,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "promotedAt": self.promoted_at.isoformat() if self.promoted_at else None,
        }
        if include_section and self.section is not None:
            out["section"] = {"id": self.section.id, "label": self.section.label}
        return out
