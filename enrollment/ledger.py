"""Enrollment ledger: one row per payment event, confirmed or waitlisted."""
from models import db
from models.enrollment import Enrollment, PaymentStatus, Plan
from enrollment.errors import EnrollmentNotFound, InvalidPlan


def normalize_plan(plan) -> str:
    """'full' / 'deposit' in any case -> Plan constant."""
    value = (plan or "").strip().upper() if isinstance(plan, str) else ""
    if value not in Plan.ALL:
        raise InvalidPlan()
    return value


def find_by_session(external_session_id: str):
    return Enrollment.query.filter_by(external_session_id=external_session_id).first()


def get_enrollment(enrollment_id: str) -> Enrollment:
    enrollment = db.session.get(Enrollment, enrollment_id) if enrollment_id else None
    if enrollment is None:
        raise EnrollmentNotFound()
    return enrollment


def waitlisted_query(section_id: str):
    return Enrollment.query.filter_by(section_id=section_id, payment_status=PaymentStatus.WAITLISTED)


def count_waitlisted(section_id: str) -> int:
    return waitlisted_query(section_id).count()


def record_confirmed(section, external_session_id, plan, email=None, customer_id=None) -> Enrollment:
    row = Enrollment(
        section_id=section.id,
        email=email,
        plan=plan,
        payment_status=PaymentStatus.COMPLETED,
        external_session_id=external_session_id,
        external_customer_id=customer_id,
    )
    db.session.add(row)
    db.session.flush()
    return row


def record_waitlisted(section, external_session_id, plan, position, email=None, customer_id=None) -> Enrollment:
    row = Enrollment(
        section_id=section.id,
        email=email,
        plan=plan,
        payment_status=PaymentStatus.WAITLISTED,
        external_session_id=external_session_id,
        external_customer_id=customer_id,
        waitlist_position=position,
    )
    db.session.add(row)
    db.session.flush()
    return row


def reload_enrollment(enrollment_id: str) -> Enrollment:
    """Fresh read once the section lock is held; the row may have been removed meanwhile."""
    enrollment = db.session.get(Enrollment, enrollment_id, populate_existing=True)
    if enrollment is None:
        raise EnrollmentNotFound()
    return enrollment
