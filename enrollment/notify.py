"""Post-commit enrollment emails. Best effort: failures are logged, never raised."""
import logging

from models import db
from models.enrollment import Enrollment
from models.course_setting import load_settings
from utils.emailer import send_email
from enrollment.reconciler import Outcome

logger = logging.getLogger(__name__)


class EmailNotifier:
    def __init__(self, config, sender=send_email):
        self.config = config
        self.sender = sender

    def reconciled(self, result):
        if result.outcome is Outcome.CONFIRMED:
            self._notify(result.enrollment_id, "confirmed")
        elif result.outcome is Outcome.WAITLISTED:
            self._notify(result.enrollment_id, "waitlisted")

    def promoted(self, enrollment_id: str):
        self._notify(enrollment_id, "promoted")

    def _notify(self, enrollment_id: str, kind: str):
        try:
            enrollment = db.session.get(Enrollment, enrollment_id)
            if enrollment is None or not enrollment.email:
                logger.info("No email on enrollment %s, skipping %s notice", enrollment_id, kind)
                return
            subject, body = self._compose(enrollment, kind)
            ok, err = self.sender(enrollment.email, subject, body, config=self.config)
            if not ok:
                logger.warning("Could not send %s notice for enrollment %s: %s", kind, enrollment_id, err)
        except Exception:
            logger.exception("Notification %s for enrollment %s failed", kind, enrollment_id)

    def _compose(self, enrollment: Enrollment, kind: str):
        course = load_settings().get("course.name")
        label = enrollment.section.label if enrollment.section else enrollment.section_id
        if kind == "waitlisted":
            return (
                f"You're on the waitlist: {course}",
                f"{label} filled up while your payment was processing.\n"
                f"You are number {enrollment.waitlist_position} on the waitlist. "
                "We will contact you about a seat or a refund.",
            )
        if kind == "promoted":
            return (
                f"A seat opened up: {course}",
                f"Good news! You have been moved from the waitlist into {label}.",
            )
        return (
            f"You're enrolled: {course}",
            f"Your payment ({enrollment.plan.lower()} plan) is confirmed and your seat in {label} is reserved.",
        )
