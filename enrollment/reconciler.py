"""
Confirmation reconciler.

Turns a "payment completed" event into a durable, capacity-respecting
enrollment. Events arrive at least once; the unique external session id makes
processing exactly once. The capacity check done before checkout is only
advisory, so the decision between a seat and the waitlist is made here,
under the section row lock.
"""
import enum
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError

from enrollment import ledger, sections
from enrollment.transaction import LedgerSettings, run_in_transaction
from enrollment.waitlist import renumber_locked

logger = logging.getLogger(__name__)


class Outcome(str, enum.Enum):
    CONFIRMED = "CONFIRMED"
    WAITLISTED = "WAITLISTED"
    ALREADY_PROCESSED = "ALREADY_PROCESSED"


@dataclass
class ReconcileResult:
    outcome: Outcome
    enrollment_id: str
    section_id: str
    waitlist_position: Optional[int] = None
    enrolled_count: Optional[int] = None


class ConfirmationReconciler:
    def __init__(self, settings: LedgerSettings, notifier=None):
        self.settings = settings
        self.notifier = notifier

    def reconcile(self, external_session_id, section_id, plan, email=None, customer_id=None) -> ReconcileResult:
        if not external_session_id:
            raise ValueError("external_session_id is required")
        plan = ledger.normalize_plan(plan)

        def work():
            existing = ledger.find_by_session(external_session_id)
            if existing is not None:
                return self._already_processed(existing)

            section = sections.lock_section(section_id)

            if section.has_capacity:
                row = ledger.record_confirmed(section, external_session_id, plan, email, customer_id)
                new_count, _ = sections.increment_enrolled(section)
                return ReconcileResult(Outcome.CONFIRMED, row.id, section.id, enrolled_count=new_count)

            # Lost the race: paid for a seat that no longer exists.
            renumber_locked(section.id)
            position = ledger.count_waitlisted(section.id) + 1
            row = ledger.record_waitlisted(section, external_session_id, plan, position, email, customer_id)
            return ReconcileResult(
                Outcome.WAITLISTED, row.id, section.id,
                waitlist_position=position, enrolled_count=section.enrolled_count,
            )

        try:
            result = run_in_transaction(work, self.settings, name="reconcile")
        except IntegrityError:
            # A concurrent delivery of the same event committed first.
            existing = ledger.find_by_session(external_session_id)
            if existing is None:
                raise
            result = self._already_processed(existing)

        self._log(result, external_session_id)
        if self.notifier is not None and result.outcome is not Outcome.ALREADY_PROCESSED:
            try:
                self.notifier.reconciled(result)
            except Exception:
                logger.exception("Post-commit notification for enrollment %s failed", result.enrollment_id)
        return result

    @staticmethod
    def _already_processed(existing) -> ReconcileResult:
        return ReconcileResult(
            Outcome.ALREADY_PROCESSED, existing.id, existing.section_id,
            waitlist_position=existing.waitlist_position,
        )

    @staticmethod
    def _log(result: ReconcileResult, external_session_id: str) -> None:
        if result.outcome is Outcome.CONFIRMED:
            logger.info(
                "Confirmed enrollment %s for session %s in section %s (%d enrolled)",
                result.enrollment_id, external_session_id, result.section_id, result.enrolled_count,
            )
        elif result.outcome is Outcome.WAITLISTED:
            logger.warning(
                "WAITLISTED enrollment %s for session %s: section %s is full, manual refund needed (position %d)",
                result.enrollment_id, external_session_id, result.section_id, result.waitlist_position,
            )
        else:
            logger.info("Session %s already processed as enrollment %s", external_session_id, result.enrollment_id)
