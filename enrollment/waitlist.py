"""
Waitlist manager.

Waitlisted enrollments of a section hold positions 1..N (FIFO). Every write
that touches those positions runs under the section row lock, the same lock
the reconciler takes for its capacity check, so readers never observe a gap
or a duplicate.
"""
import logging
from dataclasses import dataclass
from datetime import datetime

from models import db
from models.enrollment import Enrollment, PaymentStatus
from enrollment import ledger, sections
from enrollment.errors import InvalidReorder, NotWaitlisted, SectionFull
from enrollment.transaction import LedgerSettings, run_in_transaction

logger = logging.getLogger(__name__)


@dataclass
class PromotionResult:
    enrollment_id: str
    section_id: str
    promoted_email: str
    new_section_count: int
    section_status: str


def arrival_key(row: Enrollment):
    # explicit positions first, then legacy rows without one by creation time
    has_position = row.waitlist_position is not None
    return (
        0 if has_position else 1,
        row.waitlist_position if has_position else 0,
        row.created_at or datetime.min,
        row.id,
    )


def ordered_waitlist(section_id: str):
    return sorted(ledger.waitlisted_query(section_id).all(), key=arrival_key)


def is_contiguous(rows) -> bool:
    return [r.waitlist_position for r in rows] == list(range(1, len(rows) + 1))


def apply_positions(rows) -> int:
    """
    Rewrite positions of ``rows`` to 1..N in the given order.

    Changed rows are parked on negative positions first so the partial unique
    index on (section_id, waitlist_position) never sees two rows on one slot
    while the flush is half done. Returns the number of rows that moved.
    """
    changed = [(row, pos) for pos, row in enumerate(rows, start=1) if row.waitlist_position != pos]
    if not changed:
        return 0

    for row, pos in changed:
        row.waitlist_position = -pos
    db.session.flush()

    for row, pos in changed:
        row.waitlist_position = pos
    db.session.flush()
    return len(changed)


def renumber_locked(section_id: str) -> int:
    """Repair positions of a section whose row lock the caller already holds."""
    return apply_positions(ordered_waitlist(section_id))


class WaitlistManager:
    def __init__(self, settings: LedgerSettings, notifier=None):
        self.settings = settings
        self.notifier = notifier

    # ---------- reads ----------
    def list_waitlist(self, section_id: str):
        sections.get_section(section_id)
        rows = ordered_waitlist(section_id)
        if not is_contiguous(rows):
            logger.warning("Waitlist positions of section %s are inconsistent, renumbering", section_id)
            self.renumber(section_id)
            rows = ordered_waitlist(section_id)
        return rows

    def list_all(self):
        """All waitlisted enrollments, repaired and ordered by section label then position."""
        section_ids = [
            sid for (sid,) in
            db.session.query(Enrollment.section_id)
            .filter(Enrollment.payment_status == PaymentStatus.WAITLISTED)
            .distinct()
            .all()
        ]
        out = []
        for section in sorted((sections.get_section(sid) for sid in section_ids), key=lambda s: s.label):
            out.extend(self.list_waitlist(section.id))
        return out

    # ---------- writes ----------
    def renumber(self, section_id: str) -> int:
        def work():
            sections.lock_section(section_id)
            return renumber_locked(section_id)

        moved = run_in_transaction(work, self.settings, name="waitlist.renumber")
        if moved:
            logger.info("Renumbered %d waitlist rows in section %s", moved, section_id)
        return moved

    def promote(self, enrollment_id: str) -> PromotionResult:
        def work():
            section_id = ledger.get_enrollment(enrollment_id).section_id
            section = sections.lock_section(section_id)
            # state may have changed while we waited for the lock
            enrollment = ledger.reload_enrollment(enrollment_id)
            if not enrollment.is_waitlisted:
                raise NotWaitlisted()
            if not section.has_capacity:
                raise SectionFull("Section is full, cannot promote")

            enrollment.payment_status = PaymentStatus.COMPLETED
            enrollment.waitlist_position = None
            enrollment.promoted_at = datetime.utcnow()
            new_count, new_status = sections.increment_enrolled(section)
            db.session.flush()

            renumber_locked(section.id)
            return PromotionResult(
                enrollment_id=enrollment.id,
                section_id=section.id,
                promoted_email=enrollment.email,
                new_section_count=new_count,
                section_status=new_status,
            )

        result = run_in_transaction(work, self.settings, name="waitlist.promote")
        logger.info(
            "Promoted enrollment %s into section %s (%d enrolled)",
            result.enrollment_id, result.section_id, result.new_section_count,
        )
        if self.notifier is not None:
            try:
                self.notifier.promoted(result.enrollment_id)
            except Exception:
                logger.exception("Post-commit notification for enrollment %s failed", result.enrollment_id)
        return result

    def remove(self, enrollment_id: str) -> dict:
        """Drop a waitlisted enrollment. The payment stays captured; refunds are manual."""
        def work():
            section_id = ledger.get_enrollment(enrollment_id).section_id
            section = sections.lock_section(section_id)
            enrollment = ledger.reload_enrollment(enrollment_id)
            if not enrollment.is_waitlisted:
                raise NotWaitlisted()

            removed = {
                "id": enrollment.id,
                "sectionId": section.id,
                "email": enrollment.email,
                "externalSessionId": enrollment.external_session_id,
            }
            db.session.delete(enrollment)
            db.session.flush()
            renumber_locked(section.id)
            return removed

        removed = run_in_transaction(work, self.settings, name="waitlist.remove")
        logger.warning(
            "Removed waitlisted enrollment %s (session %s); refund must be issued manually",
            removed["id"], removed["externalSessionId"],
        )
        return removed

    def reorder(self, section_id: str, ordered_ids) -> int:
        if not isinstance(ordered_ids, list) or not ordered_ids or not all(isinstance(i, str) for i in ordered_ids):
            raise InvalidReorder("orderedIds must be a non-empty array of enrollment ids")

        def work():
            sections.lock_section(section_id)
            rows = {r.id: r for r in ledger.waitlisted_query(section_id).all()}
            if len(set(ordered_ids)) != len(ordered_ids) or set(ordered_ids) != set(rows):
                raise InvalidReorder()
            return apply_positions([rows[i] for i in ordered_ids])

        return run_in_transaction(work, self.settings, name="waitlist.reorder")
