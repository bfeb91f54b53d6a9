"""Section store: capacity and occupancy per course section."""
import logging

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from models import db
from models.section import Section, SectionStatus
from enrollment.errors import LedgerError, SectionExists, SectionFull, SectionNotFound

logger = logging.getLogger(__name__)


def get_section(section_id: str) -> Section:
    """Plain read, no lock. Callers outside a ledger transaction may see stale counts."""
    section = db.session.get(Section, section_id) if section_id else None
    if section is None:
        raise SectionNotFound()
    return section


def lock_section(section_id: str) -> Section:
    """Load the section row with SELECT ... FOR UPDATE for the rest of the transaction."""
    if db.session.get_bind().dialect.name == "sqlite":
        # SQLite drops FOR UPDATE; a no-op write takes its database write lock instead
        table = Section.__table__
        db.session.execute(
            update(table).where(table.c.id == section_id).values(enrolled_count=table.c.enrolled_count)
        )
    section = (
        Section.query
        .filter_by(id=section_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if section is None:
        raise SectionNotFound()
    return section


def increment_enrolled(section: Section) -> tuple:
    """
    Take one seat on a section locked by lock_section().

    Must run in the same transaction that writes the matching Enrollment row.
    Returns (new_count, new_status).
    """
    if not section.has_capacity:
        raise SectionFull()

    section.enrolled_count += 1
    section.status = SectionStatus.FULL if section.enrolled_count >= section.max_capacity else SectionStatus.OPEN
    return section.enrolled_count, section.status


def list_sections():
    return Section.query.order_by(Section.label.asc()).all()


def create_section(label: str, max_capacity: int) -> Section:
    label = label.strip() if isinstance(label, str) else ""
    if not label:
        raise LedgerError("Section label required")
    if not isinstance(max_capacity, int) or isinstance(max_capacity, bool) or max_capacity < 0:
        raise LedgerError("maxCapacity must be a non-negative integer")

    section = Section(
        label=label,
        max_capacity=max_capacity,
        enrolled_count=0,
        status=SectionStatus.FULL if max_capacity == 0 else SectionStatus.OPEN,
    )
    db.session.add(section)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise SectionExists()

    logger.info("Created section %s (%s) with capacity %d", section.id, label, max_capacity)
    return section
