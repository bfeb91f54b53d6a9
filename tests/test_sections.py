import pytest

from enrollment import sections
from enrollment.errors import LedgerError, SectionExists, SectionFull, SectionNotFound
from models import db
from models.section import SectionStatus


def test_get_section_unknown_id_raises(app):
    with pytest.raises(SectionNotFound):
        sections.get_section("does-not-exist")
    with pytest.raises(SectionNotFound):
        sections.get_section(None)


def test_increment_flips_status_to_full_at_capacity(make_section):
    section = make_section(max_capacity=2)

    locked = sections.lock_section(section.id)
    assert sections.increment_enrolled(locked) == (1, SectionStatus.OPEN)
    db.session.commit()

    locked = sections.lock_section(section.id)
    assert sections.increment_enrolled(locked) == (2, SectionStatus.FULL)
    db.session.commit()

    assert sections.get_section(section.id).status == SectionStatus.FULL


def test_increment_on_full_section_is_refused(make_section):
    section = make_section(max_capacity=1, enrolled_count=1)

    locked = sections.lock_section(section.id)
    with pytest.raises(SectionFull):
        sections.increment_enrolled(locked)
    db.session.rollback()

    assert sections.get_section(section.id).enrolled_count == 1


def test_lock_section_unknown_id_raises(app):
    with pytest.raises(SectionNotFound):
        sections.lock_section("missing")
    db.session.rollback()


def test_create_section_validates_and_rejects_duplicates(app):
    created = sections.create_section("  Section A ", 5)
    assert created.label == "Section A"
    assert created.status == SectionStatus.OPEN

    with pytest.raises(SectionExists):
        sections.create_section("Section A", 3)

    with pytest.raises(LedgerError):
        sections.create_section("Section B", -1)

    with pytest.raises(LedgerError):
        sections.create_section("", 3)


def test_zero_capacity_section_starts_full(app):
    assert sections.create_section("Closed", 0).status == SectionStatus.FULL


def test_list_sections_is_ordered_by_label(make_section):
    make_section(label="Section B")
    make_section(label="Section A")

    assert [s.label for s in sections.list_sections()] == ["Section A", "Section B"]


def test_create_section_rejects_non_string_label(app):
    with pytest.raises(LedgerError):
        sections.create_section(5, 3)
    assert sections.list_sections() == []
