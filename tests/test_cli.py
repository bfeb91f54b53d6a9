from enrollment import sections
from models.audit_log import AuditLog


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.headers["X-Frame-Options"] == "DENY"


def test_seed_sections_is_idempotent(app):
    runner = app.test_cli_runner()

    first = runner.invoke(args=["seed-sections"])
    second = runner.invoke(args=["seed-sections"])

    assert first.exit_code == 0
    assert "Created Section A" in first.output
    assert "Section A already exists" in second.output
    assert [(s.label, s.max_capacity) for s in sections.list_sections()] == [("Section A", 5), ("Section B", 5)]


def test_create_section_command(app):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["create-section", "Evening", "12"])

    assert result.exit_code == 0
    assert "capacity 12" in result.output
    assert AuditLog.query.filter_by(action="SECTION_CREATE", actor="cli").count() == 1

    dup = runner.invoke(args=["create-section", "Evening", "3"])
    assert dup.exit_code != 0


def test_renumber_waitlist_command(app, make_section, add_waitlisted):
    section = make_section(max_capacity=1, enrolled_count=1)
    add_waitlisted(section, 4)
    add_waitlisted(section, 9)

    result = app.test_cli_runner().invoke(args=["renumber-waitlist", section.id])

    assert result.exit_code == 0
    assert "2 waitlist rows renumbered" in result.output

    missing = app.test_cli_runner().invoke(args=["renumber-waitlist", "nope"])
    assert missing.exit_code != 0
