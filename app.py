import logging

from flask import Flask, request, g, jsonify
from config import Config
from routes import health_bp, checkout_bp, webhook_bp, admin_bp, audit_bp

from models import db
from flask_migrate import Migrate
from enrollment.errors import LedgerError
from utils.auth_context import load_current_admin
from security.csrf import require_csrf


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(checkout_bp)
    app.register_blueprint(webhook_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(audit_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    @app.errorhandler(LedgerError)
    def _ledger_error(exc):
        detail = getattr(exc, "detail", None)
        if detail:
            # configuration problems are logged, never shown to the caller
            app.logger.error("%s: %s", exc.code, detail)
        return jsonify(exc.to_dict()), exc.status_code

    @app.before_request
    def _load_admin():
        if request.path.startswith("/admin"):
            load_current_admin()
        else:
            g.admin_session = None

    CSRF_EXEMPT_PATHS = {
    "/admin/login",
    }

    @app.before_request
    def _csrf_protect():
        # Only protect state-changing requests
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            if request.path in CSRF_EXEMPT_PATHS:
                return None

            # Only enforce CSRF on cookie-authenticated admin requests
            if getattr(g, "admin_session", None) is not None:
                failure = require_csrf()
                if failure:
                    return failure

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp


    register_cli(app)


    return app

#-------------------------
import click
from enrollment import make_waitlist, sections
from enrollment.errors import SectionExists
from security.password import hash_password
from utils.audit import log_event

DEFAULT_SECTIONS = [("Section A", 5), ("Section B", 5)]

def register_cli(app):
    @app.cli.command("seed-sections")
    def seed_sections():
        """Create the default sections if they do not exist (idempotent)."""
        for label, capacity in DEFAULT_SECTIONS:
            try:
                section = sections.create_section(label, capacity)
                click.echo(f"Created {label} ({section.id})")
            except SectionExists:
                click.echo(f"{label} already exists")

    @app.cli.command("create-section")
    @click.argument("label")
    @click.argument("capacity", type=int)
    def create_section(label, capacity):
        """Create a section with a fixed seat capacity."""
        try:
            section = sections.create_section(label, capacity)
        except LedgerError as exc:
            raise click.ClickException(str(exc))
        log_event("SECTION_CREATE", actor="cli", entity="section", entity_id=section.id,
                  metadata={"label": label, "max_capacity": capacity})
        click.echo(f"{section.label}: {section.id} (capacity {section.max_capacity})")

    @app.cli.command("renumber-waitlist")
    @click.argument("section_id")
    def renumber_waitlist(section_id):
        """Repair waitlist positions of a section to 1..N."""
        try:
            moved = make_waitlist(app.config).renumber(section_id)
        except LedgerError as exc:
            raise click.ClickException(str(exc))
        log_event("WAITLIST_RENUMBER", actor="cli", entity="section", entity_id=section_id,
                  metadata={"moved": moved})
        click.echo(f"{moved} waitlist rows renumbered")

    @app.cli.command("hash-admin-password")
    @click.password_option()
    def hash_admin_password(password):
        """Print a bcrypt hash to put in ADMIN_PASSWORD_HASH."""
        click.echo(hash_password(password))

#-------------------------




if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
