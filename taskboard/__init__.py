import atexit
import os
import logging

import click
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException
from werkzeug.security import generate_password_hash

from taskboard.config import config_by_name
from taskboard.errors import BoardError
from taskboard.extensions import (
    db, migrate, login_manager, csrf, limiter, enable_sqlite_immediate_transactions,
)

logger = logging.getLogger(__name__)


def create_app(config_name=None):
    """Application factory."""

    if config_name is None:
        config_name = os.environ.get("FLASK_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])

    # --- Validate required env vars (skip in testing) ---
    if config_name != "testing":
        try:
            config_by_name[config_name].validate()
        except RuntimeError as e:
            app.logger.warning(f"Config validation: {e}")

    # --- Init extensions ---
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)
    limiter.init_app(app)

    # --- Import models so Alembic can discover them ---
    with app.app_context():
        from taskboard import models  # noqa: F401

        # File-backed SQLite: take the write lock at BEGIN so project locks
        # hold. In-memory SQLite runs over one shared connection.
        url = db.engine.url
        if url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
            enable_sqlite_immediate_transactions(db.engine)

    # --- Broadcast hub (one per app, closed on interpreter exit) ---
    from taskboard.realtime.hub import init_hub
    hub = init_hub(app)
    atexit.register(hub.shutdown)

    # --- Register blueprints ---
    from taskboard.blueprints.auth import auth_bp
    from taskboard.blueprints.projects import projects_bp
    from taskboard.blueprints.tasks import tasks_bp
    from taskboard.blueprints.realtime import realtime_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(projects_bp)
    app.register_blueprint(tasks_bp)
    app.register_blueprint(realtime_bp)

    # JSON API: session cookie is SameSite=Lax and bodies must be JSON
    for bp in (auth_bp, projects_bp, tasks_bp, realtime_bp):
        csrf.exempt(bp)

    # --- Error handlers ---
    @app.errorhandler(BoardError)
    def board_error(e):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(HTTPException)
    def http_error(e):
        return jsonify({"error": e.description, "code": e.name.lower().replace(" ", "_")}), e.code

    @app.errorhandler(Exception)
    def server_error(e):
        logger.error(f"Unhandled error: {e}", exc_info=True)
        return jsonify({"error": "Internal server error", "code": "internal_error"}), 500

    # --- CLI commands ---
    register_cli(app)

    # --- Security headers ---
    @app.after_request
    def add_security_headers(response):
        """Add security headers to every response."""
        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"
        # Control referrer information
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # API only, nothing to load
        response.headers["Content-Security-Policy"] = (
            "default-src 'none'; frame-ancestors 'none';"
        )
        # Strict Transport Security (only in production)
        if not app.debug:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        return response

    # --- Logging ---
    if not app.debug:
        logging.basicConfig(level=logging.INFO)

    return app


def register_cli(app):
    """Register custom CLI commands with the Flask app."""

    @app.cli.command("seed-board")
    @click.option("--email", default="admin@taskboard.local", help="Admin email")
    @click.option("--password", default="admin123", help="Admin password")
    def seed_board(email, password):
        """Create an admin user + a demo project with tasks in every column.

        Usage:
            flask seed-board
            flask seed-board --email admin@example.com --password s3cret
        """
        from taskboard.columns import COLUMN_ORDER, status_for
        from taskboard.models.user import User
        from taskboard.models.project import Milestone, Project
        from taskboard.models.task import Task

        # --- 1. Admin user ---
        admin = User.query.filter_by(email=email).first()
        if admin:
            click.echo(f"Admin user already exists: {email}")
        else:
            admin = User(
                email=email,
                password_hash=generate_password_hash(password),
                name="Admin",
                role="SUPER_ADMIN",
            )
            db.session.add(admin)
            db.session.flush()
            click.echo(f"Created admin user: {email}")

        # --- 2. Demo project ---
        project = Project(
            name="Demo Board",
            description="Demo project for trying the board.",
            status="IN_PROGRESS",
            created_by_id=admin.id,
        )
        db.session.add(project)
        db.session.flush()

        # --- 3. Milestone ---
        milestone = Milestone(project_id=project.id, name="First release")
        db.session.add(milestone)
        db.session.flush()

        # --- 4. Two tasks per column, positions 0 and 1 ---
        for column in COLUMN_ORDER:
            for position in range(2):
                db.session.add(Task(
                    project_id=project.id,
                    title=f"{column.value} task {position + 1}",
                    column_id=column.value,
                    status=status_for(column).value,
                    position=position,
                    milestone_id=milestone.id,
                    created_by_id=admin.id,
                ))

        db.session.commit()

        click.echo("")
        click.echo("=" * 60)
        click.echo("Seed data created successfully!")
        click.echo("=" * 60)
        click.echo(f"  Admin:     {email} / {password}")
        click.echo(f"  Project:   {project.name} (id: {project.id})")
        click.echo(f"  Tasks:     {2 * len(COLUMN_ORDER)}")
        click.echo("=" * 60)
