"""Shared test fixtures for the task board test suite.

Provides:
- app: Flask app configured for testing (in-memory SQLite, CSRF off)
- client: Flask test client
- db_session: clean database per test (tables created/dropped)
- seed_data: users for each role, one project, a small board
- hub / recorder: the app's broadcast hub with a recording subscriber
"""

import pytest
from werkzeug.security import generate_password_hash

from taskboard import create_app
from taskboard.extensions import db as _db
from taskboard.models.user import User
from taskboard.models.project import Milestone, Project
from taskboard.realtime.hub import EXTENSION_KEY

from helpers import RecordingChannel, make_task


@pytest.fixture(scope="session")
def app():
    """Create the Flask application configured for testing."""
    app = create_app("testing")
    yield app


@pytest.fixture(autouse=True)
def db_session(app):
    """Create all tables before each test, drop after."""
    with app.app_context():
        _db.create_all()
        yield _db.session
        _db.session.rollback()
        _db.drop_all()


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def hub(app):
    """The app's hub, emptied after each test."""
    hub = app.extensions[EXTENSION_KEY]
    yield hub
    hub.shutdown()


@pytest.fixture
def recorder(hub):
    """A recording channel registered on the app's hub as viewer 'observer'."""
    channel = RecordingChannel()
    hub.register("observer", channel)
    return channel


@pytest.fixture
def seed_data(app, db_session):
    """Seed users for each role, a project, a milestone and a board.

    Board layout:
        todo:        [t0:0, t1:1, t2:2]
        in-progress: [p0:0]
        done:        [d0:0]

    The project is created by the manager. Returns plain IDs so tests can
    use them across requests.
    """
    users = {}
    for key, role in (
        ("admin", "SUPER_ADMIN"),
        ("manager", "PROJECT_MANAGER"),
        ("member", "TEAM_MEMBER"),
        ("stakeholder", "STAKEHOLDER"),
    ):
        user = User(
            email=f"{key}@taskboard.local",
            password_hash=generate_password_hash(f"{key}pass"),
            name=key.title(),
            role=role,
        )
        _db.session.add(user)
        users[key] = user
    _db.session.flush()

    project = Project(
        name="Website Relaunch",
        status="IN_PROGRESS",
        created_by_id=users["manager"].id,
    )
    _db.session.add(project)
    _db.session.flush()

    milestone = Milestone(project_id=project.id, name="Beta")
    _db.session.add(milestone)

    tasks = {
        "t0": make_task(_db.session, project.id, "Write copy", "todo", 0),
        "t1": make_task(_db.session, project.id, "Pick fonts", "todo", 1),
        "t2": make_task(_db.session, project.id, "Draft sitemap", "todo", 2),
        "p0": make_task(_db.session, project.id, "Build header", "in-progress", 0),
        "d0": make_task(_db.session, project.id, "Kickoff call", "done", 0),
    }

    _db.session.commit()

    data = {f"{key}_id": user.id for key, user in users.items()}
    data.update({f"{key}_id": task.id for key, task in tasks.items()})
    data["project_id"] = project.id
    data["milestone_id"] = milestone.id
    return data
