"""Helpers shared by the test modules (not fixtures)."""

from taskboard.extensions import db
from taskboard.models.task import Task
from taskboard.realtime.events import parse_frame


class RecordingChannel:
    """Stand-in subscriber channel that keeps every frame it is sent."""

    def __init__(self, fail=False):
        self.frames = []
        self.fail = fail
        self.closed = False

    def send(self, frame):
        if self.fail:
            raise RuntimeError("socket closed")
        self.frames.append(frame)

    def close(self):
        self.closed = True
        return True

    @property
    def events(self):
        return [e for e in (parse_frame(f) for f in self.frames) if e is not None]

    def events_of(self, event_type):
        return [e for e in self.events if e["type"] == event_type]


def make_task(session, project_id, title, column="todo", position=0, status=None):
    """Create a task directly in the DB at an explicit slot."""
    task = Task(
        project_id=project_id,
        title=title,
        column_id=column,
        position=position,
        status=status or column.upper().replace("-", "_"),
    )
    session.add(task)
    session.flush()
    return task


def login(client, who):
    """Log in one of the seeded users via the JSON endpoint."""
    return client.post("/auth/login", json={
        "email": f"{who}@taskboard.local",
        "password": f"{who}pass",
    })


def board(project_id):
    """{column: [task_id, ...]} in position order, read fresh from the DB."""
    db.session.expire_all()
    result = {}
    for task in (
        Task.query.filter_by(project_id=project_id)
        .order_by(Task.column_id, Task.position)
        .all()
    ):
        result.setdefault(task.column_id, []).append(task.id)
    return result


def positions(project_id):
    """{column: [position, ...]} in position order, read fresh from the DB."""
    db.session.expire_all()
    result = {}
    for task in (
        Task.query.filter_by(project_id=project_id)
        .order_by(Task.column_id, Task.position)
        .all()
    ):
        result.setdefault(task.column_id, []).append(task.position)
    return result
