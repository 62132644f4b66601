"""Tests for the transactional move executor and the task service.

Covers:
- Moves write every shifted row and the moved task in one commit
- Status / completedAt / percentComplete derivation persisted
- Nothing is written when validation or the commit fails
- Conflict retry policy (one retry, then TransactionConflict)
- Audit trail for moves and deletes
- Task create appends, delete closes the gap
- Concurrent writers on a file-backed SQLite database keep 0..n-1
"""

import threading
import time
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from taskboard import create_app
from taskboard.config import TestConfig
from taskboard.errors import InvalidMoveIntent, NotFound, TransactionConflict, ValidationError
from taskboard.extensions import db
from taskboard.models.audit import AuditEvent
from taskboard.models.project import Project
from taskboard.models.task import Task
from taskboard.models.user import User
from taskboard.services import move_service, task_service
from taskboard.services.ordering import MoveIntent, next_position, plan_move

from helpers import board, make_task, positions


def _locked():
    return OperationalError("UPDATE tasks ...", {}, Exception("database is locked"))


# ─── Successful moves ──────────────────────────────────────────

class TestExecuteMove:
    """execute_move() persists the whole plan."""

    def test_reorder_same_column(self, app, seed_data):
        pid = seed_data["project_id"]
        t0, t1, t2 = seed_data["t0_id"], seed_data["t1_id"], seed_data["t2_id"]

        result = move_service.execute_move(t1, MoveIntent(t1, "todo", 0))

        assert board(pid)["todo"] == [t1, t0, t2]
        assert positions(pid)["todo"] == [0, 1, 2]
        assert result.task.position == 0
        assert result.plan.from_position == 1

    def test_move_into_done_stamps_completion(self, app, seed_data):
        pid = seed_data["project_id"]
        t0, d0 = seed_data["t0_id"], seed_data["d0_id"]

        result = move_service.execute_move(t0, MoveIntent(t0, "done", 0))

        assert board(pid)["todo"] == [seed_data["t1_id"], seed_data["t2_id"]]
        assert board(pid)["done"] == [t0, d0]
        assert positions(pid)["todo"] == [0, 1]
        assert positions(pid)["done"] == [0, 1]

        task = db.session.get(Task, t0)
        assert task.column_id == "done"
        assert task.status == "DONE"
        assert task.completed_at is not None
        assert task.percent_complete == 100
        assert result.task.project.id == pid

    def test_blocked_override_keeps_completion_fields(self, app, seed_data):
        p0 = seed_data["p0_id"]
        task = db.session.get(Task, p0)
        task.percent_complete = 40
        db.session.commit()

        move_service.execute_move(p0, MoveIntent(p0, "blocked", 0, "BLOCKED"))

        db.session.expire_all()
        task = db.session.get(Task, p0)
        assert task.status == "BLOCKED"
        assert task.column_id == "blocked"
        assert task.completed_at is None
        assert task.percent_complete == 40
        assert positions(seed_data["project_id"]).get("in-progress") is None

    def test_lane_status_follows_column(self, app, seed_data):
        t2 = seed_data["t2_id"]
        move_service.execute_move(t2, MoveIntent(t2, "in-progress", 1))
        db.session.expire_all()
        task = db.session.get(Task, t2)
        assert task.status == "IN_PROGRESS"
        assert task.position == 1

    def test_intent_task_id_follows_argument(self, app, seed_data):
        """The path's task id wins over whatever the intent carried."""
        t2 = seed_data["t2_id"]
        move_service.execute_move(t2, MoveIntent("something-else", "todo", 0))
        assert board(seed_data["project_id"])["todo"][0] == t2

    def test_move_writes_audit_event(self, app, seed_data):
        t0 = seed_data["t0_id"]
        move_service.execute_move(t0, MoveIntent(t0, "in-review", 0), actor_id=seed_data["admin_id"])

        event = AuditEvent.query.filter_by(action="task.moved").one()
        assert event.actor_user_id == seed_data["admin_id"]
        assert event.project_id == seed_data["project_id"]
        assert event.metadata_["from_column"] == "todo"
        assert event.metadata_["to_column"] == "in-review"
        assert event.metadata_["to_position"] == 0

    def test_reorder_inside_done_restores_full_progress(self, app, seed_data):
        pid, t0, d0 = seed_data["project_id"], seed_data["t0_id"], seed_data["d0_id"]
        move_service.execute_move(t0, MoveIntent(t0, "done", 1))
        task = db.session.get(Task, t0)
        stamped = task.completed_at
        task.percent_complete = 60
        db.session.commit()

        move_service.execute_move(t0, MoveIntent(t0, "done", 0))

        db.session.expire_all()
        task = db.session.get(Task, t0)
        assert task.percent_complete == 100
        assert task.completed_at == stamped
        assert board(pid)["done"] == [t0, d0]


# ─── Failures ──────────────────────────────────────────────────

class TestMoveFailures:
    """Rejected or failed moves leave the board exactly as it was."""

    def test_unknown_column_writes_nothing(self, app, seed_data):
        pid = seed_data["project_id"]
        before = board(pid)
        with pytest.raises(InvalidMoveIntent):
            move_service.execute_move(seed_data["t0_id"], MoveIntent(seed_data["t0_id"], "archive", 0))
        assert board(pid) == before
        assert AuditEvent.query.count() == 0

    def test_out_of_range_writes_nothing(self, app, seed_data):
        pid = seed_data["project_id"]
        before = board(pid)
        t0 = seed_data["t0_id"]
        with pytest.raises(InvalidMoveIntent):
            move_service.execute_move(t0, MoveIntent(t0, "done", 5))
        assert board(pid) == before

    def test_missing_task(self, app, seed_data):
        with pytest.raises(NotFound):
            move_service.execute_move("no-such-task", MoveIntent("no-such-task", "todo", 0))

    def test_commit_failure_rolls_back_everything(self, app, seed_data):
        """A failing commit must not leave a half-shifted column behind."""
        pid = seed_data["project_id"]
        t0 = seed_data["t0_id"]
        before = board(pid)

        with patch.object(Session, "commit", side_effect=RuntimeError("disk full")):
            with pytest.raises(RuntimeError):
                move_service.execute_move(t0, MoveIntent(t0, "done", 0))

        assert board(pid) == before
        assert positions(pid)["todo"] == [0, 1, 2]
        assert db.session.get(Task, t0).status == "TODO"


# ─── Conflict retry ────────────────────────────────────────────

class TestConflictRetry:
    """Serialization conflicts are retried once, then surfaced."""

    def test_retries_once_then_succeeds(self, app, seed_data):
        t1 = seed_data["t1_id"]
        real_apply = move_service._apply_move
        calls = []

        def flaky(*args):
            calls.append(args)
            if len(calls) == 1:
                raise _locked()
            return real_apply(*args)

        with patch.object(move_service, "_apply_move", side_effect=flaky):
            result = move_service.execute_move(t1, MoveIntent(t1, "todo", 0))

        assert len(calls) == 2
        assert result.task.position == 0
        assert board(seed_data["project_id"])["todo"][0] == t1

    def test_persistent_conflict_raises(self, app, seed_data):
        t1 = seed_data["t1_id"]
        before = board(seed_data["project_id"])

        with patch.object(move_service, "_apply_move", side_effect=_locked()) as mock_apply:
            with pytest.raises(TransactionConflict):
                move_service.execute_move(t1, MoveIntent(t1, "todo", 0))

        assert mock_apply.call_count == 2
        assert board(seed_data["project_id"]) == before

    def test_retry_count_is_configurable(self, app, seed_data):
        t1 = seed_data["t1_id"]
        app.config["MOVE_CONFLICT_RETRIES"] = 0
        try:
            with patch.object(move_service, "_apply_move", side_effect=_locked()) as mock_apply:
                with pytest.raises(TransactionConflict):
                    move_service.execute_move(t1, MoveIntent(t1, "todo", 0))
            assert mock_apply.call_count == 1
        finally:
            app.config["MOVE_CONFLICT_RETRIES"] = 1

    def test_other_database_errors_are_not_retried(self, app, seed_data):
        t1 = seed_data["t1_id"]
        error = OperationalError("SELECT ...", {}, Exception("no such table: tasks"))
        with patch.object(move_service, "_apply_move", side_effect=error) as mock_apply:
            with pytest.raises(OperationalError):
                move_service.execute_move(t1, MoveIntent(t1, "todo", 0))
        assert mock_apply.call_count == 1

    def test_postgres_serialization_code_is_a_conflict(self):
        class PgError(Exception):
            pgcode = "40001"

        assert move_service._is_conflict(OperationalError("UPDATE", {}, PgError("could not serialize")))


# ─── Task service ──────────────────────────────────────────────

class TestTaskService:
    """Create appends; delete closes the gap; edits never touch ordering."""

    def test_create_appends_to_column(self, app, seed_data):
        pid = seed_data["project_id"]
        task = task_service.create_task(pid, seed_data["admin_id"], {"title": "New page"})
        db.session.commit()

        assert task.column_id == "todo"
        assert task.position == 3
        assert task.status == "TODO"
        assert positions(pid)["todo"] == [0, 1, 2, 3]

    def test_create_into_empty_column(self, app, seed_data):
        task = task_service.create_task(
            seed_data["project_id"], seed_data["admin_id"],
            {"title": "Fix login", "columnId": "blocked"},
        )
        assert task.position == 0
        assert task.status == "BLOCKED"

    def test_create_done_task_is_complete(self, app, seed_data):
        task = task_service.create_task(
            seed_data["project_id"], seed_data["admin_id"],
            {"title": "Already shipped", "columnId": "done"},
        )
        assert task.position == 1
        assert task.completed_at is not None
        assert task.percent_complete == 100

    def test_create_sanitizes_html(self, app, seed_data):
        task = task_service.create_task(
            seed_data["project_id"], seed_data["admin_id"],
            {"title": "<b>Bold</b> title", "description": "<script>x</script>ok"},
        )
        assert task.title == "Bold title"
        assert "<script>" not in task.description

    def test_create_rejects_unknown_column(self, app, seed_data):
        with pytest.raises(ValidationError):
            task_service.create_task(
                seed_data["project_id"], seed_data["admin_id"],
                {"title": "Task", "columnId": "archive"},
            )

    def test_create_in_missing_project(self, app, seed_data):
        with pytest.raises(NotFound):
            task_service.create_task("nope", seed_data["admin_id"], {"title": "Task"})

    def test_delete_closes_gap(self, app, seed_data):
        pid = seed_data["project_id"]
        project_id = task_service.delete_task(seed_data["t0_id"], actor_id=seed_data["admin_id"])
        db.session.commit()

        assert project_id == pid
        assert board(pid)["todo"] == [seed_data["t1_id"], seed_data["t2_id"]]
        assert positions(pid)["todo"] == [0, 1]
        assert AuditEvent.query.filter_by(action="task.deleted").count() == 1

    def test_update_refuses_column_and_position(self, app, seed_data):
        with pytest.raises(ValidationError):
            task_service.update_task(seed_data["t0_id"], {"columnId": "done"})
        with pytest.raises(ValidationError):
            task_service.update_task(seed_data["t0_id"], {"position": 2})

    def test_update_rejects_unknown_fields(self, app, seed_data):
        with pytest.raises(ValidationError):
            task_service.update_task(seed_data["t0_id"], {"colour": "red"})

    def test_update_status_done_stamps_completion(self, app, seed_data):
        task, changed = task_service.update_task(seed_data["t0_id"], {"status": "DONE"})
        assert changed == ["status"]
        assert task.completed_at is not None
        assert task.percent_complete == 100
        assert task.column_id == "todo"

    def test_update_reports_changes_in_field_order(self, app, seed_data):
        _, changed = task_service.update_task(
            seed_data["t0_id"], {"percentComplete": 30, "priority": "HIGH", "title": "Copy"}
        )
        assert changed == ["title", "priority", "percentComplete"]

    def test_update_assignee_must_exist(self, app, seed_data):
        with pytest.raises(ValidationError):
            task_service.update_task(seed_data["t0_id"], {"assignedToId": "ghost"})

    def test_update_milestone_must_exist(self, app, seed_data):
        task, _ = task_service.update_task(
            seed_data["t0_id"], {"milestoneId": seed_data["milestone_id"]}
        )
        assert task.milestone_id == seed_data["milestone_id"]

        with pytest.raises(ValidationError):
            task_service.update_task(seed_data["t1_id"], {"milestoneId": "ghost"})

    def test_add_comment_requires_text(self, app, seed_data):
        with pytest.raises(ValidationError):
            task_service.add_comment(seed_data["t0_id"], seed_data["admin_id"], "<p></p>")


# ─── Concurrent writers ────────────────────────────────────────

@pytest.fixture
def file_board(tmp_path, monkeypatch):
    """(app, ids) for a file-backed SQLite board, one connection per thread."""
    monkeypatch.setattr(TestConfig, "SQLALCHEMY_DATABASE_URI", f"sqlite:///{tmp_path}/board.db")
    file_app = create_app("testing")
    with file_app.app_context():
        db.create_all()
        owner = User(email="owner@taskboard.local", password_hash="x", name="Owner")
        db.session.add(owner)
        db.session.flush()
        project = Project(name="Race", status="IN_PROGRESS", created_by_id=owner.id)
        db.session.add(project)
        db.session.flush()
        ids = {"project_id": project.id}
        for key, column, position in (
            ("t0", "todo", 0), ("t1", "todo", 1), ("t2", "todo", 2), ("d0", "done", 0),
        ):
            ids[f"{key}_id"] = make_task(db.session, project.id, key, column, position).id
        db.session.commit()
        db.session.close()
    yield file_app, ids
    with file_app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def _run_together(app, *jobs):
    """Start every job at once, each in its own thread and app context."""
    errors = []
    barrier = threading.Barrier(len(jobs))

    def run(job):
        barrier.wait()
        try:
            with app.app_context():
                job()
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=run, args=(job,)) for job in jobs]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return errors


class TestConcurrentWrites:
    """Writers that overlap in time still leave every column at 0..n-1."""

    def test_simultaneous_moves_into_one_column(self, file_board):
        file_app, seed = file_board

        def slow_plan(*args):
            time.sleep(0.05)
            return plan_move(*args)

        def move(task_id):
            return lambda: move_service.execute_move(task_id, MoveIntent(task_id, "done", 0))

        with patch.object(move_service, "plan_move", side_effect=slow_plan):
            errors = _run_together(file_app, move(seed["t0_id"]), move(seed["t1_id"]))

        assert errors == []
        with file_app.app_context():
            cols = positions(seed["project_id"])
            assert cols["todo"] == [0]
            assert cols["done"] == [0, 1, 2]
            assert set(board(seed["project_id"])["done"]) == {
                seed["t0_id"], seed["t1_id"], seed["d0_id"],
            }

    def test_simultaneous_creates_append_in_turn(self, file_board):
        file_app, seed = file_board

        def slow_next(*args):
            time.sleep(0.05)
            return next_position(*args)

        def create(title):
            def job():
                task_service.create_task(seed["project_id"], None, {"title": title})
                db.session.commit()
            return job

        with patch.object(task_service, "next_position", side_effect=slow_next):
            errors = _run_together(file_app, create("First"), create("Second"))

        assert errors == []
        with file_app.app_context():
            assert positions(seed["project_id"])["todo"] == [0, 1, 2, 3, 4]
