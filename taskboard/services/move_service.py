"""Move service — applies ordering plans to the store atomically.

execute_move() is the only writer of a task's column and position after
creation. It owns its transaction (unlike the other services, which flush
and leave the commit to the caller):

1. validate the intent (no reads, no writes on failure)
2. lock the project row, then re-read every task of the project
3. ask the ordering engine for a plan against that fresh snapshot
4. write all position changes + the moved task, commit once

Locking the project row serializes concurrent moves inside one project
while moves in other projects proceed. On PostgreSQL that is a
``SELECT ... FOR UPDATE``. SQLite has no row locks and pysqlite defers
``BEGIN`` until the first write, so for SQLite the engine is set up by
``enable_sqlite_immediate_transactions()`` to open every transaction with
``BEGIN IMMEDIATE``: the whole read-plan-write cycle then holds the
database write lock.

A serialization failure or deadlock reported by the database is retried
with a fresh snapshot MOVE_CONFLICT_RETRIES times (default once), then
surfaced as TransactionConflict.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import joinedload
from sqlalchemy.orm.exc import StaleDataError

from taskboard.columns import parse_column, parse_status
from taskboard.errors import NotFound, TransactionConflict
from taskboard.extensions import db
from taskboard.models.audit import AuditEvent
from taskboard.models.project import Project
from taskboard.models.task import Task
from taskboard.services.ordering import (
    MovePlan,
    TaskSlot,
    find_gaps,
    plan_move,
    validate_intent,
)

logger = logging.getLogger(__name__)

# serialization_failure, deadlock_detected
_CONFLICT_SQLSTATES = {"40001", "40P01"}


@dataclass(frozen=True)
class MoveResult:
    task: Task
    plan: MovePlan


def lock_project_tasks(project_id):
    """Lock the project row and return its tasks, freshly read.

    Must be called inside the caller's transaction; the lock is held until
    it commits or rolls back.
    """
    locked = Project.query.filter_by(id=project_id).with_for_update().first()
    if locked is None:
        raise NotFound("Project not found")

    return (
        Task.query
        .filter_by(project_id=project_id)
        .order_by(Task.column_id, Task.position)
        .with_for_update()
        .populate_existing()
        .all()
    )


def snapshot(tasks):
    """Ordering-engine view of a list of Task rows."""
    return [
        TaskSlot(t.id, parse_column(t.column_id), t.position, parse_status(t.status))
        for t in tasks
    ]


def execute_move(task_id, intent, actor_id=None):
    """Move a task to ``intent.column`` at ``intent.position``.

    Args:
        task_id: Task UUID string.
        intent: MoveIntent with the target column, position and optional
            status override.
        actor_id: User UUID string recorded on the audit event.

    Returns:
        MoveResult with the reloaded task (project + assignee loaded) and
        the plan that was applied.

    Raises:
        InvalidMoveIntent: bad column/position/status or out-of-range target.
        NotFound: the task does not exist (anymore).
        TransactionConflict: the store kept reporting conflicts.
    """
    if intent.task_id != task_id:
        intent = replace(intent, task_id=task_id)
    validate_intent(intent)

    retries = current_app.config.get("MOVE_CONFLICT_RETRIES", 1)
    attempt = 0
    while True:
        try:
            plan = _apply_move(task_id, intent, actor_id)
            db.session.commit()
            break
        except (DBAPIError, StaleDataError) as e:
            db.session.rollback()
            if not _is_conflict(e):
                raise
            if attempt >= retries:
                logger.warning(f"Move of task {task_id} still conflicting after {attempt} retries")
                raise TransactionConflict() from e
            attempt += 1
            logger.warning(f"Move of task {task_id} conflicted, retrying ({attempt}/{retries})")
        except Exception:
            db.session.rollback()
            raise

    logger.info(
        f"Moved task {task_id} {plan.from_column.value}:{plan.from_position} -> "
        f"{plan.to_column.value}:{plan.to_position} ({len(plan.changes)} rows)"
    )
    return MoveResult(task=_reload(task_id), plan=plan)


def _apply_move(task_id, intent, actor_id):
    project_id = db.session.query(Task.project_id).filter_by(id=task_id).scalar()
    if project_id is None:
        raise NotFound("Task not found")

    tasks = lock_project_tasks(project_id)
    by_id = {t.id: t for t in tasks}
    task = by_id.get(task_id)
    if task is None:
        # Moved to another project or deleted while we waited for the lock.
        raise NotFound("Task not found")

    slots = snapshot(tasks)
    gaps = find_gaps(s for s in slots if s.column is not None)
    if gaps:
        logger.warning(f"Project {project_id} has non-contiguous columns before move: {gaps}")

    now = datetime.now(timezone.utc)
    plan = plan_move(slots, intent, now)

    for change in plan.changes:
        row = by_id[change.task_id]
        row.column_id = change.column.value
        row.position = change.position

    task.status = plan.status.status.value
    if plan.status.completed_at is not None:
        task.completed_at = plan.status.completed_at
    if plan.status.percent_complete is not None:
        task.percent_complete = plan.status.percent_complete
    task.updated_at = now

    db.session.add(AuditEvent(
        project_id=project_id,
        actor_user_id=actor_id,
        action="task.moved",
        metadata_={
            "task_id": task_id,
            "from_column": plan.from_column.value,
            "to_column": plan.to_column.value,
            "from_position": plan.from_position,
            "to_position": plan.to_position,
            "status": task.status,
        },
    ))
    db.session.flush()
    return plan


def _reload(task_id):
    return (
        Task.query
        .options(joinedload(Task.project), joinedload(Task.assigned_to))
        .filter_by(id=task_id)
        .one()
    )


def _is_conflict(exc):
    """True for errors that mean "another transaction got there first"."""
    if isinstance(exc, StaleDataError):
        return True
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code in _CONFLICT_SQLSTATES:
        return True
    text = str(orig or exc).lower()
    return "database is locked" in text or "deadlock" in text
