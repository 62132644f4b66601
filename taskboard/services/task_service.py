"""Task service — create, edit, delete tasks and their comments.

Creating a task appends it to the end of its column; deleting one closes
the gap it leaves. Both run under the same project lock as moves, so the
0..n-1 position invariant holds. Column and position are never edited
here; that is execute_move()'s job.

Functions flush but do NOT commit — the caller commits.
"""

import logging
from datetime import datetime, timezone

from taskboard.columns import DEFAULT_COLUMN, TaskStatus, parse_column, parse_status, status_for
from taskboard.errors import NotFound, ValidationError
from taskboard.extensions import db
from taskboard.models.audit import AuditEvent
from taskboard.models.project import Milestone, Project
from taskboard.models.task import Task, TaskComment
from taskboard.models.user import User
from taskboard.services.fields import (
    choice,
    optional_datetime,
    optional_number,
    required_text,
    sanitize,
)
from taskboard.services.move_service import lock_project_tasks, snapshot
from taskboard.services.ordering import next_position, plan_removal

logger = logging.getLogger(__name__)

# Request keys the generic update accepts, mapped to model attributes.
UPDATABLE_FIELDS = {
    "title": "title",
    "description": "description",
    "status": "status",
    "priority": "priority",
    "dueDate": "due_date",
    "assignedToId": "assigned_to_id",
    "milestoneId": "milestone_id",
    "estimatedHours": "estimated_hours",
    "actualHours": "actual_hours",
    "percentComplete": "percent_complete",
    "completedAt": "completed_at",
}


def get_task(task_id):
    task = db.session.get(Task, task_id)
    if task is None:
        raise NotFound("Task not found")
    return task


def list_project_tasks(project_id):
    """All tasks of a project in board order (column, then position)."""
    if db.session.get(Project, project_id) is None:
        raise NotFound("Project not found")
    return (
        Task.query
        .filter_by(project_id=project_id)
        .order_by(Task.column_id, Task.position)
        .all()
    )


def create_task(project_id, user_id, data):
    """Create a task at the end of its column.

    Args:
        project_id: Project UUID string.
        user_id: Creator's user UUID string.
        data: Request body (camelCase keys).

    Returns:
        The created Task.

    Raises:
        NotFound: If the project does not exist.
        ValidationError: If any field is invalid.
    """
    if db.session.get(Project, project_id) is None:
        raise NotFound("Project not found")

    title = required_text(data, "title", min_length=3, max_length=200)

    column = parse_column(data.get("columnId") or DEFAULT_COLUMN.value)
    if column is None:
        raise ValidationError(f"Unknown column '{data.get('columnId')}'")

    status = status_for(column)
    if data.get("status") is not None:
        status = parse_status(data["status"])
        if status is None:
            raise ValidationError(f"Unknown status '{data['status']}'")

    task = Task(
        project_id=project_id,
        title=title,
        description=sanitize(data.get("description")) or "",
        column_id=column.value,
        status=status.value,
        priority=choice(data.get("priority") or "MEDIUM", Task.PRIORITIES, "priority"),
        due_date=optional_datetime(data.get("dueDate"), "dueDate"),
        estimated_hours=optional_number(data.get("estimatedHours"), "estimatedHours", minimum=0),
        assigned_to_id=_assignee(data.get("assignedToId")),
        milestone_id=_milestone(project_id, data.get("milestoneId")),
        created_by_id=user_id,
    )
    if status == TaskStatus.DONE:
        task.completed_at = datetime.now(timezone.utc)
        task.percent_complete = 100

    tasks = lock_project_tasks(project_id)
    task.position = next_position(snapshot(tasks), column)

    db.session.add(task)
    db.session.flush()
    return task


def update_task(task_id, data):
    """Apply a partial update to a task's own fields.

    Returns:
        (task, changed) where changed lists the request keys applied, in
        UPDATABLE_FIELDS order.

    Raises:
        NotFound: If the task does not exist.
        ValidationError: If a field is invalid or column/position is sent.
    """
    task = get_task(task_id)

    if "columnId" in data or "position" in data:
        raise ValidationError("Use PATCH /api/tasks/<id>/move to change column or position.")

    unknown = sorted(set(data) - set(UPDATABLE_FIELDS))
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(unknown)}")

    changed = []
    for key, attr in UPDATABLE_FIELDS.items():
        if key not in data:
            continue
        setattr(task, attr, _clean_update(task, key, data[key]))
        changed.append(key)

    if data.get("status") == TaskStatus.DONE.value and "completedAt" not in data:
        task.completed_at = datetime.now(timezone.utc)
        task.percent_complete = 100

    task.updated_at = datetime.now(timezone.utc)
    db.session.flush()
    return task, changed


def delete_task(task_id, actor_id=None):
    """Delete a task and shift the tasks below it up by one.

    Returns:
        The deleted task's project id.
    """
    project_id = db.session.query(Task.project_id).filter_by(id=task_id).scalar()
    if project_id is None:
        raise NotFound("Task not found")

    tasks = lock_project_tasks(project_id)
    by_id = {t.id: t for t in tasks}
    task = by_id.get(task_id)
    if task is None:
        raise NotFound("Task not found")

    for change in plan_removal(snapshot(tasks), task_id):
        by_id[change.task_id].position = change.position

    db.session.add(AuditEvent(
        project_id=project_id,
        actor_user_id=actor_id,
        action="task.deleted",
        metadata_={
            "task_id": task_id,
            "title": task.title,
            "column": task.column_id,
            "position": task.position,
        },
    ))
    db.session.delete(task)
    db.session.flush()
    logger.info(f"Deleted task {task_id} from {task.column_id}:{task.position}")
    return project_id


def list_comments(task_id):
    get_task(task_id)
    return (
        TaskComment.query
        .filter_by(task_id=task_id)
        .order_by(TaskComment.created_at.desc())
        .all()
    )


def add_comment(task_id, author_id, content):
    """Add a comment to a task's thread.

    Raises:
        NotFound: If the task does not exist.
        ValidationError: If the comment is empty.
    """
    task = get_task(task_id)
    text = sanitize(content)
    if not text:
        raise ValidationError("Comment cannot be empty.")

    comment = TaskComment(task_id=task.id, author_id=author_id, content=text)
    db.session.add(comment)
    db.session.flush()
    return comment


# ─── Helpers ─────────────────────────────────────────────────────

def _clean_update(task, key, value):
    if key == "title":
        return required_text({"title": value}, "title", min_length=3, max_length=200)
    if key == "description":
        return sanitize(value) or ""
    if key == "status":
        status = parse_status(value) if isinstance(value, str) else None
        if status is None:
            raise ValidationError(f"Unknown status '{value}'")
        return status.value
    if key == "priority":
        return choice(value, Task.PRIORITIES, "priority")
    if key in ("dueDate", "completedAt"):
        return optional_datetime(value, key)
    if key == "assignedToId":
        return _assignee(value)
    if key == "milestoneId":
        return _milestone(task.project_id, value)
    if key == "percentComplete":
        return optional_number(value, key, minimum=0, maximum=100, integer=True) or 0
    return optional_number(value, key, minimum=0)


def _assignee(user_id):
    if not user_id:
        return None
    if db.session.get(User, user_id) is None:
        raise ValidationError("Assignee not found.")
    return user_id


def _milestone(project_id, milestone_id):
    if not milestone_id:
        return None
    milestone = db.session.get(Milestone, milestone_id)
    if milestone is None or milestone.project_id != project_id:
        raise ValidationError("Milestone not found in this project.")
    return milestone_id
