"""Project service — projects, milestones and project updates.

Deleting a project cancels it (status -> CANCELLED) instead of removing
rows. Completing a milestone stamps completed_at.

Functions flush but do NOT commit — the caller commits.
"""

from datetime import datetime, timezone

from taskboard.errors import NotFound, ValidationError
from taskboard.extensions import db
from taskboard.models.project import Milestone, Project, ProjectUpdate
from taskboard.services.fields import (
    choice,
    optional_bool,
    optional_datetime,
    required_text,
    sanitize,
)


def get_project(project_id):
    project = db.session.get(Project, project_id)
    if project is None:
        raise NotFound("Project not found")
    return project


def list_projects(statuses=None):
    query = Project.query
    if statuses:
        query = query.filter(Project.status.in_(statuses))
    return query.order_by(Project.created_at.desc()).all()


def create_project(user_id, data):
    project = Project(
        name=required_text(data, "name", min_length=3, max_length=200),
        description=sanitize(data.get("description")) or "",
        status=choice(data.get("status") or "PLANNING", Project.STATUSES, "status"),
        priority=choice(data.get("priority") or "MEDIUM", Project.PRIORITIES, "priority"),
        is_public=bool(optional_bool(data.get("isPublic"), "isPublic")),
        created_by_id=user_id,
    )
    db.session.add(project)
    db.session.flush()
    return project


def update_project(project_id, data):
    """Partial update. Returns (project, changed request keys)."""
    project = get_project(project_id)
    changed = []
    if "name" in data:
        project.name = required_text(data, "name", min_length=3, max_length=200)
        changed.append("name")
    if "description" in data:
        project.description = sanitize(data["description"]) or ""
        changed.append("description")
    if "status" in data:
        project.status = choice(data["status"], Project.STATUSES, "status")
        changed.append("status")
    if "priority" in data:
        project.priority = choice(data["priority"], Project.PRIORITIES, "priority")
        changed.append("priority")
    if "isPublic" in data:
        project.is_public = bool(optional_bool(data["isPublic"], "isPublic"))
        changed.append("isPublic")
    if not changed:
        raise ValidationError("Nothing to update.")
    project.updated_at = datetime.now(timezone.utc)
    db.session.flush()
    return project, changed


def cancel_project(project_id):
    project = get_project(project_id)
    project.status = "CANCELLED"
    project.updated_at = datetime.now(timezone.utc)
    db.session.flush()
    return project


# ─── Milestones ──────────────────────────────────────────────────

def list_milestones(project_id):
    get_project(project_id)
    return (
        Milestone.query
        .filter_by(project_id=project_id)
        .order_by(Milestone.due_date.asc())
        .all()
    )


def create_milestone(project_id, data):
    get_project(project_id)
    milestone = Milestone(
        project_id=project_id,
        name=required_text(data, "name", min_length=3, max_length=200),
        description=sanitize(data.get("description")) or "",
        due_date=optional_datetime(data.get("dueDate"), "dueDate"),
        status=choice(data.get("status") or "PENDING", Milestone.STATUSES, "status"),
    )
    db.session.add(milestone)
    db.session.flush()
    return milestone


def update_milestone(milestone_id, data):
    """Partial update.

    Returns:
        (milestone, completed) where completed is True if this update moved
        the milestone into COMPLETED.
    """
    milestone = db.session.get(Milestone, milestone_id)
    if milestone is None:
        raise NotFound("Milestone not found")

    was_completed = milestone.status == "COMPLETED"
    if "name" in data:
        milestone.name = required_text(data, "name", min_length=3, max_length=200)
    if "description" in data:
        milestone.description = sanitize(data["description"]) or ""
    if "dueDate" in data:
        milestone.due_date = optional_datetime(data["dueDate"], "dueDate")
    if "status" in data:
        milestone.status = choice(data["status"], Milestone.STATUSES, "status")

    completed = milestone.status == "COMPLETED" and not was_completed
    if completed:
        milestone.completed_at = datetime.now(timezone.utc)
    elif milestone.status != "COMPLETED":
        milestone.completed_at = None

    db.session.flush()
    return milestone, completed


# ─── Project updates ─────────────────────────────────────────────

def list_updates(project_id):
    get_project(project_id)
    return (
        ProjectUpdate.query
        .filter_by(project_id=project_id)
        .order_by(ProjectUpdate.created_at.desc())
        .all()
    )


def create_update(project_id, author_id, data):
    get_project(project_id)
    update = ProjectUpdate(
        project_id=project_id,
        author_id=author_id,
        title=required_text(data, "title", min_length=3, max_length=200),
        content=required_text(data, "content", min_length=10),
        type=choice(data.get("type") or "GENERAL", ProjectUpdate.TYPES, "type"),
        is_public=bool(optional_bool(data.get("isPublic"), "isPublic")),
    )
    db.session.add(update)
    db.session.flush()
    return update
