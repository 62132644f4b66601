"""JSON shapes returned by the API (camelCase keys, ISO-8601 dates)."""


def _iso(value):
    return value.isoformat() if value else None


def user_summary(user):
    return user.summary() if user is not None else None


def task_dict(task, include_comments=False):
    """Serialize a Task with its project and assignee summaries."""
    result = {
        "id": task.id,
        "projectId": task.project_id,
        "title": task.title,
        "description": task.description or "",
        "columnId": task.column_id,
        "status": task.status,
        "position": task.position,
        "priority": task.priority,
        "dueDate": _iso(task.due_date),
        "percentComplete": task.percent_complete,
        "completedAt": _iso(task.completed_at),
        "estimatedHours": task.estimated_hours,
        "actualHours": task.actual_hours,
        "milestoneId": task.milestone_id,
        "assignedToId": task.assigned_to_id,
        "createdById": task.created_by_id,
        "createdAt": _iso(task.created_at),
        "updatedAt": _iso(task.updated_at),
        "project": (
            {"id": task.project.id, "name": task.project.name}
            if task.project is not None else None
        ),
        "assignedTo": user_summary(task.assigned_to),
    }
    if include_comments:
        result["comments"] = [comment_dict(c) for c in task.comments]
    return result


def comment_dict(comment):
    return {
        "id": comment.id,
        "taskId": comment.task_id,
        "content": comment.content,
        "author": user_summary(comment.author),
        "createdAt": _iso(comment.created_at),
    }


def project_dict(project):
    return {
        "id": project.id,
        "name": project.name,
        "description": project.description or "",
        "status": project.status,
        "priority": project.priority,
        "isPublic": bool(project.is_public),
        "createdById": project.created_by_id,
        "createdAt": _iso(project.created_at),
        "updatedAt": _iso(project.updated_at),
    }


def milestone_dict(milestone):
    return {
        "id": milestone.id,
        "projectId": milestone.project_id,
        "name": milestone.name,
        "description": milestone.description or "",
        "dueDate": _iso(milestone.due_date),
        "status": milestone.status,
        "completedAt": _iso(milestone.completed_at),
        "createdAt": _iso(milestone.created_at),
    }


def update_dict(update):
    return {
        "id": update.id,
        "projectId": update.project_id,
        "title": update.title,
        "content": update.content,
        "type": update.type,
        "isPublic": bool(update.is_public),
        "author": user_summary(update.author),
        "createdAt": _iso(update.created_at),
    }
