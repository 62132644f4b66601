"""Tasks blueprint — /api/tasks/*

Single-task operations, the drag-and-drop move, and comments. Every
successful mutation publishes its event on the broadcast hub after the
commit; delivery problems never affect the response.

Route Map:
  GET    /api/tasks/<id>           — Task with comments
  PATCH  /api/tasks/<id>           — Edit task fields (not column/position)
  DELETE /api/tasks/<id>           — Delete task, close the gap
  PATCH  /api/tasks/<id>/move      — Move to column/position
  GET    /api/tasks/<id>/comments  — List comments
  POST   /api/tasks/<id>/comments  — Add comment
"""

from flask import Blueprint, jsonify
from flask_login import current_user

from taskboard.blueprints import json_body
from taskboard.decorators import api_login_required, permission_required
from taskboard.extensions import db
from taskboard.realtime.events import EventType
from taskboard.realtime.hub import get_hub
from taskboard.serializers import comment_dict, task_dict
from taskboard.services import move_service, task_service
from taskboard.services.ordering import MoveIntent

tasks_bp = Blueprint("tasks", __name__, url_prefix="/api/tasks")


@tasks_bp.route("/<task_id>")
@api_login_required
def get_task(task_id):
    task = task_service.get_task(task_id)
    return jsonify(task_dict(task, include_comments=True))


@tasks_bp.route("/<task_id>", methods=["PATCH"])
@permission_required("tasks:edit")
def update_task(task_id):
    data = json_body()
    task, changed = task_service.update_task(task_id, data)
    db.session.commit()

    get_hub().publish(EventType.TASK_UPDATED, {
        "taskId": task.id,
        "projectId": task.project_id,
        "changes": changed,
    })
    return jsonify(task_dict(task))


@tasks_bp.route("/<task_id>", methods=["DELETE"])
@permission_required("tasks:delete")
def delete_task(task_id):
    project_id = task_service.delete_task(task_id, actor_id=current_user.id)
    db.session.commit()

    get_hub().publish(EventType.TASK_DELETED, {"taskId": task_id, "projectId": project_id})
    return jsonify({"message": "Task deleted successfully"})


@tasks_bp.route("/<task_id>/move", methods=["PATCH"])
@permission_required("tasks:edit")
def move_task(task_id):
    data = json_body(required=("columnId", "position"))
    intent = MoveIntent(
        task_id=task_id,
        column=data["columnId"],
        position=data["position"],
        status=data.get("newStatus"),
    )
    result = move_service.execute_move(task_id, intent, actor_id=current_user.id)
    plan = result.plan

    get_hub().publish(EventType.TASK_MOVED, {
        "taskId": task_id,
        "projectId": result.task.project_id,
        "fromColumn": plan.from_column.value,
        "toColumn": plan.to_column.value,
        "fromPosition": plan.from_position,
        "toPosition": plan.to_position,
    })
    return jsonify(task_dict(result.task))


@tasks_bp.route("/<task_id>/comments")
@api_login_required
def list_comments(task_id):
    return jsonify([comment_dict(c) for c in task_service.list_comments(task_id)])


@tasks_bp.route("/<task_id>/comments", methods=["POST"])
@api_login_required
def add_comment(task_id):
    data = json_body(required=("content",))
    comment = task_service.add_comment(task_id, current_user.id, data["content"])
    db.session.commit()

    get_hub().publish(EventType.COMMENT_ADDED, {
        "commentId": comment.id,
        "taskId": task_id,
        "projectId": comment.task.project_id,
    })
    return jsonify(comment_dict(comment)), 201
