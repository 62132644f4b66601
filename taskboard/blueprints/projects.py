"""Projects blueprint — /api/projects/*, /api/milestones/*

Projects, their task board, milestones and status updates. Mutations
commit, then publish their event on the broadcast hub.

Route Map:
  GET    /api/projects                  — List projects (?status=...)
  POST   /api/projects                  — Create project
  GET    /api/projects/<id>             — Project detail
  PATCH  /api/projects/<id>             — Update project
  DELETE /api/projects/<id>             — Cancel project
  GET    /api/projects/<id>/tasks       — Board tasks (column, position order)
  POST   /api/projects/<id>/tasks       — Create task at end of its column
  GET    /api/projects/<id>/milestones  — List milestones
  POST   /api/projects/<id>/milestones  — Create milestone
  PATCH  /api/milestones/<id>           — Update / complete milestone
  GET    /api/projects/<id>/updates     — List project updates
  POST   /api/projects/<id>/updates     — Post project update
"""

from flask import Blueprint, jsonify, request
from flask_login import current_user

from taskboard.blueprints import json_body
from taskboard.decorators import api_login_required, permission_required
from taskboard.errors import Unauthorized
from taskboard.extensions import db
from taskboard.permissions import can_edit_project
from taskboard.realtime.events import EventType
from taskboard.realtime.hub import get_hub
from taskboard.serializers import milestone_dict, project_dict, task_dict, update_dict
from taskboard.services import project_service, task_service

projects_bp = Blueprint("projects", __name__, url_prefix="/api")


def _require_project_editor(project):
    if not can_edit_project(current_user.role, project.created_by_id == current_user.id):
        raise Unauthorized()


# ─── Projects ────────────────────────────────────────────────────

@projects_bp.route("/projects")
@api_login_required
def list_projects():
    projects = project_service.list_projects(request.args.getlist("status"))
    return jsonify([project_dict(p) for p in projects])


@projects_bp.route("/projects", methods=["POST"])
@permission_required("projects:create")
def create_project():
    project = project_service.create_project(current_user.id, json_body(required=("name",)))
    db.session.commit()

    get_hub().publish(EventType.PROJECT_CREATED, {"projectId": project.id})
    return jsonify(project_dict(project)), 201


@projects_bp.route("/projects/<project_id>")
@api_login_required
def get_project(project_id):
    return jsonify(project_dict(project_service.get_project(project_id)))


@projects_bp.route("/projects/<project_id>", methods=["PATCH"])
@api_login_required
def update_project(project_id):
    _require_project_editor(project_service.get_project(project_id))
    project, changed = project_service.update_project(project_id, json_body())
    db.session.commit()

    get_hub().publish(EventType.PROJECT_UPDATED, {"projectId": project.id, "changes": changed})
    return jsonify(project_dict(project))


@projects_bp.route("/projects/<project_id>", methods=["DELETE"])
@permission_required("projects:delete")
def delete_project(project_id):
    project_service.cancel_project(project_id)
    db.session.commit()

    get_hub().publish(EventType.PROJECT_DELETED, {"projectId": project_id})
    return jsonify({"message": "Project cancelled successfully"})


# ─── Board tasks ─────────────────────────────────────────────────

@projects_bp.route("/projects/<project_id>/tasks")
@api_login_required
def list_tasks(project_id):
    return jsonify([task_dict(t) for t in task_service.list_project_tasks(project_id)])


@projects_bp.route("/projects/<project_id>/tasks", methods=["POST"])
@permission_required("tasks:create")
def create_task(project_id):
    data = json_body(required=("title",))
    task = task_service.create_task(project_id, current_user.id, data)
    db.session.commit()

    get_hub().publish(EventType.TASK_CREATED, {"taskId": task.id, "projectId": project_id})
    return jsonify(task_dict(task)), 201


# ─── Milestones ──────────────────────────────────────────────────

@projects_bp.route("/projects/<project_id>/milestones")
@api_login_required
def list_milestones(project_id):
    return jsonify([milestone_dict(m) for m in project_service.list_milestones(project_id)])


@projects_bp.route("/projects/<project_id>/milestones", methods=["POST"])
@permission_required("tasks:create")
def create_milestone(project_id):
    milestone = project_service.create_milestone(project_id, json_body(required=("name",)))
    db.session.commit()

    get_hub().publish(EventType.MILESTONE_CREATED, {
        "milestoneId": milestone.id,
        "projectId": project_id,
    })
    return jsonify(milestone_dict(milestone)), 201


@projects_bp.route("/milestones/<milestone_id>", methods=["PATCH"])
@permission_required("tasks:edit")
def update_milestone(milestone_id):
    milestone, completed = project_service.update_milestone(milestone_id, json_body())
    db.session.commit()

    event_type = EventType.MILESTONE_COMPLETED if completed else EventType.MILESTONE_UPDATED
    get_hub().publish(event_type, {
        "milestoneId": milestone.id,
        "projectId": milestone.project_id,
    })
    return jsonify(milestone_dict(milestone))


# ─── Project updates ─────────────────────────────────────────────

@projects_bp.route("/projects/<project_id>/updates")
@api_login_required
def list_updates(project_id):
    return jsonify([update_dict(u) for u in project_service.list_updates(project_id)])


@projects_bp.route("/projects/<project_id>/updates", methods=["POST"])
@api_login_required
def create_update(project_id):
    _require_project_editor(project_service.get_project(project_id))
    update = project_service.create_update(
        project_id, current_user.id, json_body(required=("title", "content"))
    )
    db.session.commit()

    get_hub().publish(EventType.PROJECT_UPDATE_CREATED, {
        "updateId": update.id,
        "projectId": project_id,
    })
    return jsonify(update_dict(update)), 201
