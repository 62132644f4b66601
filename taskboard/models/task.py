"""Task models.

- Task: a card on the board. (project_id, column_id, position) places it;
  positions inside one (project, column) are always 0..n-1.
- TaskComment: discussion thread on a task.

column_id/position are only ever written by the services in
taskboard.services.move_service and taskboard.services.task_service,
which keep the contiguity invariant.
"""

import uuid

from taskboard.extensions import db


class Task(db.Model):
    __tablename__ = "tasks"
    __table_args__ = (
        db.Index("ix_tasks_project_column_position", "project_id", "column_id", "position"),
    )

    PRIORITIES = ["LOW", "MEDIUM", "HIGH", "URGENT"]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    project_id = db.Column(
        db.String(36),
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, default="")
    column_id = db.Column(db.String(50), default="todo", nullable=False)
    status = db.Column(db.String(50), default="TODO", nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)
    priority = db.Column(db.String(50), default="MEDIUM", nullable=False)
    due_date = db.Column(db.DateTime(timezone=True), nullable=True)
    percent_complete = db.Column(db.Integer, default=0, nullable=False)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    estimated_hours = db.Column(db.Float, nullable=True)
    actual_hours = db.Column(db.Float, nullable=True)
    assigned_to_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=True
    )
    created_by_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=True
    )
    milestone_id = db.Column(
        db.String(36), db.ForeignKey("milestones.id"), nullable=True
    )
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # --- Relationships ---
    project = db.relationship("Project", back_populates="tasks")
    assigned_to = db.relationship(
        "User", foreign_keys=[assigned_to_id], back_populates="assigned_tasks"
    )
    created_by = db.relationship("User", foreign_keys=[created_by_id])
    milestone = db.relationship("Milestone", back_populates="tasks")
    comments = db.relationship(
        "TaskComment",
        back_populates="task",
        lazy="dynamic",
        cascade="all, delete-orphan",
        order_by="TaskComment.created_at.desc()",
    )

    def __repr__(self):
        return f"<Task {self.title[:40]} {self.column_id}:{self.position}>"


class TaskComment(db.Model):
    __tablename__ = "task_comments"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    task_id = db.Column(
        db.String(36),
        db.ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False,
    )
    author_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=True
    )
    content = db.Column(db.Text, nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    task = db.relationship("Task", back_populates="comments")
    author = db.relationship("User", foreign_keys=[author_id])

    def __repr__(self):
        return f"<TaskComment {self.content[:40]}>"
