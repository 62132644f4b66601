"""Project models.

- Project: top-level container for tasks, milestones and updates.
- Milestone: dated checkpoint inside a project.
- ProjectUpdate: narrative status post on the project's feed.

Deleting a project is a soft cancel (status -> CANCELLED) so tasks and
history stay readable.
"""

import uuid

from taskboard.extensions import db


class Project(db.Model):
    __tablename__ = "projects"

    STATUSES = ["PLANNING", "IN_PROGRESS", "ON_HOLD", "COMPLETED", "CANCELLED"]
    PRIORITIES = ["LOW", "MEDIUM", "HIGH", "URGENT"]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, default="")
    status = db.Column(db.String(50), default="PLANNING", nullable=False)
    priority = db.Column(db.String(50), default="MEDIUM", nullable=False)
    is_public = db.Column(db.Boolean, default=False)
    created_by_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=True
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
    tasks = db.relationship(
        "Task",
        back_populates="project",
        lazy="dynamic",
        cascade="all, delete-orphan",
    )
    milestones = db.relationship(
        "Milestone",
        back_populates="project",
        lazy="dynamic",
        cascade="all, delete-orphan",
    )
    updates = db.relationship(
        "ProjectUpdate",
        back_populates="project",
        lazy="dynamic",
        cascade="all, delete-orphan",
    )
    created_by = db.relationship("User", foreign_keys=[created_by_id])

    def __repr__(self):
        return f"<Project {self.name}>"


class Milestone(db.Model):
    __tablename__ = "milestones"

    STATUSES = ["PENDING", "IN_PROGRESS", "COMPLETED", "OVERDUE"]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    project_id = db.Column(
        db.String(36),
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, default="")
    due_date = db.Column(db.DateTime(timezone=True), nullable=True)
    status = db.Column(db.String(50), default="PENDING", nullable=False)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    project = db.relationship("Project", back_populates="milestones")
    tasks = db.relationship("Task", back_populates="milestone", lazy="dynamic")

    def __repr__(self):
        return f"<Milestone {self.name}>"


class ProjectUpdate(db.Model):
    __tablename__ = "project_updates"

    TYPES = ["GENERAL", "MILESTONE", "ACHIEVEMENT", "CHALLENGE", "FINANCIAL"]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    project_id = db.Column(
        db.String(36),
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )
    author_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=True
    )
    title = db.Column(db.String(200), nullable=False)
    content = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(50), default="GENERAL", nullable=False)
    is_public = db.Column(db.Boolean, default=False)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    project = db.relationship("Project", back_populates="updates")
    author = db.relationship("User", foreign_keys=[author_id])

    def __repr__(self):
        return f"<ProjectUpdate {self.title[:40]}>"
