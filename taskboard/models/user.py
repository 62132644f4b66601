"""User model.

Stores authentication credentials, profile info and the board role.
Flask-Login integration via UserMixin.
"""

import uuid

from flask_login import UserMixin

from taskboard.extensions import db


class User(UserMixin, db.Model):
    __tablename__ = "users"

    ROLES = [
        "SUPER_ADMIN",
        "ADMIN",
        "PROJECT_MANAGER",
        "TEAM_MEMBER",
        "STAKEHOLDER",
    ]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(255))
    avatar = db.Column(db.String(500))
    role = db.Column(
        db.String(50), default="TEAM_MEMBER", nullable=False
    )  # one of ROLES
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # --- Relationships ---
    assigned_tasks = db.relationship(
        "Task",
        foreign_keys="Task.assigned_to_id",
        back_populates="assigned_to",
        lazy="dynamic",
    )
    audit_events = db.relationship(
        "AuditEvent", back_populates="actor", lazy="dynamic"
    )

    def summary(self):
        """The small user shape embedded in task and comment payloads."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "avatar": self.avatar,
        }

    def __repr__(self):
        return f"<User {self.email}>"
