# Models package: import all models here so Alembic can discover them.

from taskboard.models.user import User  # noqa: F401
from taskboard.models.project import Milestone, Project, ProjectUpdate  # noqa: F401
from taskboard.models.task import Task, TaskComment  # noqa: F401
from taskboard.models.audit import AuditEvent  # noqa: F401
