"""Kanban lanes and the task statuses they stand for.

Columns are not stored rows: a task's column_id is one of a fixed, ordered
set of lane labels, and each lane maps to exactly one canonical status.
The mapping is checked when this module is imported, so an unmapped lane
fails at startup instead of producing an undefined status at move time.
"""

import enum


class Column(str, enum.Enum):
    TODO = "todo"
    IN_PROGRESS = "in-progress"
    IN_REVIEW = "in-review"
    DONE = "done"
    BLOCKED = "blocked"


class TaskStatus(str, enum.Enum):
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    IN_REVIEW = "IN_REVIEW"
    DONE = "DONE"
    BLOCKED = "BLOCKED"


COLUMN_STATUS = {
    Column.TODO: TaskStatus.TODO,
    Column.IN_PROGRESS: TaskStatus.IN_PROGRESS,
    Column.IN_REVIEW: TaskStatus.IN_REVIEW,
    Column.DONE: TaskStatus.DONE,
    Column.BLOCKED: TaskStatus.BLOCKED,
}

# Display order of the board, left to right.
COLUMN_ORDER = tuple(Column)

DEFAULT_COLUMN = Column.TODO
TERMINAL_COLUMN = Column.DONE


def _check_mapping(mapping):
    missing = [c.value for c in Column if c not in mapping]
    if missing:
        raise RuntimeError(f"Columns without a status mapping: {', '.join(missing)}")
    bad = [c.value for c, s in mapping.items() if not isinstance(s, TaskStatus)]
    if bad:
        raise RuntimeError(f"Columns mapped to a non-status value: {', '.join(bad)}")


_check_mapping(COLUMN_STATUS)


def parse_column(value):
    """Return the Column for a lane label, or None if it isn't one."""
    try:
        return Column(value)
    except ValueError:
        return None


def parse_status(value):
    """Return the TaskStatus for a status name, or None if it isn't one."""
    try:
        return TaskStatus(value)
    except ValueError:
        return None


def status_for(column):
    return COLUMN_STATUS[Column(column)]
