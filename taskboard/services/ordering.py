"""Ordering engine — position arithmetic for kanban moves.

Pure functions over a snapshot of (task, column, position) slots. Nothing
here touches the database: the move executor reads a fresh snapshot inside
its transaction, asks for a plan, and writes the plan back.

Positions inside one (project, column) partition are always 0..n-1. Every
plan produced here keeps that true for both the source and target column:

    same column, up:    [target, source) shift +1
    same column, down:  (source, target] shift -1
    across columns:     source column (source, end) shift -1,
                        target column [target, end) shift +1

Targets past the end of the destination column are rejected rather than
clamped; the caller must send an in-bounds index (``len(column)`` appends
when moving across columns, ``len(column) - 1`` is the last slot when
reordering inside one).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from taskboard.columns import (
    COLUMN_STATUS,
    TERMINAL_COLUMN,
    Column,
    TaskStatus,
    parse_column,
    parse_status,
)
from taskboard.errors import InvalidMoveIntent, NotFound


@dataclass(frozen=True, slots=True)
class TaskSlot:
    """Where one task currently sits."""

    task_id: str
    column: Column
    position: int
    status: Optional[TaskStatus] = None


@dataclass(frozen=True, slots=True)
class MoveIntent:
    """A requested move, as received from the client.

    Fields are left untyped on purpose: validate_intent() is what turns
    request data into a Column/TaskStatus pair.
    """

    task_id: str
    column: object
    position: object
    status: object = None


@dataclass(frozen=True, slots=True)
class PositionChange:
    task_id: str
    position: int
    column: Column


@dataclass(frozen=True, slots=True)
class StatusUpdate:
    """New status for the moved task.

    ``completed_at``/``percent_complete`` of None mean "leave as is".
    """

    status: TaskStatus
    completed_at: Optional[datetime] = None
    percent_complete: Optional[int] = None


@dataclass(frozen=True, slots=True)
class MovePlan:
    task_id: str
    from_column: Column
    from_position: int
    to_column: Column
    to_position: int
    changes: tuple[PositionChange, ...]
    status: StatusUpdate

    @property
    def is_noop(self) -> bool:
        return self.from_column == self.to_column and self.from_position == self.to_position

    def change_for(self, task_id: str) -> Optional[PositionChange]:
        for change in self.changes:
            if change.task_id == task_id:
                return change
        return None


def validate_intent(intent: MoveIntent) -> tuple[Column, Optional[TaskStatus]]:
    """Check column, position and status override; return parsed values."""
    column = parse_column(intent.column) if isinstance(intent.column, str) else None
    if column is None:
        raise InvalidMoveIntent(f"Unknown column '{intent.column}'")

    position = intent.position
    # bool is an int subclass; true/false is not a position.
    if isinstance(position, bool) or not isinstance(position, int):
        raise InvalidMoveIntent("Position must be an integer")
    if position < 0:
        raise InvalidMoveIntent("Position must not be negative")

    status = None
    if intent.status is not None:
        status = parse_status(intent.status) if isinstance(intent.status, str) else None
        if status is None:
            raise InvalidMoveIntent(f"Unknown status '{intent.status}'")

    return column, status


def column_slots(slots: Iterable[TaskSlot], column: Column) -> list[TaskSlot]:
    """Slots of one column in display order."""
    return sorted((s for s in slots if s.column == column), key=lambda s: s.position)


def next_position(slots: Iterable[TaskSlot], column: Column) -> int:
    """Position a new task appended to ``column`` should take."""
    return sum(1 for s in slots if s.column == column)


def derive_status(
    moved: TaskSlot,
    to_column: Column,
    override: Optional[TaskStatus],
    now: datetime,
) -> StatusUpdate:
    """Status the moved task ends up with.

    The lane's canonical status applies unless an override is given.
    Landing in the terminal lane (or being set to DONE) stamps the
    completion time and forces 100%. A reorder inside the terminal lane of
    a task that is already DONE keeps its original completion stamp but is
    still forced back to 100%.
    """
    status = override or COLUMN_STATUS[to_column]
    completing = to_column == TERMINAL_COLUMN or status == TaskStatus.DONE
    if not completing:
        return StatusUpdate(status=status)
    already_done = moved.column == to_column and moved.status == TaskStatus.DONE
    if already_done:
        return StatusUpdate(status=status, percent_complete=100)
    return StatusUpdate(status=status, completed_at=now, percent_complete=100)


def plan_move(slots: Iterable[TaskSlot], intent: MoveIntent, now: datetime) -> MovePlan:
    """Compute every position change needed to carry out ``intent``.

    ``slots`` must be a current snapshot of the task's project (at least the
    source and target columns). The moved task's source column/position are
    taken from the snapshot, never from the client.
    """
    slots = list(slots)
    to_column, override = validate_intent(intent)
    to_position = intent.position

    moved = next((s for s in slots if s.task_id == intent.task_id), None)
    if moved is None:
        raise NotFound("Task not found")

    from_column, from_position = moved.column, moved.position
    status = derive_status(moved, to_column, override, now)

    changes = []
    if from_column == to_column:
        size = len(column_slots(slots, from_column))
        if to_position > size - 1:
            raise InvalidMoveIntent(
                f"Position {to_position} is out of range for column '{to_column.value}' "
                f"(0..{size - 1})"
            )
        if to_position < from_position:
            for s in column_slots(slots, from_column):
                if to_position <= s.position < from_position:
                    changes.append(PositionChange(s.task_id, s.position + 1, from_column))
        elif to_position > from_position:
            for s in column_slots(slots, from_column):
                if from_position < s.position <= to_position:
                    changes.append(PositionChange(s.task_id, s.position - 1, from_column))
    else:
        size = len(column_slots(slots, to_column))
        if to_position > size:
            raise InvalidMoveIntent(
                f"Position {to_position} is out of range for column '{to_column.value}' "
                f"(0..{size})"
            )
        for s in column_slots(slots, from_column):
            if s.position > from_position:
                changes.append(PositionChange(s.task_id, s.position - 1, from_column))
        for s in column_slots(slots, to_column):
            if s.position >= to_position:
                changes.append(PositionChange(s.task_id, s.position + 1, to_column))

    if from_column != to_column or from_position != to_position:
        changes.append(PositionChange(moved.task_id, to_position, to_column))

    return MovePlan(
        task_id=moved.task_id,
        from_column=from_column,
        from_position=from_position,
        to_column=to_column,
        to_position=to_position,
        changes=tuple(changes),
        status=status,
    )


def plan_removal(slots: Iterable[TaskSlot], task_id: str) -> tuple[PositionChange, ...]:
    """Position changes that close the gap left by deleting ``task_id``."""
    slots = list(slots)
    removed = next((s for s in slots if s.task_id == task_id), None)
    if removed is None:
        raise NotFound("Task not found")
    return tuple(
        PositionChange(s.task_id, s.position - 1, s.column)
        for s in column_slots(slots, removed.column)
        if s.position > removed.position
    )


def apply_changes(slots: Iterable[TaskSlot], changes: Iterable[PositionChange]) -> list[TaskSlot]:
    """Return the snapshot with ``changes`` applied (status untouched)."""
    by_task = {c.task_id: c for c in changes}
    result = []
    for s in slots:
        change = by_task.get(s.task_id)
        if change is None:
            result.append(s)
        else:
            result.append(TaskSlot(s.task_id, change.column, change.position, s.status))
    return result


def find_gaps(slots: Iterable[TaskSlot]) -> dict[Column, list[int]]:
    """Columns whose positions are not exactly 0..n-1, with their positions."""
    by_column: dict[Column, list[int]] = {}
    for s in slots:
        by_column.setdefault(s.column, []).append(s.position)
    return {
        column: sorted(positions)
        for column, positions in by_column.items()
        if sorted(positions) != list(range(len(positions)))
    }
