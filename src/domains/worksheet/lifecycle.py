# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Worksheet and assignment state machines.

All status changes go through the two validating functions here:

- transition(): worksheet lifecycle, driven by a LifecycleAction
- advance_assignment(): assignment progress through a bare status update

Recording a completion bypasses advance_assignment() on purpose; it is the
only path allowed to jump straight to COMPLETED (see completion.py).

Example:
    >>> new_status, changed = transition(WorksheetStatus.DRAFT, LifecycleAction.PUBLISH)
    >>> new_status, changed
    (<WorksheetStatus.PUBLISHED: 'published'>, True)
"""

from datetime import datetime
from typing import NamedTuple

from src.domains.worksheet.errors import StateConflictError
from src.domains.worksheet.models import (
    ASSIGNMENT_ORDER,
    OVERDUE,
    AssignmentStatus,
    LifecycleAction,
    WorksheetStatus,
)
from src.utils.datetime import is_past, utc_now

S = WorksheetStatus
A = LifecycleAction


class _Rule(NamedTuple):
    sources: frozenset[WorksheetStatus]
    target: WorksheetStatus


TRANSITIONS: dict[LifecycleAction, _Rule] = {
    A.GENERATION_SUCCEEDED: _Rule(frozenset({S.GENERATING}), S.DRAFT),
    A.GENERATION_FAILED: _Rule(frozenset({S.GENERATING}), S.FAILED),
    A.PUBLISH: _Rule(frozenset({S.DRAFT}), S.PUBLISHED),
    A.UNPUBLISH: _Rule(frozenset({S.PUBLISHED}), S.DRAFT),
    A.FLAG: _Rule(frozenset({S.PUBLISHED, S.DRAFT}), S.FLAGGED),
    A.RESTORE: _Rule(frozenset({S.FLAGGED}), S.PUBLISHED),
    A.RETIRE: _Rule(frozenset({S.FLAGGED}), S.ARCHIVED),
    # Flagged worksheets leave FLAGGED only through RESTORE or RETIRE
    A.ARCHIVE: _Rule(frozenset(S) - {S.FLAGGED}, S.ARCHIVED),
}

# Re-applying these to a worksheet already in the target state is a no-op
_IDEMPOTENT_ACTIONS = frozenset({A.PUBLISH, A.UNPUBLISH, A.ARCHIVE})

# Statuses in which a worksheet is visible to the community
PUBLIC_STATUSES = frozenset({S.PUBLISHED})

# Statuses from which new assignments may not be created
UNASSIGNABLE_STATUSES = frozenset({S.ARCHIVED, S.GENERATING, S.FAILED, S.FLAGGED})

# Statuses in which content edits are rejected
READ_ONLY_STATUSES = frozenset({S.ARCHIVED, S.GENERATING, S.FAILED})


def transition(
    current: WorksheetStatus | str,
    action: LifecycleAction | str,
) -> tuple[WorksheetStatus, bool]:
    """Apply a lifecycle action to a worksheet status.

    Args:
        current: Current worksheet status.
        action: Action to apply.

    Returns:
        Tuple of (new status, changed). ``changed`` is False when the
        action was an idempotent re-application.

    Raises:
        StateConflictError: If the action is illegal from ``current``.
    """
    current = WorksheetStatus(current)
    action = LifecycleAction(action)
    rule = TRANSITIONS[action]

    if action in _IDEMPOTENT_ACTIONS and current == rule.target:
        return current, False

    if current not in rule.sources:
        raise StateConflictError(
            f"Cannot {action.value.replace('_', ' ')} a worksheet in status '{current.value}'"
        )

    return rule.target, True


def can_transition(current: WorksheetStatus | str, action: LifecycleAction | str) -> bool:
    """Check whether an action is legal without raising."""
    try:
        transition(current, action)
    except StateConflictError:
        return False
    return True


def advance_assignment(
    current: AssignmentStatus | str,
    target: AssignmentStatus | str,
) -> tuple[AssignmentStatus, bool]:
    """Validate a bare assignment status update.

    Only the next adjacent status is accepted. COMPLETED is never accepted
    here; completion goes through completion recording.

    Args:
        current: Stored assignment status.
        target: Requested status.

    Returns:
        Tuple of (new status, changed).

    Raises:
        StateConflictError: On backwards, skipping, or completing moves.
    """
    current = AssignmentStatus(current)
    target = AssignmentStatus(target)

    if current == target:
        return current, False

    if current == AssignmentStatus.COMPLETED:
        raise StateConflictError("Assignment is already completed")

    if target == AssignmentStatus.COMPLETED:
        raise StateConflictError(
            "Assignments can only be completed by recording a completion"
        )

    current_index = ASSIGNMENT_ORDER.index(current)
    target_index = ASSIGNMENT_ORDER.index(target)

    if target_index < current_index:
        raise StateConflictError(
            f"Cannot move assignment back from '{current.value}' to '{target.value}'"
        )
    if target_index != current_index + 1:
        raise StateConflictError(
            f"Cannot skip from '{current.value}' to '{target.value}'"
        )

    return target, True


def display_status(
    status: AssignmentStatus | str,
    due_date: datetime | None,
    now: datetime | None = None,
) -> str:
    """Derive the status shown to callers.

    ``overdue`` is computed here and never stored.

    Args:
        status: Stored assignment status.
        due_date: Optional due date.
        now: Reference time, defaults to the current UTC time.

    Returns:
        The stored status value, or "overdue".
    """
    status = AssignmentStatus(status)
    if status != AssignmentStatus.COMPLETED and is_past(due_date, now or utc_now()):
        return OVERDUE
    return status.value
