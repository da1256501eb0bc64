# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the worksheet and assignment state machines."""

from datetime import datetime, timedelta, timezone

import pytest

from src.domains.worksheet.errors import StateConflictError
from src.domains.worksheet.lifecycle import (
    READ_ONLY_STATUSES,
    UNASSIGNABLE_STATUSES,
    advance_assignment,
    can_transition,
    display_status,
    transition,
)
from src.domains.worksheet.models import (
    AssignmentStatus,
    LifecycleAction,
    WorksheetStatus,
)

S = WorksheetStatus
A = LifecycleAction


class TestTransition:
    """Tests for worksheet lifecycle transitions."""

    @pytest.mark.parametrize(
        ("current", "action", "expected"),
        [
            (S.GENERATING, A.GENERATION_SUCCEEDED, S.DRAFT),
            (S.GENERATING, A.GENERATION_FAILED, S.FAILED),
            (S.DRAFT, A.PUBLISH, S.PUBLISHED),
            (S.PUBLISHED, A.UNPUBLISH, S.DRAFT),
            (S.PUBLISHED, A.FLAG, S.FLAGGED),
            (S.DRAFT, A.FLAG, S.FLAGGED),
            (S.FLAGGED, A.RESTORE, S.PUBLISHED),
            (S.FLAGGED, A.RETIRE, S.ARCHIVED),
            (S.DRAFT, A.ARCHIVE, S.ARCHIVED),
            (S.FAILED, A.ARCHIVE, S.ARCHIVED),
        ],
    )
    def test_legal_transitions(
        self,
        current: WorksheetStatus,
        action: LifecycleAction,
        expected: WorksheetStatus,
    ) -> None:
        new_status, changed = transition(current, action)

        assert new_status == expected
        assert changed is True

    @pytest.mark.parametrize(
        ("current", "action"),
        [
            (S.GENERATING, A.PUBLISH),
            (S.FAILED, A.PUBLISH),
            (S.ARCHIVED, A.PUBLISH),
            (S.FLAGGED, A.PUBLISH),
            (S.DRAFT, A.UNPUBLISH),
            (S.DRAFT, A.RESTORE),
            (S.PUBLISHED, A.RETIRE),
            (S.DRAFT, A.GENERATION_SUCCEEDED),
            (S.ARCHIVED, A.FLAG),
            (S.FLAGGED, A.ARCHIVE),
        ],
    )
    def test_illegal_transitions_raise_state_conflict(
        self,
        current: WorksheetStatus,
        action: LifecycleAction,
    ) -> None:
        with pytest.raises(StateConflictError):
            transition(current, action)

    @pytest.mark.parametrize(
        ("current", "action"),
        [
            (S.PUBLISHED, A.PUBLISH),
            (S.DRAFT, A.UNPUBLISH),
            (S.ARCHIVED, A.ARCHIVE),
        ],
    )
    def test_idempotent_actions_report_no_change(
        self,
        current: WorksheetStatus,
        action: LifecycleAction,
    ) -> None:
        new_status, changed = transition(current, action)

        assert new_status == current
        assert changed is False

    def test_accepts_raw_strings_in_any_case(self) -> None:
        new_status, changed = transition("DRAFT", "publish")

        assert new_status == S.PUBLISHED
        assert changed is True

    def test_error_message_names_status(self) -> None:
        with pytest.raises(StateConflictError) as exc_info:
            transition(S.GENERATING, A.PUBLISH)

        assert "generating" in exc_info.value.message
        assert exc_info.value.kind == "state_conflict"

    def test_can_transition_does_not_raise(self) -> None:
        assert can_transition(S.PUBLISHED, A.FLAG) is True
        assert can_transition(S.ARCHIVED, A.FLAG) is False


class TestStatusSets:
    """Tests for derived status groups."""

    def test_unassignable_statuses(self) -> None:
        assert UNASSIGNABLE_STATUSES == {S.ARCHIVED, S.GENERATING, S.FAILED, S.FLAGGED}

    def test_drafts_remain_editable(self) -> None:
        assert S.DRAFT not in READ_ONLY_STATUSES
        assert S.PUBLISHED not in READ_ONLY_STATUSES
        assert S.ARCHIVED in READ_ONLY_STATUSES


class TestAdvanceAssignment:
    """Tests for assignment progress validation."""

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (AssignmentStatus.ASSIGNED, AssignmentStatus.VIEWED),
            (AssignmentStatus.VIEWED, AssignmentStatus.IN_PROGRESS),
        ],
    )
    def test_next_adjacent_status_is_accepted(
        self,
        current: AssignmentStatus,
        target: AssignmentStatus,
    ) -> None:
        assert advance_assignment(current, target) == (target, True)

    def test_same_status_is_a_no_op(self) -> None:
        assert advance_assignment("viewed", "VIEWED") == (AssignmentStatus.VIEWED, False)

    def test_skipping_is_rejected(self) -> None:
        with pytest.raises(StateConflictError, match="skip"):
            advance_assignment(AssignmentStatus.ASSIGNED, AssignmentStatus.IN_PROGRESS)

    def test_backwards_is_rejected(self) -> None:
        with pytest.raises(StateConflictError, match="back"):
            advance_assignment(AssignmentStatus.IN_PROGRESS, AssignmentStatus.VIEWED)

    def test_completed_only_through_completion_recording(self) -> None:
        with pytest.raises(StateConflictError, match="recording a completion"):
            advance_assignment(AssignmentStatus.IN_PROGRESS, AssignmentStatus.COMPLETED)

    def test_completed_is_terminal(self) -> None:
        with pytest.raises(StateConflictError, match="already completed"):
            advance_assignment(AssignmentStatus.COMPLETED, AssignmentStatus.IN_PROGRESS)

    def test_hyphenated_input_is_accepted(self) -> None:
        assert advance_assignment("viewed", "in-progress") == (AssignmentStatus.IN_PROGRESS, True)


class TestDisplayStatus:
    """Tests for the read-time overdue status."""

    now = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)

    def test_past_due_is_overdue(self) -> None:
        due = self.now - timedelta(days=1)

        assert display_status(AssignmentStatus.IN_PROGRESS, due, self.now) == "overdue"

    def test_completed_is_never_overdue(self) -> None:
        due = self.now - timedelta(days=1)

        assert display_status(AssignmentStatus.COMPLETED, due, self.now) == "completed"

    def test_future_due_keeps_stored_status(self) -> None:
        due = self.now + timedelta(hours=1)

        assert display_status(AssignmentStatus.VIEWED, due, self.now) == "viewed"

    def test_no_due_date(self) -> None:
        assert display_status(AssignmentStatus.ASSIGNED, None, self.now) == "assigned"

    def test_naive_due_date_is_treated_as_utc(self) -> None:
        due = datetime(2025, 2, 28, 12, 0)

        assert display_status(AssignmentStatus.ASSIGNED, due, self.now) == "overdue"
