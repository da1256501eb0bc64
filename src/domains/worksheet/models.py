# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enums and value types for the worksheet domain.

Values are stored lowercase. Lookups are case-insensitive and accept
hyphens for underscores, so "ACTIVITY", "in-progress" and "in_progress"
all resolve to a member.
"""

from dataclasses import dataclass
from enum import Enum


class _LenientEnum(str, Enum):
    """String enum tolerant to case and hyphen variations."""

    @classmethod
    def _missing_(cls, value: object) -> "_LenientEnum | None":
        if isinstance(value, str):
            normalized = value.strip().lower().replace("-", "_")
            for member in cls:
                if member.value == normalized:
                    return member
        return None


class WorksheetStatus(_LenientEnum):
    """Worksheet lifecycle states.

    - GENERATING: in flight, content not yet usable
    - DRAFT: private and editable
    - PUBLISHED: discoverable and assignable
    - FLAGGED: restricted pending moderation
    - ARCHIVED: retired, read-only
    - FAILED: generation gave up, see generation_error
    """

    DRAFT = "draft"
    GENERATING = "generating"
    PUBLISHED = "published"
    ARCHIVED = "archived"
    FLAGGED = "flagged"
    FAILED = "failed"


class LifecycleAction(_LenientEnum):
    """Actions accepted by the worksheet state machine."""

    GENERATION_SUCCEEDED = "generation_succeeded"
    GENERATION_FAILED = "generation_failed"
    PUBLISH = "publish"
    UNPUBLISH = "unpublish"
    FLAG = "flag"
    RESTORE = "restore"
    RETIRE = "retire"
    ARCHIVE = "archive"


class WorksheetType(_LenientEnum):
    """Kinds of worksheet the generator can produce."""

    ACTIVITY = "activity"
    VISUAL_SUPPORT = "visual_support"
    STRUCTURED_PLAN = "structured_plan"
    PROGRESS_TRACKER = "progress_tracker"


class Difficulty(_LenientEnum):
    """Difficulty tiers, ordered easiest first."""

    FOUNDATIONAL = "foundational"
    DEVELOPING = "developing"
    STRENGTHENING = "strengthening"


DIFFICULTY_ORDER: tuple[Difficulty, ...] = (
    Difficulty.FOUNDATIONAL,
    Difficulty.DEVELOPING,
    Difficulty.STRENGTHENING,
)


class ColorMode(_LenientEnum):
    """Print color modes."""

    FULL_COLOR = "full_color"
    GRAYSCALE = "grayscale"
    LINE_ART = "line_art"


class DataSource(_LenientEnum):
    """Where the generation inputs come from."""

    MANUAL = "manual"
    SCREENING = "screening"
    UPLOADED_REPORT = "uploaded_report"
    IEP_GOALS = "iep_goals"
    SESSION_NOTES = "session_notes"


class ImageStatus(_LenientEnum):
    """Generation sub-status of a single worksheet image."""

    PENDING = "pending"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


class AssignmentStatus(_LenientEnum):
    """Stored assignment states, in strict forward order."""

    ASSIGNED = "assigned"
    VIEWED = "viewed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


ASSIGNMENT_ORDER: tuple[AssignmentStatus, ...] = (
    AssignmentStatus.ASSIGNED,
    AssignmentStatus.VIEWED,
    AssignmentStatus.IN_PROGRESS,
    AssignmentStatus.COMPLETED,
)

# Read-time only, never stored
OVERDUE = "overdue"


class HelpLevel(_LenientEnum):
    """How much adult help the child needed."""

    INDEPENDENT = "independent"
    MINIMAL_PROMPTS = "minimal_prompts"
    MODERATE_HELP = "moderate_help"
    FULL_ASSISTANCE = "full_assistance"


class CompletionQuality(_LenientEnum):
    """Caregiver's judgement of how well the difficulty fit."""

    TOO_EASY = "too_easy"
    JUST_RIGHT = "just_right"
    CHALLENGING = "challenging"
    TOO_HARD = "too_hard"


class FlagReason(_LenientEnum):
    """Reasons a worksheet can be reported."""

    INAPPROPRIATE = "inappropriate"
    INACCURATE = "inaccurate"
    HARMFUL = "harmful"
    SPAM = "spam"
    OTHER = "other"


class FlagStatus(_LenientEnum):
    """Moderation flag states. Only PENDING is unresolved."""

    PENDING = "pending"
    REVIEWED = "reviewed"
    DISMISSED = "dismissed"
    ACTIONED = "actioned"


class UserType(_LenientEnum):
    """Caller roles supplied by the identity service."""

    PARENT = "parent"
    THERAPIST = "therapist"
    EDUCATOR = "educator"
    ADMIN = "admin"
    MODERATOR = "moderator"


ASSIGNER_TYPES = frozenset({UserType.THERAPIST, UserType.EDUCATOR, UserType.ADMIN})
MODERATOR_TYPES = frozenset({UserType.MODERATOR, UserType.ADMIN})


@dataclass(frozen=True)
class Caller:
    """Identity of the user performing an operation.

    Attributes:
        id: User ID from the identity service.
        user_type: Role used for gating.
    """

    id: str
    user_type: UserType

    @property
    def is_moderator(self) -> bool:
        return self.user_type in MODERATOR_TYPES

    @property
    def can_assign(self) -> bool:
        return self.user_type in ASSIGNER_TYPES
