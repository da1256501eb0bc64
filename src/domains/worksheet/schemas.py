# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Request and response models for the worksheet domain.

Request models validate shape and ranges. Cross-field rules that depend on
the declared data source live in the generation coordinator, which raises
the domain ValidationError.
"""

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from src.domains.worksheet.models import (
    AssignmentStatus,
    ColorMode,
    CompletionQuality,
    DataSource,
    Difficulty,
    FlagReason,
    FlagStatus,
    HelpLevel,
    ImageStatus,
    WorksheetStatus,
    WorksheetType,
)


# =============================================================================
# Generation inputs, one per data source
# =============================================================================


class ManualInput(BaseModel):
    """Child details typed in by the professional."""

    child_age_months: int = Field(ge=0, le=216, description="Child age in months")
    child_name: str | None = Field(default=None, max_length=100)
    concerns: list[str] = Field(default_factory=list, description="Observed concerns")
    developmental_notes: str | None = Field(default=None, max_length=5000)


class ScreeningInput(BaseModel):
    """Reference to a completed screening assessment."""

    assessment_id: str = Field(description="Screening assessment ID")
    child_id: str = Field(description="Screened child ID")


class UploadedReportInput(BaseModel):
    """An uploaded clinical report."""

    report_url: str = Field(description="Storage URL of the uploaded report")
    extracted_text: str | None = Field(default=None, description="Text extracted from the report")


class IepGoalsInput(BaseModel):
    """IEP goals selected from a case."""

    case_id: str
    goal_ids: list[str] = Field(min_length=1)


class SessionNotesInput(BaseModel):
    """Therapy session notes selected from a case."""

    case_id: str
    session_ids: list[str] = Field(min_length=1)


class GenerateWorksheetRequest(BaseModel):
    """Request to generate a new worksheet.

    Exactly the input matching ``data_source`` must be supplied; the
    coordinator rejects a mismatch.
    """

    data_source: DataSource
    type: WorksheetType
    sub_type: str | None = Field(default=None, max_length=50)
    title: str | None = Field(default=None, max_length=255)
    target_domains: list[str] = Field(min_length=1, description="Developmental domains")
    difficulty: Difficulty = Difficulty.DEVELOPING
    color_mode: ColorMode = ColorMode.FULL_COLOR
    interests: list[str] = Field(default_factory=list)
    duration: str | None = Field(default=None, description="Intended duration, e.g. '1_week'")
    setting: str | None = Field(default=None, description="home, clinic or school")
    special_instructions: str | None = Field(default=None, max_length=2000)
    condition_tags: list[str] = Field(default_factory=list)
    age_range_min: int | None = Field(default=None, ge=0)
    age_range_max: int | None = Field(default=None, ge=0)
    child_id: str | None = None
    case_id: str | None = None

    manual_input: ManualInput | None = None
    screening_input: ScreeningInput | None = None
    uploaded_report_input: UploadedReportInput | None = None
    iep_goals_input: IepGoalsInput | None = None
    session_notes_input: SessionNotesInput | None = None

    @field_validator("target_domains")
    @classmethod
    def normalize_domains(cls, value: list[str]) -> list[str]:
        """Uppercase domain codes and drop duplicates, keeping order."""
        seen: list[str] = []
        for domain in value:
            code = domain.strip().upper()
            if code and code not in seen:
                seen.append(code)
        if not seen:
            raise ValueError("At least one target domain is required")
        return seen

    @model_validator(mode="after")
    def check_age_range(self) -> "GenerateWorksheetRequest":
        if (
            self.age_range_min is not None
            and self.age_range_max is not None
            and self.age_range_min > self.age_range_max
        ):
            raise ValueError("age_range_min must not exceed age_range_max")
        return self


class GenerationAcceptedResponse(BaseModel):
    """Returned immediately after a generation request is accepted."""

    id: str
    status: WorksheetStatus
    poll_after_seconds: int


class ImageProgress(BaseModel):
    """Counts of images by generation sub-status."""

    total: int = 0
    pending: int = 0
    generating: int = 0
    completed: int = 0
    failed: int = 0


class GenerationStatusResponse(BaseModel):
    """Cheap, side-effect free status poll result."""

    id: str
    status: WorksheetStatus
    pdf_url: str | None = None
    preview_url: str | None = None
    error: str | None = None
    images: ImageProgress = Field(default_factory=ImageProgress)
    degraded: bool = Field(default=False, description="Ready but some images failed")
    poll_after_seconds: int | None = Field(
        default=None,
        description="Suggested delay before polling again; null when terminal",
    )


# =============================================================================
# Worksheets
# =============================================================================


class WorksheetImageResponse(BaseModel):
    """A worksheet image and its generation sub-status."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    prompt: str
    alt_text: str
    position: int
    image_url: str | None = None
    status: ImageStatus
    error: str | None = None


class WorksheetSummary(BaseModel):
    """Worksheet fields shown in lists."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    type: WorksheetType
    sub_type: str | None = None
    difficulty: Difficulty
    status: WorksheetStatus
    target_domains: list[str]
    condition_tags: list[str] = Field(default_factory=list)
    age_range_min: int | None = None
    age_range_max: int | None = None
    is_public: bool
    average_rating: float | None = None
    review_count: int = 0
    clone_count: int = 0
    version: int = 1
    preview_url: str | None = None
    created_by_id: str
    child_id: str | None = None
    published_at: datetime | None = None
    created_at: datetime


class WorksheetResponse(WorksheetSummary):
    """Full worksheet including content and images."""

    color_mode: ColorMode
    data_source: DataSource
    content: dict[str, Any]
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("generation_params", "metadata"),
    )
    contributor_notes: str | None = None
    cloned_from_id: str | None = None
    parent_version_id: str | None = None
    case_id: str | None = None
    screening_id: str | None = None
    pdf_url: str | None = None
    generation_error: str | None = None
    images: list[WorksheetImageResponse] = Field(default_factory=list)
    updated_at: datetime


class WorksheetListResponse(BaseModel):
    """Paged worksheet list."""

    items: list[WorksheetSummary]
    total: int
    limit: int
    offset: int


class UpdateWorksheetRequest(BaseModel):
    """Editable worksheet fields."""

    title: str | None = Field(default=None, min_length=1, max_length=255)
    content: dict[str, Any] | None = None
    condition_tags: list[str] | None = None


class RegenerateSectionRequest(BaseModel):
    """Replace one content section."""

    section_id: str
    instructions: str | None = Field(default=None, max_length=2000)


class RegenerateImageRequest(BaseModel):
    """Regenerate one image, optionally with a new prompt."""

    image_id: str
    prompt: str | None = Field(default=None, max_length=2000)


class LinkCaseRequest(BaseModel):
    """Attach a worksheet to a case."""

    case_id: str


class VersionEntry(BaseModel):
    """One node of a worksheet version tree."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    version: int
    parent_version_id: str | None = None
    status: WorksheetStatus
    created_at: datetime


# =============================================================================
# Assignments
# =============================================================================


class CreateAssignmentRequest(BaseModel):
    """Assign a worksheet to a caregiver for a child."""

    assigned_to_id: str
    child_id: str
    case_id: str | None = None
    due_date: datetime | None = None
    notes: str | None = Field(default=None, max_length=2000)


class UpdateAssignmentRequest(BaseModel):
    """Caregiver progress update. Completion is recorded separately."""

    status: AssignmentStatus | None = None
    parent_notes: str | None = Field(default=None, max_length=2000)


class AssignmentResponse(BaseModel):
    """Assignment with its read-time display status."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    worksheet_id: str
    assigned_by_id: str
    assigned_to_id: str
    child_id: str
    case_id: str | None = None
    status: AssignmentStatus
    display_status: str = Field(description="Stored status, or 'overdue'")
    due_date: datetime | None = None
    notes: str | None = None
    parent_notes: str | None = None
    viewed_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime
    worksheet: WorksheetSummary | None = None


class AssignmentListResponse(BaseModel):
    """Paged assignment list."""

    items: list[AssignmentResponse]
    total: int
    limit: int
    offset: int


# =============================================================================
# Completions
# =============================================================================


class RecordCompletionRequest(BaseModel):
    """A caregiver's completion report."""

    child_id: str
    assignment_id: str | None = None
    completed_at: datetime | None = None
    time_spent_minutes: int | None = Field(default=None, ge=0, le=1440)
    difficulty_rating: int | None = Field(default=None, ge=1, le=5)
    engagement_rating: int | None = Field(default=None, ge=1, le=5)
    help_level: HelpLevel | None = None
    completion_quality: CompletionQuality | None = None
    parent_notes: str | None = Field(default=None, max_length=5000)


class UpdateCompletionRequest(BaseModel):
    """Correct the signals of a recorded completion."""

    time_spent_minutes: int | None = Field(default=None, ge=0, le=1440)
    difficulty_rating: int | None = Field(default=None, ge=1, le=5)
    engagement_rating: int | None = Field(default=None, ge=1, le=5)
    help_level: HelpLevel | None = None
    completion_quality: CompletionQuality | None = None
    parent_notes: str | None = Field(default=None, max_length=5000)


class CompletionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    worksheet_id: str
    child_id: str
    assignment_id: str | None = None
    recorded_by_id: str
    completed_at: datetime
    time_spent_minutes: int | None = None
    difficulty_rating: int | None = None
    engagement_rating: int | None = None
    help_level: HelpLevel | None = None
    completion_quality: CompletionQuality | None = None
    parent_notes: str | None = None


class CompletionListResponse(BaseModel):
    items: list[CompletionResponse]
    total: int
    limit: int
    offset: int


# =============================================================================
# Community
# =============================================================================


class PublishRequest(BaseModel):
    """Optional note shown to the community."""

    contributor_notes: str | None = Field(default=None, max_length=2000)


class ReviewRequest(BaseModel):
    """Create or replace a review."""

    rating: int = Field(ge=1, le=5)
    review_text: str | None = Field(default=None, max_length=5000)


class ReviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    worksheet_id: str
    user_id: str
    rating: int
    review_text: str | None = None
    helpful_count: int
    created_at: datetime
    updated_at: datetime


class ReviewListResponse(BaseModel):
    items: list[ReviewResponse]
    total: int
    limit: int
    offset: int


class RatingSummary(BaseModel):
    """Worksheet rating aggregate after a review write."""

    worksheet_id: str
    average_rating: float | None
    review_count: int


class ContributorProfile(BaseModel):
    """Community contribution totals for one user."""

    user_id: str
    published_count: int
    total_clones: int
    total_reviews: int
    average_rating: float | None


# =============================================================================
# Moderation
# =============================================================================


class FlagRequest(BaseModel):
    """Report a published worksheet."""

    reason: FlagReason
    details: str | None = Field(default=None, max_length=2000)


class ResolveFlagRequest(BaseModel):
    """Moderator decision on a flag."""

    status: FlagStatus
    resolution: str | None = Field(default=None, max_length=2000)

    @field_validator("status")
    @classmethod
    def must_resolve(cls, value: FlagStatus) -> FlagStatus:
        """A resolution cannot set the flag back to pending."""
        if value == FlagStatus.PENDING:
            raise ValueError("Resolution status must be reviewed, dismissed or actioned")
        return value


class FlagResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    worksheet_id: str
    flagged_by_id: str
    reason: FlagReason
    details: str | None = None
    status: FlagStatus
    resolution: str | None = None
    resolved_by_id: str | None = None
    resolved_at: datetime | None = None
    created_at: datetime


class FlagListResponse(BaseModel):
    items: list[FlagResponse]
    total: int
    limit: int
    offset: int


class ModerationStats(BaseModel):
    """Moderation queue overview."""

    pending: int = 0
    reviewed: int = 0
    dismissed: int = 0
    actioned: int = 0
    flagged_worksheets: int = 0
