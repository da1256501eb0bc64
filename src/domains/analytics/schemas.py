# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Response models for outcome analytics and recommendations."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from src.domains.worksheet.models import CompletionQuality, Difficulty
from src.domains.worksheet.schemas import WorksheetSummary

Trend = Literal["improving", "declining", "stable"]


class CompletionStats(BaseModel):
    """Aggregate completion signals for one child."""

    child_id: str
    total_completions: int = 0
    average_time_minutes: int | None = None
    average_difficulty: float | None = Field(default=None, description="Mean 1-5 rating, 1 decimal")
    average_engagement: float | None = Field(default=None, description="Mean 1-5 rating, 1 decimal")
    quality_distribution: dict[str, int] = Field(default_factory=dict)
    domain_counts: dict[str, int] = Field(default_factory=dict)


class TimelinePoint(BaseModel):
    date: datetime
    score: float
    worksheet_id: str


class DomainTimeline(BaseModel):
    domain: str
    points: list[TimelinePoint]
    trend: Trend


class ProgressTimeline(BaseModel):
    """Screening score progression around a child's completions."""

    child_id: str
    domains: list[DomainTimeline]


class DomainEffect(BaseModel):
    domain: str
    mean_delta: float | None = None
    sample_size: int = 0


class EffectivenessScore(BaseModel):
    """Pre/post screening comparison across children who used a worksheet.

    ``score`` is the share of sampled children who improved.
    """

    worksheet_id: str
    title: str
    score: float | None = None
    sample_size: int = 0
    improved_children: int = 0
    low_confidence: bool = True
    domains: list[DomainEffect] = Field(default_factory=list)


class DifficultySuggestion(BaseModel):
    child_id: str
    domain: str | None = None
    suggested_difficulty: Difficulty
    current_difficulty: Difficulty | None = None
    dominant_quality: CompletionQuality | None = None
    average_difficulty: float | None = None
    average_engagement: float | None = None
    completion_count: int = 0
    reasoning: str


class Recommendation(BaseModel):
    worksheet: WorksheetSummary
    relevance_score: float
    reasoning: str
    suggested_difficulty: Difficulty | None = Field(
        default=None,
        description="Set when the worksheet's tier differs from the child's suggested tier",
    )


class RecommendationList(BaseModel):
    child_id: str
    suggested_difficulty: Difficulty
    focus_domains: list[str]
    items: list[Recommendation]


class JourneyEntry(BaseModel):
    """One worksheet in a child's journey with its latest completion signal."""

    worksheet_id: str
    title: str
    difficulty: Difficulty
    version: int
    parent_version_id: str | None = None
    root_version_id: str
    completions: int
    last_completed_at: datetime
    last_quality: CompletionQuality | None = None
    last_difficulty_rating: int | None = None


class DomainJourney(BaseModel):
    domain: str
    worksheets: list[JourneyEntry]


class ChildJourney(BaseModel):
    child_id: str
    total_completions: int
    domains: list[DomainJourney]


class ChildAnalytics(BaseModel):
    """Completion statistics and progress timeline for one child."""

    stats: CompletionStats
    timeline: ProgressTimeline


class EffectivenessRanking(BaseModel):
    items: list[EffectivenessScore]
    min_sample_size: int
