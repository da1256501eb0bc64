# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Analytics service module.

This module provides the AnalyticsService for outcome analytics over
worksheet completions and screening scores:
- Completion statistics and progress timelines for a child
- Child journey across domains and worksheet versions
- Worksheet effectiveness from pre/post screening scores
- Difficulty suggestions and community recommendations

Screening scores are written by the screening service; this service only
reads them.

Usage:
    from src.domains.analytics import AnalyticsService

    service = AnalyticsService(db=db_session)
    stats = await service.completion_stats(child_id)
    ranking = await service.recommendations(child_id, limit=10)
"""

import logging
from bisect import bisect_left
from collections import Counter, defaultdict
from datetime import datetime
from typing import Iterable, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config.settings import AnalyticsSettings, get_settings
from src.domains.analytics.recommendation import (
    CandidateProfile,
    CompletionSignal,
    rank_candidates,
    score_candidate,
    suggest_difficulty,
)
from src.domains.analytics.schemas import (
    ChildAnalytics,
    ChildJourney,
    CompletionStats,
    DifficultySuggestion,
    DomainEffect,
    DomainJourney,
    DomainTimeline,
    EffectivenessRanking,
    EffectivenessScore,
    JourneyEntry,
    ProgressTimeline,
    Recommendation,
    RecommendationList,
    TimelinePoint,
)
from src.domains.worksheet.errors import NotFoundError
from src.domains.worksheet.models import CompletionQuality, Difficulty
from src.domains.worksheet.repository import WorksheetRepository
from src.domains.worksheet.schemas import WorksheetSummary
from src.infrastructure.database.models import ScreeningDomainScore

logger = logging.getLogger(__name__)


class ScoreSeries:
    """Time-ordered screening scores for one child and domain."""

    def __init__(self) -> None:
        self.times: list[datetime] = []
        self.scores: list[float] = []

    def add(self, measured_at: datetime, score: float) -> None:
        index = bisect_left(self.times, measured_at)
        self.times.insert(index, measured_at)
        self.scores.insert(index, score)

    def before(self, moment: datetime) -> float | None:
        """Latest score measured strictly before moment."""
        index = bisect_left(self.times, moment)
        return self.scores[index - 1] if index > 0 else None

    def at_or_after(self, moment: datetime) -> float | None:
        """Earliest score measured at or after moment."""
        index = bisect_left(self.times, moment)
        return self.scores[index] if index < len(self.scores) else None

    def latest(self) -> float | None:
        return self.scores[-1] if self.scores else None


def index_scores(
    scores: Iterable[ScreeningDomainScore],
) -> dict[tuple[str, str], ScoreSeries]:
    """Group screening scores by (child_id, domain)."""
    series: dict[tuple[str, str], ScoreSeries] = defaultdict(ScoreSeries)
    for row in scores:
        series[(row.child_id, row.domain)].add(row.measured_at, row.score)
    return series


def trend_of(points: Sequence[TimelinePoint]) -> str:
    if len(points) < 2 or points[-1].score == points[0].score:
        return "stable"
    return "improving" if points[-1].score > points[0].score else "declining"


def _round_mean(values: Sequence[float], digits: int = 1) -> float | None:
    if not values:
        return None
    return round(sum(values) / len(values), digits)


class AnalyticsService:
    """Service for outcome analytics and recommendations.

    Attributes:
        db: Async database session.
        repo: Worksheet repository.
        settings: Analytics settings.
    """

    def __init__(
        self,
        db: AsyncSession,
        repository: Optional[WorksheetRepository] = None,
        settings: Optional[AnalyticsSettings] = None,
    ) -> None:
        self.db = db
        self.repo = repository or WorksheetRepository(db)
        self.settings = settings or get_settings().analytics

    # =========================================================================
    # Child analytics
    # =========================================================================

    async def completion_stats(self, child_id: str) -> CompletionStats:
        """Aggregate completion signals for a child."""
        rows = await self.repo.child_completions_with_worksheets(child_id)

        times = [c.time_spent_minutes for c, _ in rows if c.time_spent_minutes is not None]
        difficulty = [c.difficulty_rating for c, _ in rows if c.difficulty_rating is not None]
        engagement = [c.engagement_rating for c, _ in rows if c.engagement_rating is not None]

        quality = Counter(c.completion_quality for c, _ in rows if c.completion_quality)
        domains: Counter[str] = Counter()
        for _, worksheet in rows:
            domains.update(worksheet.target_domains or [])

        average_time = _round_mean(times, 0)
        return CompletionStats(
            child_id=child_id,
            total_completions=len(rows),
            average_time_minutes=int(average_time) if average_time is not None else None,
            average_difficulty=_round_mean(difficulty),
            average_engagement=_round_mean(engagement),
            quality_distribution=dict(quality),
            domain_counts=dict(domains),
        )

    async def progress_timeline(self, child_id: str) -> ProgressTimeline:
        """Screening score progression for each domain the child has worked on.

        Each completion contributes one point per target domain, scored with
        the nearest screening at or after the completion, or failing that the
        nearest before it. Completions with no screening in a domain are
        skipped for that domain.
        """
        rows = await self.repo.child_completions_with_worksheets(child_id)
        domains = sorted({d for _, w in rows for d in (w.target_domains or [])})
        series = index_scores(await self.repo.screening_scores([child_id], domains))

        points: dict[str, list[TimelinePoint]] = defaultdict(list)
        for completion, worksheet in rows:
            for domain in worksheet.target_domains or []:
                scores = series.get((child_id, domain))
                if scores is None:
                    continue
                score = scores.at_or_after(completion.completed_at)
                if score is None:
                    score = scores.before(completion.completed_at)
                if score is None:
                    continue
                points[domain].append(
                    TimelinePoint(
                        date=completion.completed_at,
                        score=score,
                        worksheet_id=worksheet.id,
                    )
                )

        return ProgressTimeline(
            child_id=child_id,
            domains=[
                DomainTimeline(domain=domain, points=points[domain], trend=trend_of(points[domain]))
                for domain in domains
                if points[domain]
            ],
        )

    async def child_analytics(self, child_id: str) -> ChildAnalytics:
        return ChildAnalytics(
            stats=await self.completion_stats(child_id),
            timeline=await self.progress_timeline(child_id),
        )

    async def child_journey(self, child_id: str) -> ChildJourney:
        """Worksheets a child has completed, grouped by domain.

        Each entry carries the latest completion signal for the worksheet
        and the root of its version chain, so successive versions of the
        same material line up.
        """
        rows = await self.repo.child_completions_with_worksheets(child_id, newest_first=True)

        entries: dict[str, JourneyEntry] = {}
        for completion, worksheet in rows:
            entry = entries.get(worksheet.id)
            if entry is not None:
                entry.completions += 1
                continue
            entries[worksheet.id] = JourneyEntry(
                worksheet_id=worksheet.id,
                title=worksheet.title,
                difficulty=worksheet.difficulty,
                version=worksheet.version,
                parent_version_id=worksheet.parent_version_id,
                root_version_id=(
                    await self.repo.find_root_version_id(worksheet.id)
                    if worksheet.parent_version_id
                    else worksheet.id
                ),
                completions=1,
                last_completed_at=completion.completed_at,
                last_quality=completion.completion_quality,
                last_difficulty_rating=completion.difficulty_rating,
            )

        by_domain: dict[str, list[JourneyEntry]] = defaultdict(list)
        for _, worksheet in rows:
            entry = entries[worksheet.id]
            for domain in worksheet.target_domains or []:
                if entry not in by_domain[domain]:
                    by_domain[domain].append(entry)

        return ChildJourney(
            child_id=child_id,
            total_completions=len(rows),
            domains=[
                DomainJourney(domain=domain, worksheets=by_domain[domain])
                for domain in sorted(by_domain)
            ],
        )

    # =========================================================================
    # Effectiveness
    # =========================================================================

    async def effectiveness(self, worksheet_id: str) -> EffectivenessScore:
        """Compare screening scores before and after children used a worksheet.

        Each child's first completion is the reference point. A child is
        sampled when at least one target domain has a score on both sides
        of it, and counts as improved when the mean delta over those
        domains is positive.

        Raises:
            NotFoundError: If the worksheet does not exist.
        """
        worksheet = await self.repo.get_worksheet(worksheet_id)
        if worksheet is None:
            raise NotFoundError(f"Worksheet {worksheet_id} not found")

        first_completion: dict[str, datetime] = {}
        for completion in await self.repo.worksheet_completions(worksheet_id):
            first_completion.setdefault(completion.child_id, completion.completed_at)

        domains = list(worksheet.target_domains or [])
        series = index_scores(
            await self.repo.screening_scores(list(first_completion), domains)
        )

        deltas: dict[str, list[float]] = defaultdict(list)
        sampled = 0
        improved = 0
        for child_id, completed_at in first_completion.items():
            child_deltas = []
            for domain in domains:
                scores = series.get((child_id, domain))
                if scores is None:
                    continue
                pre = scores.before(completed_at)
                post = scores.at_or_after(completed_at)
                if pre is None or post is None:
                    continue
                child_deltas.append(post - pre)
                deltas[domain].append(post - pre)
            if child_deltas:
                sampled += 1
                if sum(child_deltas) / len(child_deltas) > 0:
                    improved += 1

        return EffectivenessScore(
            worksheet_id=worksheet.id,
            title=worksheet.title,
            score=round(improved / sampled, 3) if sampled else None,
            sample_size=sampled,
            improved_children=improved,
            low_confidence=sampled < self.settings.min_sample_size,
            domains=[
                DomainEffect(
                    domain=domain,
                    mean_delta=_round_mean(deltas[domain], 2),
                    sample_size=len(deltas[domain]),
                )
                for domain in domains
            ],
        )

    async def most_effective(
        self,
        limit: int = 10,
        min_sample_size: int | None = None,
    ) -> EffectivenessRanking:
        """Rank worksheets by effectiveness among those with enough data."""
        minimum = min_sample_size or self.settings.min_sample_size
        candidates = await self.repo.worksheets_completed_by_at_least(minimum)

        scored = []
        for worksheet_id in candidates:
            result = await self.effectiveness(worksheet_id)
            if result.score is not None and result.sample_size >= minimum:
                scored.append(result)

        scored.sort(key=lambda r: (-r.score, -r.sample_size, r.worksheet_id))
        logger.debug("Ranked %d of %d candidate worksheets", len(scored), len(candidates))
        return EffectivenessRanking(items=scored[:limit], min_sample_size=minimum)

    # =========================================================================
    # Difficulty and recommendations
    # =========================================================================

    async def suggest_difficulty(
        self,
        child_id: str,
        domain: str | None = None,
    ) -> DifficultySuggestion:
        """Suggest the next difficulty tier for a child."""
        domain = domain.upper() if domain else None
        rows = await self.repo.child_completions_with_worksheets(
            child_id,
            domain=domain,
            limit=self.settings.recent_completion_window,
            newest_first=True,
        )
        decision = suggest_difficulty(
            [
                CompletionSignal(
                    worksheet_difficulty=Difficulty(worksheet.difficulty),
                    difficulty_rating=completion.difficulty_rating,
                    engagement_rating=completion.engagement_rating,
                    quality=(
                        CompletionQuality(completion.completion_quality)
                        if completion.completion_quality
                        else None
                    ),
                )
                for completion, worksheet in rows
            ]
        )
        return DifficultySuggestion(
            child_id=child_id,
            domain=domain,
            suggested_difficulty=decision.suggested,
            current_difficulty=decision.current,
            dominant_quality=decision.dominant_quality,
            average_difficulty=decision.average_difficulty,
            average_engagement=decision.average_engagement,
            completion_count=decision.completion_count,
            reasoning=decision.reasoning,
        )

    async def focus_domains(self, child_id: str) -> list[str]:
        """Domains whose latest screening is flagged or under the weak threshold."""
        latest: dict[str, ScreeningDomainScore] = {}
        for row in await self.repo.screening_scores([child_id]):
            latest[row.domain] = row

        return sorted(
            domain
            for domain, row in latest.items()
            if row.is_flagged or row.score < self.settings.weak_domain_threshold
        )

    async def recommendations(
        self,
        child_id: str,
        *,
        limit: int = 10,
        age_months: int | None = None,
        conditions: Sequence[str] = (),
    ) -> RecommendationList:
        """Recommend community worksheets the child has not completed yet."""
        suggestion = await self.suggest_difficulty(child_id)
        focus = await self.focus_domains(child_id)

        completed = await self.repo.completed_worksheet_ids(child_id)
        candidates = await self.repo.list_public_candidates(
            exclude_ids=sorted(completed),
            limit=self.settings.recommendation_candidates,
        )
        by_id = {w.id: w for w in candidates}

        ranked = rank_candidates(
            score_candidate(
                CandidateProfile(
                    id=w.id,
                    target_domains=w.target_domains or [],
                    difficulty=Difficulty(w.difficulty),
                    condition_tags=w.condition_tags or [],
                    age_range_min=w.age_range_min,
                    age_range_max=w.age_range_max,
                    average_rating=w.average_rating,
                    review_count=w.review_count or 0,
                ),
                focus,
                suggestion.suggested_difficulty,
                age_months=age_months,
                conditions=conditions,
            )
            for w in candidates
        )

        items = []
        for scored in ranked[:limit]:
            worksheet = by_id[scored.worksheet_id]
            tier = Difficulty(worksheet.difficulty)
            items.append(
                Recommendation(
                    worksheet=WorksheetSummary.model_validate(worksheet),
                    relevance_score=scored.score,
                    reasoning=scored.reasoning,
                    suggested_difficulty=(
                        suggestion.suggested_difficulty
                        if tier != suggestion.suggested_difficulty
                        else None
                    ),
                )
            )

        logger.info(
            "Recommendations for child %s: %d of %d candidates, focus=%s",
            child_id,
            len(items),
            len(candidates),
            focus,
        )
        return RecommendationList(
            child_id=child_id,
            suggested_difficulty=suggestion.suggested_difficulty,
            focus_domains=focus,
            items=items,
        )
