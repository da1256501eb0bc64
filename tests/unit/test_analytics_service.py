# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the outcome analytics service."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from src.core.config.settings import AnalyticsSettings
from src.domains.analytics.service import AnalyticsService, ScoreSeries, trend_of
from src.domains.analytics.schemas import TimelinePoint
from src.domains.worksheet.errors import NotFoundError
from src.domains.worksheet.models import Difficulty
from src.infrastructure.database.models import ScreeningDomainScore

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


def day(n: int) -> datetime:
    return T0 + timedelta(days=n)


def score(child_id: str, domain: str, value: float, at: datetime, flagged: bool = False):
    return ScreeningDomainScore(
        id=str(uuid4()),
        child_id=child_id,
        assessment_id=str(uuid4()),
        domain=domain,
        score=value,
        is_flagged=flagged,
        measured_at=at,
    )


@pytest.fixture
def analytics_settings() -> AnalyticsSettings:
    return AnalyticsSettings(
        min_sample_size=2,
        weak_domain_threshold=40.0,
        recent_completion_window=10,
        recommendation_candidates=50,
    )


@pytest.fixture
def service(mock_db, mock_repo, analytics_settings) -> AnalyticsService:
    return AnalyticsService(db=mock_db, repository=mock_repo, settings=analytics_settings)


class TestScoreSeries:
    def test_before_is_strict_and_at_or_after_is_inclusive(self) -> None:
        series = ScoreSeries()
        series.add(day(5), 50.0)
        series.add(day(1), 30.0)

        assert series.before(day(5)) == 30.0
        assert series.at_or_after(day(5)) == 50.0
        assert series.before(day(1)) is None
        assert series.at_or_after(day(6)) is None
        assert series.latest() == 50.0

    def test_trend(self) -> None:
        def point(value: float) -> TimelinePoint:
            return TimelinePoint(date=T0, score=value, worksheet_id="w")

        assert trend_of([point(10)]) == "stable"
        assert trend_of([point(10), point(20)]) == "improving"
        assert trend_of([point(20), point(10)]) == "declining"
        assert trend_of([point(10), point(30), point(10)]) == "stable"


class TestCompletionStats:
    @pytest.mark.asyncio
    async def test_aggregates_signals(
        self, service, mock_repo, make_worksheet, make_completion, sample_child_id
    ) -> None:
        motor = make_worksheet(target_domains=["FINE_MOTOR"])
        both = make_worksheet(target_domains=["FINE_MOTOR", "LANGUAGE"])
        mock_repo.child_completions_with_worksheets = AsyncMock(
            return_value=[
                (make_completion(time_spent_minutes=10, difficulty_rating=2,
                                 engagement_rating=5, completion_quality="just_right"), motor),
                (make_completion(time_spent_minutes=25, difficulty_rating=3,
                                 completion_quality="just_right"), both),
                (make_completion(engagement_rating=4, completion_quality="too_easy"), both),
            ]
        )

        stats = await service.completion_stats(sample_child_id)

        assert stats.total_completions == 3
        assert stats.average_time_minutes == 18
        assert stats.average_difficulty == 2.5
        assert stats.average_engagement == 4.5
        assert stats.quality_distribution == {"just_right": 2, "too_easy": 1}
        assert stats.domain_counts == {"FINE_MOTOR": 3, "LANGUAGE": 2}

    @pytest.mark.asyncio
    async def test_no_completions(self, service, mock_repo, sample_child_id) -> None:
        mock_repo.child_completions_with_worksheets = AsyncMock(return_value=[])

        stats = await service.completion_stats(sample_child_id)

        assert stats.total_completions == 0
        assert stats.average_time_minutes is None
        assert stats.average_difficulty is None


class TestProgressTimeline:
    @pytest.mark.asyncio
    async def test_prefers_following_screening_and_skips_missing(
        self, service, mock_repo, make_worksheet, make_completion, sample_child_id
    ) -> None:
        worksheet = make_worksheet(target_domains=["FINE_MOTOR", "LANGUAGE"])
        mock_repo.child_completions_with_worksheets = AsyncMock(
            return_value=[
                (make_completion(completed_at=day(2)), worksheet),
                (make_completion(completed_at=day(10)), worksheet),
            ]
        )
        mock_repo.screening_scores = AsyncMock(
            return_value=[
                score(sample_child_id, "FINE_MOTOR", 30.0, day(0)),
                score(sample_child_id, "FINE_MOTOR", 45.0, day(3)),
            ]
        )

        timeline = await service.progress_timeline(sample_child_id)

        mock_repo.screening_scores.assert_awaited_once_with(
            [sample_child_id], ["FINE_MOTOR", "LANGUAGE"]
        )
        assert [d.domain for d in timeline.domains] == ["FINE_MOTOR"]
        motor = timeline.domains[0]
        # Day 2 uses the day 3 screening; day 10 falls back to the latest before it
        assert [p.score for p in motor.points] == [45.0, 45.0]
        assert motor.trend == "stable"


class TestChildJourney:
    @pytest.mark.asyncio
    async def test_groups_by_domain_with_version_root(
        self, service, mock_repo, make_worksheet, make_completion, sample_child_id
    ) -> None:
        original = make_worksheet(title="Original", target_domains=["FINE_MOTOR"])
        revised = make_worksheet(
            title="Revised",
            version=2,
            parent_version_id=original.id,
            target_domains=["FINE_MOTOR", "LANGUAGE"],
        )
        mock_repo.child_completions_with_worksheets = AsyncMock(
            return_value=[
                (make_completion(completed_at=day(9), completion_quality="just_right"), revised),
                (make_completion(completed_at=day(5)), revised),
                (make_completion(completed_at=day(1)), original),
            ]
        )
        mock_repo.find_root_version_id = AsyncMock(return_value=original.id)

        journey = await service.child_journey(sample_child_id)

        mock_repo.find_root_version_id.assert_awaited_once_with(revised.id)
        assert journey.total_completions == 3
        assert [d.domain for d in journey.domains] == ["FINE_MOTOR", "LANGUAGE"]

        motor = journey.domains[0].worksheets
        assert [e.title for e in motor] == ["Revised", "Original"]
        assert motor[0].completions == 2
        assert motor[0].last_completed_at == day(9)
        assert motor[0].last_quality == "just_right"
        assert {e.root_version_id for e in motor} == {original.id}


class TestEffectiveness:
    @pytest.mark.asyncio
    async def test_missing_worksheet(self, service, mock_repo) -> None:
        with pytest.raises(NotFoundError):
            await service.effectiveness("missing")

    @pytest.mark.asyncio
    async def test_share_of_improved_children(
        self, service, mock_repo, make_worksheet, make_completion
    ) -> None:
        worksheet = make_worksheet(target_domains=["FINE_MOTOR"])
        improved, declined, unscreened = "child-a", "child-b", "child-c"
        mock_repo.get_worksheet = AsyncMock(return_value=worksheet)
        mock_repo.worksheet_completions = AsyncMock(
            return_value=[
                make_completion(child_id=improved, completed_at=day(5)),
                make_completion(child_id=declined, completed_at=day(5)),
                make_completion(child_id=unscreened, completed_at=day(5)),
                # A later completion does not move the reference point
                make_completion(child_id=improved, completed_at=day(20)),
            ]
        )
        mock_repo.screening_scores = AsyncMock(
            return_value=[
                score(improved, "FINE_MOTOR", 30.0, day(1)),
                score(improved, "FINE_MOTOR", 50.0, day(8)),
                score(declined, "FINE_MOTOR", 40.0, day(1)),
                score(declined, "FINE_MOTOR", 35.0, day(5)),
                score(unscreened, "FINE_MOTOR", 20.0, day(1)),
            ]
        )

        result = await service.effectiveness(worksheet.id)

        assert result.sample_size == 2
        assert result.improved_children == 1
        assert result.score == 0.5
        assert result.low_confidence is False
        assert result.domains[0].domain == "FINE_MOTOR"
        assert result.domains[0].mean_delta == 7.5
        assert result.domains[0].sample_size == 2

    @pytest.mark.asyncio
    async def test_no_sample_has_no_score(
        self, service, mock_repo, make_worksheet
    ) -> None:
        worksheet = make_worksheet()
        mock_repo.get_worksheet = AsyncMock(return_value=worksheet)
        mock_repo.worksheet_completions = AsyncMock(return_value=[])
        mock_repo.screening_scores = AsyncMock(return_value=[])

        result = await service.effectiveness(worksheet.id)

        assert result.score is None
        assert result.sample_size == 0
        assert result.low_confidence is True

    @pytest.mark.asyncio
    async def test_most_effective_filters_and_orders(self, service, mock_repo) -> None:
        from src.domains.analytics.schemas import EffectivenessScore

        results = {
            "w1": EffectivenessScore(worksheet_id="w1", title="A", score=0.5, sample_size=4),
            "w2": EffectivenessScore(worksheet_id="w2", title="B", score=0.9, sample_size=2),
            "w3": EffectivenessScore(worksheet_id="w3", title="C", score=1.0, sample_size=1),
            "w4": EffectivenessScore(worksheet_id="w4", title="D", score=0.5, sample_size=6),
        }
        mock_repo.worksheets_completed_by_at_least = AsyncMock(return_value=list(results))
        service.effectiveness = AsyncMock(side_effect=lambda wid: results[wid])

        ranking = await service.most_effective(limit=10)

        mock_repo.worksheets_completed_by_at_least.assert_awaited_once_with(2)
        assert [r.worksheet_id for r in ranking.items] == ["w2", "w4", "w1"]
        assert ranking.min_sample_size == 2


class TestRecommendations:
    @pytest.mark.asyncio
    async def test_focus_domains_use_latest_screening(
        self, service, mock_repo, sample_child_id
    ) -> None:
        mock_repo.screening_scores = AsyncMock(
            return_value=[
                score(sample_child_id, "FINE_MOTOR", 20.0, day(1)),
                score(sample_child_id, "FINE_MOTOR", 70.0, day(5)),
                score(sample_child_id, "LANGUAGE", 80.0, day(5), flagged=True),
                score(sample_child_id, "SOCIAL", 35.0, day(5)),
            ]
        )

        assert await service.focus_domains(sample_child_id) == ["LANGUAGE", "SOCIAL"]

    @pytest.mark.asyncio
    async def test_suggest_difficulty_uses_recent_window(
        self, service, mock_repo, make_worksheet, make_completion, sample_child_id
    ) -> None:
        mock_repo.child_completions_with_worksheets = AsyncMock(
            return_value=[
                (make_completion(difficulty_rating=1), make_worksheet(difficulty="foundational")),
            ]
        )

        suggestion = await service.suggest_difficulty(sample_child_id, domain="fine_motor")

        mock_repo.child_completions_with_worksheets.assert_awaited_once_with(
            sample_child_id, domain="FINE_MOTOR", limit=10, newest_first=True
        )
        assert suggestion.domain == "FINE_MOTOR"
        assert suggestion.suggested_difficulty == Difficulty.DEVELOPING
        assert suggestion.current_difficulty == Difficulty.FOUNDATIONAL

    @pytest.mark.asyncio
    async def test_ranks_uncompleted_public_worksheets(
        self, service, mock_repo, make_worksheet, make_completion, sample_child_id
    ) -> None:
        done = make_worksheet(difficulty="developing")
        mock_repo.child_completions_with_worksheets = AsyncMock(
            return_value=[(make_completion(completion_quality="just_right"), done)]
        )
        mock_repo.screening_scores = AsyncMock(
            return_value=[score(sample_child_id, "LANGUAGE", 20.0, day(1))]
        )
        mock_repo.completed_worksheet_ids = AsyncMock(return_value={done.id})

        language = make_worksheet(
            id="b", target_domains=["LANGUAGE"], difficulty="developing",
            status="published", is_public=True,
        )
        harder = make_worksheet(
            id="a", target_domains=["LANGUAGE"], difficulty="strengthening",
            status="published", is_public=True,
        )
        unrelated = make_worksheet(
            id="c", target_domains=["GROSS_MOTOR"], difficulty="developing",
            status="published", is_public=True,
        )
        mock_repo.list_public_candidates = AsyncMock(return_value=[unrelated, harder, language])

        result = await service.recommendations(sample_child_id, limit=2)

        mock_repo.list_public_candidates.assert_awaited_once_with(exclude_ids=[done.id], limit=50)
        assert result.suggested_difficulty == Difficulty.DEVELOPING
        assert result.focus_domains == ["LANGUAGE"]
        assert [r.worksheet.id for r in result.items] == ["b", "a"]
        assert result.items[0].suggested_difficulty is None
        assert result.items[1].suggested_difficulty == Difficulty.DEVELOPING
        assert result.items[0].relevance_score == 60.0
