# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for difficulty suggestion and candidate scoring."""

import pytest

from src.domains.analytics.recommendation import (
    CandidateProfile,
    CandidateScore,
    CompletionSignal,
    rank_candidates,
    score_candidate,
    shift_difficulty,
    suggest_difficulty,
)
from src.domains.worksheet.models import CompletionQuality, Difficulty

D = Difficulty
Q = CompletionQuality


def signal(
    difficulty: Difficulty = D.DEVELOPING,
    rating: int | None = None,
    quality: CompletionQuality | None = None,
    engagement: int | None = None,
) -> CompletionSignal:
    return CompletionSignal(
        worksheet_difficulty=difficulty,
        difficulty_rating=rating,
        engagement_rating=engagement,
        quality=quality,
    )


class TestShiftDifficulty:
    def test_clamped_at_both_ends(self) -> None:
        assert shift_difficulty(D.STRENGTHENING, 1) == D.STRENGTHENING
        assert shift_difficulty(D.FOUNDATIONAL, -1) == D.FOUNDATIONAL
        assert shift_difficulty(D.FOUNDATIONAL, 1) == D.DEVELOPING


class TestSuggestDifficulty:
    """Tests for the difficulty progression rules."""

    def test_no_history_starts_at_developing(self) -> None:
        decision = suggest_difficulty([])

        assert decision.suggested == D.DEVELOPING
        assert decision.completion_count == 0
        assert "No completion history" in decision.reasoning

    def test_too_easy_moves_up(self) -> None:
        decision = suggest_difficulty(
            [signal(D.FOUNDATIONAL, quality=Q.TOO_EASY), signal(D.FOUNDATIONAL, quality=Q.TOO_EASY)]
        )

        assert decision.suggested == D.DEVELOPING
        assert decision.dominant_quality == Q.TOO_EASY
        assert "Moving up to developing" in decision.reasoning

    def test_low_difficulty_rating_moves_up(self) -> None:
        decision = suggest_difficulty([signal(D.DEVELOPING, rating=1), signal(D.DEVELOPING, rating=2)])

        assert decision.suggested == D.STRENGTHENING
        assert decision.average_difficulty == 1.5

    def test_too_hard_steps_back(self) -> None:
        decision = suggest_difficulty([signal(D.STRENGTHENING, quality=Q.TOO_HARD)])

        assert decision.suggested == D.DEVELOPING
        assert "Stepping back to developing" in decision.reasoning

    def test_high_difficulty_rating_steps_back(self) -> None:
        decision = suggest_difficulty([signal(D.DEVELOPING, rating=5), signal(D.DEVELOPING, rating=5)])

        assert decision.suggested == D.FOUNDATIONAL

    def test_just_right_keeps_tier(self) -> None:
        decision = suggest_difficulty([signal(D.DEVELOPING, rating=3, quality=Q.JUST_RIGHT)])

        assert decision.suggested == D.DEVELOPING
        assert decision.reasoning == "Current difficulty is well matched. Keeping developing."

    def test_mid_rating_without_quality_keeps_tier(self) -> None:
        decision = suggest_difficulty([signal(D.STRENGTHENING, rating=3)])

        assert decision.suggested == D.STRENGTHENING

    def test_challenging_keeps_tier(self) -> None:
        decision = suggest_difficulty([signal(D.DEVELOPING, rating=4, quality=Q.CHALLENGING)])

        assert decision.suggested == D.DEVELOPING

    def test_no_signal_moves_up_by_default(self) -> None:
        decision = suggest_difficulty([signal(D.FOUNDATIONAL), signal(D.FOUNDATIONAL)])

        assert decision.suggested == D.DEVELOPING
        assert decision.reasoning == "Based on 2 recent completions, recommending developing."

    def test_newest_completion_sets_current_tier(self) -> None:
        decision = suggest_difficulty(
            [signal(D.STRENGTHENING, quality=Q.TOO_EASY), signal(D.FOUNDATIONAL, quality=Q.TOO_EASY)]
        )

        assert decision.current == D.STRENGTHENING
        assert decision.suggested == D.STRENGTHENING

    def test_averages_ignore_missing_ratings(self) -> None:
        decision = suggest_difficulty(
            [signal(rating=3, engagement=4), signal(rating=None, engagement=5), signal(rating=4)]
        )

        assert decision.average_difficulty == 3.5
        assert decision.average_engagement == 4.5
        assert decision.completion_count == 3


class TestScoreCandidate:
    """Tests for community worksheet scoring."""

    def test_full_match(self) -> None:
        candidate = CandidateProfile(
            id="w1",
            target_domains=["FINE_MOTOR", "LANGUAGE"],
            difficulty=D.DEVELOPING,
            condition_tags=["autism"],
            age_range_min=24,
            age_range_max=60,
            average_rating=4.5,
            review_count=12,
        )

        result = score_candidate(
            candidate,
            ["FINE_MOTOR"],
            D.DEVELOPING,
            age_months=36,
            conditions=["autism"],
        )

        # 30 domain + 20 difficulty + 20 age + 15 condition + 13.5 rating + 10 reviews
        assert result.score == pytest.approx(108.5)
        assert result.matched_domains == ["FINE_MOTOR"]
        assert "Targets FINE_MOTOR domains" in result.reasoning
        assert "Matches the suggested developing difficulty." in result.reasoning
        assert "Designed for autism." in result.reasoning
        assert "Rated 4.5/5 by 12 reviewers." in result.reasoning

    def test_adjacent_difficulty_scores_less(self) -> None:
        candidate = CandidateProfile(id="w1", target_domains=[], difficulty=D.STRENGTHENING)

        result = score_candidate(candidate, [], D.DEVELOPING)

        # 5 adjacent difficulty + 10 unbounded age
        assert result.score == 15.0

    def test_distant_difficulty_scores_nothing(self) -> None:
        candidate = CandidateProfile(
            id="w1",
            target_domains=[],
            difficulty=D.STRENGTHENING,
            age_range_min=0,
            age_range_max=12,
        )

        result = score_candidate(candidate, [], D.FOUNDATIONAL, age_months=30)

        assert result.score == 0.0
        assert result.reasoning == "Popular community worksheet."

    def test_ranged_worksheet_with_unknown_age_gets_no_age_points(self) -> None:
        candidate = CandidateProfile(
            id="w1", target_domains=[], difficulty=D.DEVELOPING, age_range_min=24
        )

        assert score_candidate(candidate, [], D.DEVELOPING).score == 20.0
        assert score_candidate(candidate, [], D.DEVELOPING, age_months=30).score == 40.0

    def test_rating_contribution_is_capped(self) -> None:
        candidate = CandidateProfile(
            id="w1",
            target_domains=[],
            difficulty=D.FOUNDATIONAL,
            age_range_min=100,
            average_rating=5.0,
            review_count=40,
        )

        result = score_candidate(candidate, [], D.STRENGTHENING, age_months=12)

        assert result.score == 25.0


class TestRankCandidates:
    def test_orders_by_score_then_id(self) -> None:
        ranked = rank_candidates(
            [
                CandidateScore(worksheet_id="b", score=10, reasoning=""),
                CandidateScore(worksheet_id="c", score=30, reasoning=""),
                CandidateScore(worksheet_id="a", score=10, reasoning=""),
            ]
        )

        assert [s.worksheet_id for s in ranked] == ["c", "a", "b"]
