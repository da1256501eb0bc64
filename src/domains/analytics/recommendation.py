# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Heuristics for difficulty progression and worksheet recommendation.

Pure functions over plain values, so the rules can be tested without a
database.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from src.domains.worksheet.models import (
    DIFFICULTY_ORDER,
    CompletionQuality,
    Difficulty,
)

# Scoring weights
DOMAIN_WEIGHT = 30
DIFFICULTY_EXACT = 20
DIFFICULTY_ADJACENT = 5
AGE_FIT = 20
AGE_UNBOUNDED = 10
CONDITION_WEIGHT = 15
RATING_MULTIPLIER = 3
RATING_CAP = 15
REVIEW_CAP = 10


@dataclass
class CompletionSignal:
    """The parts of a completion that drive difficulty suggestions."""

    worksheet_difficulty: Difficulty
    difficulty_rating: int | None = None
    engagement_rating: int | None = None
    quality: CompletionQuality | None = None


@dataclass
class DifficultyDecision:
    suggested: Difficulty
    reasoning: str
    current: Difficulty | None = None
    dominant_quality: CompletionQuality | None = None
    average_difficulty: float | None = None
    average_engagement: float | None = None
    completion_count: int = 0


@dataclass
class CandidateProfile:
    """Worksheet attributes used for scoring."""

    id: str
    target_domains: Sequence[str]
    difficulty: Difficulty
    condition_tags: Sequence[str] = ()
    age_range_min: int | None = None
    age_range_max: int | None = None
    average_rating: float | None = None
    review_count: int = 0


@dataclass
class CandidateScore:
    worksheet_id: str
    score: float
    reasoning: str
    matched_domains: list[str] = field(default_factory=list)


def shift_difficulty(current: Difficulty, steps: int) -> Difficulty:
    """Move along the tier order, clamped at both ends."""
    index = DIFFICULTY_ORDER.index(current) + steps
    return DIFFICULTY_ORDER[max(0, min(index, len(DIFFICULTY_ORDER) - 1))]


def _mean(values: Iterable[int | float | None]) -> float | None:
    present = [v for v in values if v is not None]
    if not present:
        return None
    return sum(present) / len(present)


def suggest_difficulty(signals: Sequence[CompletionSignal]) -> DifficultyDecision:
    """Suggest the next difficulty tier from recent completions.

    Args:
        signals: Recent completions, newest first. The newest completion's
            worksheet tier is the child's current tier.

    Returns:
        DifficultyDecision with the suggested tier and a reasoning line.
    """
    if not signals:
        return DifficultyDecision(
            suggested=Difficulty.DEVELOPING,
            reasoning="No completion history available. Starting at developing level.",
        )

    current = signals[0].worksheet_difficulty
    average_difficulty = _mean(s.difficulty_rating for s in signals)
    average_engagement = _mean(s.engagement_rating for s in signals)

    qualities = Counter(s.quality for s in signals if s.quality is not None)
    dominant = qualities.most_common(1)[0][0] if qualities else None

    rating_text = f"{average_difficulty:.1f}" if average_difficulty is not None else "n/a"

    if dominant == CompletionQuality.TOO_EASY or (
        average_difficulty is not None and average_difficulty < 2
    ):
        suggested = shift_difficulty(current, 1)
        reasoning = (
            f"Child is finding worksheets too easy (average difficulty rating {rating_text}). "
            f"Moving up to {suggested.value}."
        )
    elif dominant == CompletionQuality.TOO_HARD or (
        average_difficulty is not None and average_difficulty > 4
    ):
        suggested = shift_difficulty(current, -1)
        reasoning = (
            f"Child is finding worksheets too difficult (average difficulty rating {rating_text}). "
            f"Stepping back to {suggested.value}."
        )
    elif dominant == CompletionQuality.JUST_RIGHT or (
        average_difficulty is not None and 2.5 <= average_difficulty <= 3.5
    ):
        suggested = current
        reasoning = f"Current difficulty is well matched. Keeping {suggested.value}."
    elif dominant == CompletionQuality.CHALLENGING:
        suggested = current
        reasoning = f"Worksheets are challenging but manageable. Keeping {suggested.value}."
    else:
        suggested = shift_difficulty(current, 1)
        reasoning = f"Based on {len(signals)} recent completions, recommending {suggested.value}."

    return DifficultyDecision(
        suggested=suggested,
        reasoning=reasoning,
        current=current,
        dominant_quality=dominant,
        average_difficulty=round(average_difficulty, 1) if average_difficulty is not None else None,
        average_engagement=round(average_engagement, 1) if average_engagement is not None else None,
        completion_count=len(signals),
    )


def score_candidate(
    candidate: CandidateProfile,
    focus_domains: Iterable[str],
    suggested_difficulty: Difficulty,
    age_months: int | None = None,
    conditions: Iterable[str] = (),
) -> CandidateScore:
    """Score a community worksheet for a child.

    Args:
        candidate: Worksheet to score.
        focus_domains: The child's flagged or weak domains.
        suggested_difficulty: Tier suggested for the child.
        age_months: Child age, if known.
        conditions: The child's condition tags.
    """
    focus = set(focus_domains)
    matched_domains = [d for d in candidate.target_domains if d in focus]
    matched_conditions = [c for c in candidate.condition_tags if c in set(conditions)]

    score = float(len(matched_domains) * DOMAIN_WEIGHT)

    distance = abs(
        DIFFICULTY_ORDER.index(candidate.difficulty) - DIFFICULTY_ORDER.index(suggested_difficulty)
    )
    if distance == 0:
        score += DIFFICULTY_EXACT
    elif distance == 1:
        score += DIFFICULTY_ADJACENT

    if candidate.age_range_min is None and candidate.age_range_max is None:
        score += AGE_UNBOUNDED
    elif age_months is not None:
        low = candidate.age_range_min if candidate.age_range_min is not None else 0
        high = candidate.age_range_max if candidate.age_range_max is not None else age_months
        if low <= age_months <= high:
            score += AGE_FIT

    score += len(matched_conditions) * CONDITION_WEIGHT

    if candidate.average_rating:
        score += min(candidate.average_rating * RATING_MULTIPLIER, RATING_CAP)
    score += min(candidate.review_count, REVIEW_CAP)

    reasons = []
    if matched_domains:
        reasons.append(
            f"Targets {', '.join(matched_domains)} domains relevant to this child's developmental needs."
        )
    if distance == 0:
        reasons.append(f"Matches the suggested {suggested_difficulty.value} difficulty.")
    if matched_conditions:
        reasons.append(f"Designed for {', '.join(matched_conditions)}.")
    if candidate.average_rating and candidate.review_count:
        reasons.append(
            f"Rated {candidate.average_rating:.1f}/5 by {candidate.review_count} reviewers."
        )
    if not reasons:
        reasons.append("Popular community worksheet.")

    return CandidateScore(
        worksheet_id=candidate.id,
        score=round(score, 2),
        reasoning=" ".join(reasons),
        matched_domains=matched_domains,
    )


def rank_candidates(scores: Iterable[CandidateScore]) -> list[CandidateScore]:
    """Deterministic ranking: score descending, then worksheet id."""
    return sorted(scores, key=lambda s: (-s.score, s.worksheet_id))
