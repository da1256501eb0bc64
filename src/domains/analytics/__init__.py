# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Analytics domain services.

This module provides outcome analytics over worksheet completions:
- Completion statistics, progress timelines and journeys per child
- Worksheet effectiveness from pre/post screening scores
- Difficulty suggestions and community recommendations

Usage:
    from src.domains.analytics import AnalyticsService

    service = AnalyticsService(db)
    suggestion = await service.suggest_difficulty(child_id)
"""

from src.domains.analytics.recommendation import (
    CandidateProfile,
    CompletionSignal,
    rank_candidates,
    score_candidate,
    suggest_difficulty,
)
from src.domains.analytics.service import AnalyticsService

__all__ = [
    "AnalyticsService",
    "CandidateProfile",
    "CompletionSignal",
    "rank_candidates",
    "score_candidate",
    "suggest_difficulty",
]
