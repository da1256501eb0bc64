# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain services layer for the worksheet engine.

This package contains domain services that encapsulate business logic.
Each domain module provides services that orchestrate operations
across the repository and external services.

Domains:
    worksheet: Lifecycle, generation, library, assignments, completions,
        community sharing and moderation.
    analytics: Outcome analytics, effectiveness and recommendations.
    auth: Bearer token validation.
"""
