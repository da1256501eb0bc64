# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Prompt builders for worksheet content and illustrations."""

import json
from typing import Any

SYSTEM_PROMPT = (
    "You are an expert pediatric therapy worksheet designer. You create "
    "evidence-based, age-appropriate activities that parents and therapists "
    "can run at home, in clinics or in schools. Weave the child's interests "
    "into activities naturally, keep instructions parent-friendly, and give "
    "easier and harder adaptations. You MUST respond with a single valid JSON "
    "object and nothing else."
)

DIFFICULTY_GUIDANCE = {
    "foundational": "Basic skills, maximum support, simple 1-2 step activities",
    "developing": "Building skills, moderate support, 2-3 step activities",
    "strengthening": "Refining skills, minimal support, multi-step activities",
}

# Shape of the JSON document expected per worksheet type
CONTENT_SHAPES = {
    "activity": (
        '{"title": str, "introduction": str, "instructions": str, '
        '"sections": [{"id": str, "title": str, "description": str, '
        '"activities": [{"id": str, "name": str, "instructions": str, '
        '"materials": [str], "therapeuticRationale": str, '
        '"adaptations": {"easier": str, "harder": str}, "imagePrompt": str}]}], '
        '"tips": [str], "notesPrompt": str}'
    ),
    "visual_support": (
        '{"title": str, "introduction": str, '
        '"steps" | "pages" | "levels": [{"id": str, "text": str, "imagePrompt": str}], '
        '"tips": [str]}'
    ),
    "structured_plan": (
        '{"title": str, "overview": str, '
        '"days": [{"day": int, "activities": [{"name": str, "instructions": str, "imagePrompt": str}]}] '
        'or "timeBlocks": [{"time": str, "activity": {"name": str, "imagePrompt": str}}], '
        '"tips": [str]}'
    ),
    "progress_tracker": (
        '{"title": str, "instructions": str, '
        '"goals": [{"id": str, "domain": str, "description": str, "measure": str}], '
        '"trackingPeriod": str}'
    ),
}

COLOR_MODE_INSTRUCTIONS = {
    "full_color": "Use soft, warm, full colors.",
    "grayscale": "Render in grayscale only, printer friendly.",
    "line_art": "Black line art on white, suitable for coloring in.",
}


def format_age(age_months: int | None) -> str:
    """Human-readable age such as '4 years 2 months'."""
    if age_months is None:
        return "Not specified"
    years, months = divmod(age_months, 12)
    parts = []
    if years:
        parts.append(f"{years} year{'s' if years > 1 else ''}")
    if months or not years:
        parts.append(f"{months} month{'s' if months != 1 else ''}")
    return " ".join(parts)


def build_content_prompt(
    worksheet_type: str,
    sub_type: str | None,
    target_domains: list[str],
    difficulty: str,
    params: dict[str, Any],
) -> str:
    """Build the user prompt for a new worksheet.

    Args:
        worksheet_type: Worksheet type value.
        sub_type: Optional sub-type, e.g. "social_story".
        target_domains: Developmental domain codes.
        difficulty: Difficulty tier value.
        params: Stored generation parameters (interests, duration, setting,
            special instructions and the data-source input).

    Returns:
        Prompt text.
    """
    child = params.get("child") or {}
    lines = [
        f"Generate a {sub_type or worksheet_type} worksheet ({worksheet_type}).",
        "",
        "CHILD PROFILE:",
        f"- Age: {format_age(child.get('age_months'))}",
        f"- Conditions: {', '.join(params.get('condition_tags') or []) or 'Not specified'}",
        f"- Developmental notes: {child.get('developmental_notes') or 'None provided'}",
        "",
        "WORKSHEET PARAMETERS:",
        f"- Target developmental domains: {', '.join(target_domains)}",
        f"- Difficulty: {difficulty} ({DIFFICULTY_GUIDANCE.get(difficulty, '')})",
        f"- Interests: {', '.join(params.get('interests') or []) or 'general'}",
        f"- Duration: {params.get('duration') or 'flexible'}",
        f"- Setting: {params.get('setting') or 'home'}",
    ]
    if params.get("special_instructions"):
        lines.append(f"- Special instructions: {params['special_instructions']}")

    source_input = params.get("source_input")
    if source_input:
        lines += [
            "",
            f"{str(params.get('data_source', 'source')).upper()} CONTEXT:",
            json.dumps(source_input, default=str),
        ]

    lines += [
        "",
        "Respond with a JSON object of this shape:",
        CONTENT_SHAPES.get(worksheet_type, CONTENT_SHAPES["activity"]),
    ]
    return "\n".join(lines)


def build_section_prompt(content: dict[str, Any], section_id: str, instructions: str | None) -> str:
    """Prompt asking for a replacement of one section."""
    guidance = (
        f"Additional instructions: {instructions}"
        if instructions
        else "Make it different from the current version while keeping the same "
        "therapeutic goals and difficulty level."
    )
    return (
        "You previously generated a worksheet with the following content:\n"
        f"{json.dumps(content, indent=2, default=str)}\n\n"
        f'Regenerate ONLY the section with id "{section_id}". {guidance}\n\n'
        "Respond with a JSON object containing ONLY the regenerated section, "
        "matching the schema of the original section."
    )


def build_image_prompt(
    description: str,
    color_mode: str,
    age_months: int | None = None,
    interests: list[str] | None = None,
    setting: str | None = None,
) -> str:
    """Wrap an activity's illustration description into an image prompt."""
    years = (age_months or 60) // 12
    if years <= 3:
        audience = "toddlers (1-3 years)"
    elif years <= 6:
        audience = "preschoolers (3-6 years)"
    elif years <= 9:
        audience = "early elementary children (6-9 years)"
    else:
        audience = "school-age children (9-12 years)"

    parts = [
        "Simple, child-friendly illustration for an educational activity worksheet.",
        f"{description.rstrip('.')}.",
        f"The scene is set in a {(setting or 'home').lower()} environment.",
        f"Style: clean, warm, friendly, age-appropriate for {audience}.",
    ]
    if interests:
        parts.append(f"Theme elements: {', '.join(interests)}.")
    parts.append(COLOR_MODE_INSTRUCTIONS.get(color_mode, COLOR_MODE_INSTRUCTIONS["full_color"]))
    parts.append("Safe for children. No text or words in the image.")
    return " ".join(parts)
