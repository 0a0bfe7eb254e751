"""Progress presets for the statblock generator."""

from __future__ import annotations

from typing import Dict

from cardforge.progress import Milestone, ProgressConfig

STATBLOCK_TEXT = ProgressConfig(
    estimated_duration_ms=30000,
    milestones=(
        Milestone(15, "Analyzing creature description..."),
        Milestone(35, "Crafting stats and abilities..."),
        Milestone(60, "Generating actions and traits..."),
        Milestone(85, "Polishing final details..."),
    ),
    color="blue",
)

STATBLOCK_IMAGE = ProgressConfig(
    estimated_duration_ms=60000,
    milestones=(
        Milestone(20, "Preparing prompt..."),
        Milestone(60, "Generating images..."),
        Milestone(90, "Uploading to gallery..."),
    ),
    color="violet",
)

PRESETS: Dict[str, ProgressConfig] = {
    "text": STATBLOCK_TEXT,
    "image": STATBLOCK_IMAGE,
}


def preset_for(kind: str) -> ProgressConfig:
    try:
        return PRESETS[kind]
    except KeyError:
        raise KeyError(f"unknown generation kind {kind!r}; expected one of {sorted(PRESETS)}") from None


__all__ = ["PRESETS", "STATBLOCK_IMAGE", "STATBLOCK_TEXT", "preset_for"]
