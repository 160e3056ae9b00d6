"""Keyword tagging of classifier labels into coop categories."""

from __future__ import annotations

CHICKEN_KEYWORDS: tuple[str, ...] = ("hen", "cock", "chicken", "rooster")
PREDATOR_KEYWORDS: tuple[str, ...] = ("fox", "wolf", "coyote", "dog", "hawk", "eagle", "owl", "snake")


def _contains_any(label: str, keywords: tuple[str, ...]) -> bool:
    lowered = label.lower()
    return any(keyword in lowered for keyword in keywords)


def is_chicken(label: str) -> bool:
    """Return True if the label names a chicken (case-insensitive substring match)."""
    return _contains_any(label, CHICKEN_KEYWORDS)


def is_predator(label: str) -> bool:
    """Return True if the label names a coop predator (case-insensitive substring match)."""
    return _contains_any(label, PREDATOR_KEYWORDS)
